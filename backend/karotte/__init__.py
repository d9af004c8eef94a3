from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
import json
import logging
from config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    logging.getLogger('karotte').setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Word list is loaded lazily on first session and cached; live sessions
    # are kept in memory only.
    from karotte.services.games.registry import SessionRegistry
    from karotte.services.games.words import DatabaseWordSource
    flask_app.extensions['karotte_words'] = DatabaseWordSource()
    flask_app.extensions['karotte_sessions'] = SessionRegistry(
        timeout_sec=int(flask_app.config.get('SESSION_TIMEOUT_MINUTES', 120)) * 60
    )

    from karotte.main import main
    flask_app.register_blueprint(main)

    from karotte.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from karotte.api.history import history
    flask_app.register_blueprint(history, url_prefix='/api/history')

    from karotte.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from karotte.models import Word
    from karotte.services.games.words import read_words_csv

    def _import_words(path):
        entries = read_words_csv(path)
        Word.query.delete()
        for entry in entries:
            db.session.add(Word.from_entry(entry))
        db.session.commit()
        flask_app.extensions['karotte_words'].invalidate()
        return len(entries)

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            seed = flask_app.config.get('WORDS_CSV')
            if seed:
                count = _import_words(seed)
                print(f'Seeded {count} words from {seed}.')
            print('Database has been reset!')

    @click.command('words-import')
    @click.argument('path', type=click.Path(exists=True, dir_okay=False))
    def words_import_command(path):
        """Replaces the word table with the rows of a CSV file."""
        with flask_app.app_context():
            count = _import_words(path)
            print(f'Imported {count} words.')

    @click.command('history-import')
    @click.argument('path', type=click.Path(exists=True, dir_okay=False))
    def history_import_command(path):
        """Imports exported history records of any schema, rewritten in the current shape."""
        from karotte.errors import PersistenceError, RecordFormatError
        from karotte.services.games.records import load_record
        from karotte.services.games.stores import SqlHistoryStore

        try:
            with open(path, encoding='utf-8') as fh:
                payloads = json.load(fh)
        except ValueError as exc:
            raise click.ClickException(f'{path} is not valid JSON: {exc}') from exc
        if isinstance(payloads, dict):
            payloads = [payloads]
        if not isinstance(payloads, list):
            raise click.ClickException(f'{path} must hold a record or a list of records')

        # Nothing is written unless every record parses.
        records = []
        for index, payload in enumerate(payloads):
            try:
                records.append(load_record(payload))
            except RecordFormatError as exc:
                raise click.ClickException(f'record {index}: {exc}') from exc

        store = SqlHistoryStore()
        with flask_app.app_context():
            try:
                for record in records:
                    store.save(record)
            except PersistenceError as exc:
                raise click.ClickException(str(exc)) from exc
            print(f'Imported {len(records)} history records.')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(words_import_command)
    flask_app.cli.add_command(history_import_command)

    return flask_app
