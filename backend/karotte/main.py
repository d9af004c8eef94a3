from flask import Blueprint, jsonify, current_app
from karotte.errors import LoadError
from karotte.models import Word

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Karotte game server!'})


@main.route('/health')
def health():
    """Reports whether the word list can be loaded; retries a failed load."""
    try:
        words = current_app.extensions['karotte_words'].load_words()
    except LoadError as exc:
        return jsonify({'status': 'unavailable', 'error': str(exc)}), 503
    return jsonify({
        'status': 'ok',
        'words': len(words),
        'sessions': len(current_app.extensions['karotte_sessions']),
    })


@main.route('/words/count')
def word_count():
    return jsonify({'count': Word.query.count()})
