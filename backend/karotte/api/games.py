from flask import Blueprint, jsonify, request, current_app
from karotte.errors import LoadError, PersistenceError
from karotte.services.games.engine import GameSession
from karotte.services.games.records import MODES
from karotte.services.games.scheduler import broadcast_state, run_in_background, schedule_countdown
from karotte.services.games.stores import SqlBestRecordStore, SqlHistoryStore
from karotte.services.games.telemetry import LogTelemetry, SocketIOTelemetry, Telemetry
from karotte.services.games.words import parse_position
import uuid


games = Blueprint('games', __name__)


def _registry():
    return current_app.extensions['karotte_sessions']


def _telemetry(session_id: str) -> Telemetry:
    sink = current_app.config.get('TELEMETRY_SINK', 'socket')
    if sink == 'socket':
        return SocketIOTelemetry(session_id)
    if sink == 'log':
        return LogTelemetry()
    return Telemetry()


def _session_payload(session_id: str, session: GameSession, applied=None):
    payload = session.snapshot()
    payload['session_id'] = session_id
    if applied is not None:
        payload['applied'] = applied
    return payload


def apply_event(session_id: str, action):
    """Run ``action(session)`` under the session lock and broadcast the change.

    Returns ``(payload, None)`` or ``(None, error_message)``.
    """
    with _registry().locked(session_id) as session:
        if session is None:
            return None, 'Session not found'
        before = session.status
        applied = action(session)
        # A rejected event can still deliver the countdown expiry.
        if applied or session.status != before:
            broadcast_state(session_id, session, before)
        return _session_payload(session_id, session, applied), None


def _respond(session_id: str, action):
    payload, error = apply_event(session_id, action)
    if error:
        return jsonify({'error': error}), 404
    return jsonify(payload)


@games.route('/sessions', methods=['POST'])
def create_session():
    """
    Creates an idle session over the full word list.
    """
    try:
        words = current_app.extensions['karotte_words'].load_words()
    except LoadError as exc:
        current_app.logger.error(f"[load-fail] {exc}")
        return jsonify({'error': str(exc)}), 503

    app = current_app._get_current_object()
    cfg = current_app.config
    session_id = uuid.uuid4().hex
    session = GameSession(
        words,
        best_records=SqlBestRecordStore(),
        history=SqlHistoryStore(),
        telemetry=_telemetry(session_id),
        dispatch=lambda fn: run_in_background(app, fn),
        timed_seconds=int(cfg.get('TIMED_DURATION_SEC', 60)),
        penalty_base=float(cfg.get('SURVIVAL_WRONG_PENALTY_BASE', 1.15)),
        peak_frequency=int(cfg.get('SCORE_PEAK_FREQUENCY', 2000)),
    )
    _registry().add(session, session_id)
    current_app.logger.info(f"[session-new] session={session_id} words={len(words)}")
    return jsonify(_session_payload(session_id, session)), 201


@games.route('/<string:session_id>/state', methods=['GET'])
def get_state(session_id):
    with _registry().locked(session_id) as session:
        if session is None:
            return jsonify({'error': 'Session not found'}), 404
        before = session.status
        if session.tick():
            broadcast_state(session_id, session, before)
        return jsonify(_session_payload(session_id, session))


@games.route('/<string:session_id>/start', methods=['POST'])
def start_game(session_id):
    """
    Starts a fresh run in the requested mode, discarding any run in progress.
    """
    data = request.get_json(silent=True) or {}
    mode = data.get('mode')
    if mode not in MODES:
        return jsonify({'error': f"mode must be one of {', '.join(MODES)}"}), 400
    return _respond(session_id, lambda s: s.start_game(mode))


@games.route('/<string:session_id>/ready', methods=['POST'])
def round_ready(session_id):
    """
    Signals that the first round is on screen; starts the timed countdown.
    """
    response = _respond(session_id, lambda s: s.on_round_ready())
    schedule_countdown(current_app._get_current_object(), session_id)
    return response


@games.route('/<string:session_id>/answer', methods=['POST'])
def submit_answer(session_id):
    data = request.get_json(silent=True) or {}
    try:
        position = parse_position(data.get('position'))
    except ValueError:
        return jsonify({'error': 'position must be 0-3 or one of M/N/F/none'}), 400
    return _respond(session_id, lambda s: s.submit_answer(position))


@games.route('/<string:session_id>/advance', methods=['POST'])
def advance_round(session_id):
    return _respond(session_id, lambda s: s.advance_round())


@games.route('/<string:session_id>/leave', methods=['POST'])
def leave_game(session_id):
    """
    Returns the session to mode selection; the current run is dropped.
    """
    return _respond(session_id, lambda s: s.back_to_mode_select())


@games.route('/<string:session_id>', methods=['DELETE'])
def close_session(session_id):
    if not _registry().discard(session_id):
        return jsonify({'error': 'Session not found'}), 404
    return jsonify({'message': 'Session closed.'})


@games.route('/best', methods=['GET'])
def get_best_records():
    try:
        stored = SqlBestRecordStore().all()
    except PersistenceError as exc:
        current_app.logger.error(f"[best-read-fail] {exc}")
        return jsonify({'error': 'Best records unavailable'}), 500
    return jsonify({mode: stored.get(mode, 0) for mode in MODES})
