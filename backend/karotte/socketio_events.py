from flask_socketio import join_room, leave_room, emit
from karotte import socketio
from flask import current_app
from karotte.api.games import apply_event
from karotte.services.games.scheduler import schedule_countdown, session_room
from karotte.services.games.words import parse_position


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_join_session(data):
    session_id = (data or {}).get('session_id')
    if not session_id:
        emit('error', {'message': 'session_id is required'})
        return
    if current_app.extensions['karotte_sessions'].get(session_id) is None:
        emit('error', {'message': 'Session not found'})
        return
    room = session_room(session_id)
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_session(data):
    session_id = (data or {}).get('session_id')
    if not session_id:
        emit('error', {'message': 'session_id is required'})
        return
    room = session_room(session_id)
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def _game_event(data, action):
    """Apply a gameplay event and reply with the resulting state."""
    session_id = (data or {}).get('session_id')
    if not session_id:
        emit('error', {'message': 'session_id is required'})
        return None
    payload, error = apply_event(session_id, action)
    if error:
        emit('error', {'message': error})
        return None
    emit('state', payload)
    return session_id


def handle_answer(data):
    try:
        position = parse_position((data or {}).get('position'))
    except ValueError:
        emit('error', {'message': 'position must be 0-3 or one of M/N/F/none'})
        return
    _game_event(data, lambda s: s.submit_answer(position))


def handle_ready(data):
    session_id = _game_event(data, lambda s: s.on_round_ready())
    if session_id:
        schedule_countdown(current_app._get_current_object(), session_id)


def handle_advance(data):
    _game_event(data, lambda s: s.advance_round())


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    handlers = {
        'connect': handle_connect,
        'join_session': handle_join_session,
        'leave_session': handle_leave_session,
        'ping': handle_ping,
        'answer': handle_answer,
        'ready': handle_ready,
        'advance': handle_advance,
    }
    for name, handler in handlers.items():
        socketio.on_event(name, handler, namespace='/ws')

    if testing:
        # Test-only mirror on default namespace
        for name, handler in handlers.items():
            socketio.on_event(name, handler, namespace='/')
