import time
from typing import Set, Tuple

from karotte import socketio
from .engine import STATUS_FINISHED, GameSession


_scheduled_countdowns: Set[Tuple[str, int]] = set()


def session_room(session_id: str) -> str:
    return f"session:{session_id}"


def broadcast_state(session_id: str, session: GameSession, status_before: str) -> None:
    """Tell the session's room that its state changed; announce the finish
    once, on the transition into the finished state."""
    socketio.emit(
        'state_update',
        {'session_id': session_id, 'status': session.status},
        to=session_room(session_id),
        namespace='/ws',
    )
    if status_before != STATUS_FINISHED and session.status == STATUS_FINISHED and session.result:
        socketio.emit(
            'session_finished',
            {'session_id': session_id, 'result': session.result.to_dict()},
            to=session_room(session_id),
            namespace='/ws',
        )


def run_in_background(app, fn) -> None:
    """Run ``fn`` in an app context without blocking the caller.

    Runs inline in TESTING so results are deterministic.
    """
    if app.config.get('TESTING'):
        fn()
        return

    def _runner():
        with app.app_context():
            fn()

    socketio.start_background_task(_runner)


def schedule_countdown(app, session_id: str) -> None:
    """Deliver the countdown expiry of a running timed session.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set
    - Ensures a single worker per (session_id, generation)
    - Aborts quietly if the session was restarted, left or finished meanwhile
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return

    registry = app.extensions['karotte_sessions']
    with registry.locked(session_id) as session:
        if session is None or session.status != 'running' or not session.countdown_running:
            return
        generation = session.generation
        remaining = session.countdown.remaining

    key = (session_id, generation)
    if key in _scheduled_countdowns:
        app.logger.info(f"[timer-skip] session={session_id} generation={generation} already scheduled")
        return
    _scheduled_countdowns.add(key)
    app.logger.info(f"[timer-set] session={session_id} generation={generation} remaining={remaining:.1f}s")

    def _worker(sid: str, expected_generation: int):
        try:
            hb = int(app.config.get('TIMER_HEARTBEAT_SEC', 0))
        except (TypeError, ValueError):
            hb = 0
        try:
            while True:
                with registry.locked(sid) as s:
                    if (s is None or s.generation != expected_generation
                            or s.status != 'running' or not s.countdown_running):
                        app.logger.info(f"[timer-abort] session={sid} generation={expected_generation} stale")
                        return
                    left = s.countdown.remaining
                    if left <= 0:
                        before = s.status
                        with app.app_context():
                            fired = s.tick()
                        app.logger.info(f"[timer-fire] session={sid} generation={expected_generation} fired={fired}")
                        if fired:
                            broadcast_state(sid, s, before)
                        return
                step = min(hb, left) if hb > 0 else left
                time.sleep(step)
                if hb > 0:
                    app.logger.info(
                        f"[timer-heartbeat] session={sid} generation={expected_generation} remaining={max(0.0, left - step):.1f}s"
                    )
        finally:
            _scheduled_countdowns.discard((sid, expected_generation))

    if app.config.get('TESTING'):
        _worker(session_id, generation)
    else:
        socketio.start_background_task(_worker, session_id, generation)
