import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class Telemetry:
    """Fire-and-forget event sink. The base class drops everything."""

    def track(self, event: str, properties: Optional[Dict[str, Any]] = None) -> None:
        pass


class LogTelemetry(Telemetry):
    def track(self, event, properties=None):
        logger.info(f"[telemetry] event={event} properties={properties or {}}")


class SocketIOTelemetry(Telemetry):
    """Emits ``telemetry`` events to the session's Socket.IO room."""

    def __init__(self, session_id: str):
        self.session_id = session_id

    def track(self, event, properties=None):
        from karotte import socketio

        socketio.emit(
            'telemetry',
            {'session_id': self.session_id, 'event': event, 'properties': properties or {}},
            to=f"session:{self.session_id}",
            namespace='/ws',
        )


def safe_track(telemetry: Optional[Telemetry], event: str, properties: Dict[str, Any]) -> None:
    """Send an event without letting a broken or missing sink affect the caller."""
    if telemetry is None:
        return
    try:
        telemetry.track(event, properties)
    except Exception as exc:
        logger.warning(f"[telemetry-fail] event={event} error={exc!r}")
