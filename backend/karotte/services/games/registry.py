"""In-memory registry of live game sessions.

Each session gets its own re-entrant lock; HTTP handlers, socket handlers and
the countdown worker all go through ``locked`` so one event is applied to a
session at a time.
"""

import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, Optional

from .engine import GameSession


@dataclass
class _Entry:
    session: GameSession
    lock: threading.RLock = field(default_factory=threading.RLock)
    touched_at: float = field(default_factory=time.time)


class SessionRegistry:
    def __init__(self, timeout_sec: float = 120 * 60, clock: Callable[[], float] = time.time):
        self.timeout_sec = timeout_sec
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}
        self._guard = threading.Lock()

    def add(self, session: GameSession, session_id: Optional[str] = None) -> str:
        session_id = session_id or uuid.uuid4().hex
        with self._guard:
            self._prune()
            self._entries[session_id] = _Entry(session, touched_at=self._clock())
        return session_id

    def get(self, session_id: str) -> Optional[GameSession]:
        entry = self._entries.get(session_id)
        return entry.session if entry else None

    @contextmanager
    def locked(self, session_id: str) -> Iterator[Optional[GameSession]]:
        """Yield the session with its lock held, or None if it is unknown."""
        entry = self._entries.get(session_id)
        if entry is None:
            yield None
            return
        with entry.lock:
            entry.touched_at = self._clock()
            yield entry.session

    def discard(self, session_id: str) -> bool:
        with self._guard:
            return self._entries.pop(session_id, None) is not None

    def __len__(self):
        return len(self._entries)

    def _prune(self) -> None:
        cutoff = self._clock() - self.timeout_sec
        for sid in [sid for sid, e in self._entries.items() if e.touched_at < cutoff]:
            del self._entries[sid]
