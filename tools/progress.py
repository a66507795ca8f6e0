import os
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from loguru import logger

DEFAULT_TTL = 3600


@dataclass(frozen=True)
class ProgressSnapshot:
    """State of one pipeline run at an instant."""
    percent: int
    message: str
    is_error: bool = False
    result: Optional[Dict[str, Any]] = None

    @property
    def is_terminal(self) -> bool:
        return self.percent >= 100 or self.is_error

    @classmethod
    def starting(cls) -> "ProgressSnapshot":
        return cls(0, "Starting...")

    @classmethod
    def failed(cls, message: str, code: str, field: Optional[str] = None) -> "ProgressSnapshot":
        result = {"code": code}
        if field:
            result["field"] = field
        return cls(0, message, is_error=True, result=result)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "percent": self.percent,
            "message": self.message,
            "isError": self.is_error,
            "result": self.result,
        }


def new_session_id() -> str:
    return secrets.token_urlsafe(18)


class ProgressStore:
    """
    In-memory session id -> latest ProgressSnapshot map.

    One snapshot per session; each write replaces the previous one.
    Entries untouched for longer than ``ttl`` seconds are evicted on the
    next write so abandoned runs do not accumulate.
    """

    def __init__(self, ttl: Optional[float] = None):
        self.ttl = ttl if ttl is not None else float(os.getenv("PROGRESS_TTL_SECONDS", DEFAULT_TTL))
        self._entries: Dict[str, Tuple[ProgressSnapshot, float]] = {}
        self._lock = threading.Lock()

    def set(self, session_id: str, snapshot: ProgressSnapshot) -> None:
        """Create or replace the entry for a session."""
        with self._lock:
            self._evict_expired()
            self._entries[session_id] = (snapshot, time.monotonic())

    def update(self, session_id: str, snapshot: ProgressSnapshot) -> bool:
        """
        Replace the entry for a session only if it is still live.

        Returns:
            False when the entry was already removed (subscriber gone or
            evicted); the snapshot is dropped in that case.
        """
        with self._lock:
            self._evict_expired()
            if session_id not in self._entries:
                return False
            self._entries[session_id] = (snapshot, time.monotonic())
            return True

    def get(self, session_id: str) -> Optional[ProgressSnapshot]:
        with self._lock:
            entry = self._entries.get(session_id)
            return entry[0] if entry else None

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._entries.pop(session_id, None) is not None

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _evict_expired(self) -> None:
        if self.ttl <= 0:
            return
        cutoff = time.monotonic() - self.ttl
        expired = [key for key, (_, updated_at) in self._entries.items() if updated_at < cutoff]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.info(f"Evicted {len(expired)} stale progress session(s)")
