import asyncio
import json
import os
from typing import AsyncIterator, Awaitable, Callable, Optional

from loguru import logger

from tools.progress import ProgressSnapshot, ProgressStore

DEFAULT_POLL_INTERVAL = 0.2


def poll_interval() -> float:
    return float(os.getenv("PROGRESS_POLL_INTERVAL", DEFAULT_POLL_INTERVAL))


def format_event(snapshot: ProgressSnapshot) -> str:
    """Encode a snapshot as one server-sent event frame."""
    return f"data: {json.dumps(snapshot.to_dict())}\n\n"


async def stream_progress(
    session_id: str,
    progress: ProgressStore,
    is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    interval: Optional[float] = None,
) -> AsyncIterator[str]:
    """
    Push progress snapshots for one session to one subscriber.

    The first frame is always the starting snapshot. After that the store
    is polled every ``interval`` seconds and a frame is pushed whenever
    the snapshot changed. The stream ends after a terminal snapshot, when
    the subscriber disconnects, or when the entry disappears. The store
    entry is deleted on every exit path, including cancellation by the
    transport.
    """
    interval = poll_interval() if interval is None else interval
    last = ProgressSnapshot.starting()
    reason = "closed"

    try:
        yield format_event(last)

        while True:
            if is_disconnected is not None and await is_disconnected():
                reason = "subscriber disconnected"
                break

            snapshot = progress.get(session_id)
            if snapshot is None:
                reason = "session entry gone"
                break

            if snapshot != last:
                last = snapshot
                yield format_event(snapshot)
                if snapshot.is_terminal:
                    reason = "error" if snapshot.is_error else "complete"
                    break

            await asyncio.sleep(interval)
    except asyncio.CancelledError:
        reason = "cancelled"
        raise
    finally:
        progress.delete(session_id)
        logger.info(f"Progress stream for {session_id} ended: {reason}")
