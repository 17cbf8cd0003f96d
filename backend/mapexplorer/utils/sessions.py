import asyncio
import time
import uuid
from typing import Any, Dict, List, Optional, Set

from cachetools import TTLCache

from .logging import get_logger

logger = get_logger(__name__)


class SessionNotFound(LookupError):
    pass


class _SessionCache(TTLCache):
    """TTLCache that reports every entry it drops on its own."""

    def __init__(self, maxsize: int, ttl: int, on_evict, timer=time.monotonic):
        super().__init__(maxsize=maxsize, ttl=ttl, timer=timer)
        self._on_evict = on_evict

    def popitem(self):
        key, value = super().popitem()
        self._on_evict(key, value)
        return key, value

    def expire(self, time=None):
        expired = super().expire(time)
        for key, value in expired or []:
            self._on_evict(key, value)
        return expired


class SessionStore:
    """Live map sessions, bounded in number and expiring when idle."""

    def __init__(self, max_size: int = 256, ttl: int = 1800, timer=time.monotonic):
        self.sessions = _SessionCache(maxsize=max_size, ttl=ttl, on_evict=self._evicted, timer=timer)
        self._closing: Set[asyncio.Task] = set()
        self.stats = {
            'created': 0,
            'hits': 0,
            'misses': 0,
            'evicted': 0,
        }
        logger.info(f"Initialized session store with TTL={ttl}s, max_size={max_size}")

    def new_id(self) -> str:
        return uuid.uuid4().hex

    def add(self, session_id: str, page: Any) -> None:
        self.sessions[session_id] = page
        self.stats['created'] += 1

    def get(self, session_id: str) -> Any:
        # Close anything idle past its TTL before looking up
        self.sessions.expire()
        try:
            page = self.sessions[session_id]
        except KeyError:
            self.stats['misses'] += 1
            raise SessionNotFound(f"Unknown session '{session_id}'") from None
        # Reinsert to refresh the idle timer
        self.sessions[session_id] = page
        self.stats['hits'] += 1
        return page

    def remove(self, session_id: str) -> Optional[Any]:
        self.sessions.expire()
        return self.sessions.pop(session_id, None)

    async def close_all(self) -> None:
        pages: List[Any] = [self.sessions.pop(key) for key in list(self.sessions.keys())]
        for page in pages:
            await page.close()
        if self._closing:
            await asyncio.gather(*list(self._closing), return_exceptions=True)

    def __len__(self) -> int:
        return len(self.sessions)

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self.stats,
            'size': len(self.sessions),
            'max_size': self.sessions.maxsize,
        }

    def _evicted(self, session_id: str, page: Any) -> None:
        self.stats['evicted'] += 1
        logger.info("Session evicted", extra={'session_id': session_id})
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No event loop running; session {session_id} not closed")
            return
        task = loop.create_task(page.close())
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)
