import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Hashable, Optional, TypeVar

from .utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

FetchFn = Callable[[], Awaitable[T]]


@dataclass
class CollectionSnapshot(Generic[T]):
    data: T
    is_loading: bool
    error: Optional[str] = None


@dataclass
class _Entry:
    data: Any
    fetched_at: float


class _FetchToken:
    """Ties one fetch to the key it was issued for."""

    __slots__ = ("key", "cancelled")

    def __init__(self, key: Hashable):
        self.key = key
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class RemoteCollection(Generic[T]):
    """Keyed, de-duplicated cached fetch.

    ``observe`` is called whenever the owner re-derives its state. A fetch is
    started when the key changes (by value) or the collection becomes enabled,
    unless a successful result for that key is younger than ``stale_time``.
    Results are stored per key, and a fetch superseded by a key change is
    cancelled and its completion discarded.
    """

    def __init__(
        self,
        name: str,
        default: T,
        *,
        stale_time: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.default = default
        self.stale_time = stale_time
        self._clock = clock
        self._entries: Dict[Hashable, _Entry] = {}
        self._errors: Dict[Hashable, str] = {}
        self._key: Optional[Hashable] = None
        self._enabled = False
        self._token: Optional[_FetchToken] = None
        self._task: Optional[asyncio.Task] = None
        self.fetch_count = 0

    @property
    def key(self) -> Optional[Hashable]:
        return self._key

    @property
    def is_loading(self) -> bool:
        return self._token is not None and self._token.key == self._key

    def observe(self, key: Hashable, fetch_fn: FetchFn, *, enabled: bool = True) -> CollectionSnapshot[T]:
        key_changed = key != self._key
        became_enabled = enabled and not self._enabled

        if key_changed:
            self._supersede()

        self._key = key
        self._enabled = enabled

        if enabled and (key_changed or became_enabled) and not self._is_fresh(key):
            if self.is_loading:
                logger.debug(f"Fetch for {self.name} already running", extra={'key': str(key)})
            else:
                self._start(key, fetch_fn)

        return self.snapshot()

    def snapshot(self) -> CollectionSnapshot[T]:
        if not self._enabled:
            return CollectionSnapshot(data=self.default, is_loading=False)

        entry = self._entries.get(self._key)
        return CollectionSnapshot(
            data=entry.data if entry is not None else self.default,
            is_loading=self.is_loading,
            error=self._errors.get(self._key),
        )

    async def settle(self) -> None:
        """Wait for the in-flight fetch, if any, to finish."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait([task])

    def close(self) -> None:
        self._supersede()

    def _is_fresh(self, key: Hashable) -> bool:
        entry = self._entries.get(key)
        if entry is None or self.stale_time <= 0:
            return False
        return (self._clock() - entry.fetched_at) < self.stale_time

    def _supersede(self) -> None:
        if self._token is not None:
            self._token.cancel()
            self._token = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _start(self, key: Hashable, fetch_fn: FetchFn) -> None:
        self._supersede()
        token = _FetchToken(key)
        self._token = token
        self.fetch_count += 1
        logger.debug(f"Fetching {self.name}", extra={'collection': self.name, 'key': str(key)})
        self._task = asyncio.get_running_loop().create_task(self._run(token, fetch_fn))

    async def _run(self, token: _FetchToken, fetch_fn: FetchFn) -> None:
        try:
            data = await fetch_fn()
        except asyncio.CancelledError:
            logger.debug(f"Fetch for {self.name} cancelled", extra={'key': str(token.key)})
            return
        except Exception as exc:
            if token.cancelled:
                return
            logger.error(
                f"Failed to fetch {self.name}: {exc}",
                extra={'collection': self.name, 'key': str(token.key)},
            )
            self._errors[token.key] = str(exc) or exc.__class__.__name__
            self._finish(token)
            return

        if token.cancelled:
            logger.debug(f"Discarding superseded {self.name} response", extra={'key': str(token.key)})
            return

        self._entries[token.key] = _Entry(data=data, fetched_at=self._clock())
        self._errors.pop(token.key, None)
        self._finish(token)

    def _finish(self, token: _FetchToken) -> None:
        if self._token is token:
            self._token = None
            self._task = None
