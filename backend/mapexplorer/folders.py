from typing import Awaitable, Callable, Dict, List, Optional, Set

from .models import DriveFolder, FolderStatus
from .utils.logging import get_logger

logger = get_logger(__name__)

ListingFn = Callable[[str], Awaitable[DriveFolder]]


class FolderCache:
    """Subfolder listings fetched on first expansion and reused afterwards.

    Folder ids are only unique within one layer's tree, so the owner clears
    the cache on every layer switch. A listing that completes after a clear
    belongs to the old tree and is dropped.
    """

    def __init__(self, fetch_listing: ListingFn):
        self._fetch_listing = fetch_listing
        self._entries: Dict[str, DriveFolder] = {}
        self._status: Dict[str, FolderStatus] = {}
        self._in_flight: Set[str] = set()
        self._generation = 0
        self.stats = {
            'hits': 0,
            'misses': 0,
            'failures': 0,
        }

    def get(self, folder_id: str) -> Optional[DriveFolder]:
        return self._entries.get(folder_id)

    def status(self, folder_id: str) -> FolderStatus:
        return self._status.get(folder_id, FolderStatus.IDLE)

    def is_loading(self, folder_id: str) -> bool:
        return folder_id in self._in_flight

    @property
    def loading(self) -> List[str]:
        return sorted(self._in_flight)

    @property
    def entries(self) -> Dict[str, DriveFolder]:
        return dict(self._entries)

    async def ensure(self, folder_id: str, has_subfolders: bool = True) -> None:
        """Load ``folder_id`` unless it is cached or already being fetched."""
        if not has_subfolders:
            return

        if folder_id in self._entries:
            self.stats['hits'] += 1
            logger.debug(f"Folder cache hit for {folder_id}")
            return

        if folder_id in self._in_flight:
            logger.debug(f"Folder {folder_id} already loading")
            return

        self.stats['misses'] += 1
        generation = self._generation
        self._in_flight.add(folder_id)
        self._status[folder_id] = FolderStatus.LOADING

        try:
            listing = await self._fetch_listing(folder_id)
        except Exception as exc:
            if generation == self._generation:
                self.stats['failures'] += 1
                self._status[folder_id] = FolderStatus.FAILED
                logger.error(f"Failed to load subfolder {folder_id}: {exc}", extra={'folder_id': folder_id})
            return
        finally:
            if generation == self._generation:
                self._in_flight.discard(folder_id)

        if generation != self._generation:
            logger.debug(f"Dropping listing for {folder_id} from a cleared tree")
            return

        self._entries[folder_id] = listing
        self._status[folder_id] = FolderStatus.LOADED

    def clear(self) -> None:
        self._generation += 1
        self._entries.clear()
        self._status.clear()
        self._in_flight.clear()
        logger.info("Folder cache cleared")
