import asyncio
import uuid
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Set, Tuple

from .models import DrawingMode, DrawingView, LatLng, MapFeature
from .utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_COLOR = "#FF0000"
DEFAULT_FILL_COLOR = "#FF000040"
DEFAULT_WEIGHT = 3.0

# (minimum vertices, fixed vertex count or None for open-ended gestures)
MODE_VERTEX_RULES: Dict[DrawingMode, Tuple[int, Optional[int]]] = {
    DrawingMode.POINT: (1, 1),
    DrawingMode.LINE: (2, None),
    DrawingMode.POLYGON: (3, None),
    DrawingMode.RECTANGLE: (2, 2),
    DrawingMode.CIRCLE: (2, 2),
}


class FeatureStore(Protocol):
    """Persistence hooks notified after the in-memory list changes."""

    async def save(self, feature: MapFeature) -> None: ...

    async def delete(self, feature_id: str) -> None: ...

    async def clear(self) -> None: ...


class LoggingFeatureStore:
    """Default store: records the calls and keeps nothing."""

    async def save(self, feature: MapFeature) -> None:
        logger.info("Feature saved", extra={'feature_id': feature.id, 'kind': feature.kind.value})

    async def delete(self, feature_id: str) -> None:
        logger.info("Feature deleted", extra={'feature_id': feature_id})

    async def clear(self) -> None:
        logger.info("All features cleared")


def minimum_vertices(mode: DrawingMode) -> int:
    return MODE_VERTEX_RULES[mode][0]


class AnnotationEngine:
    """Drawing tool state machine.

    Idle (``mode is None``) until a mode is picked; clicks then accumulate in
    the buffer until :meth:`finalize` turns them into a :class:`MapFeature`.
    Point, rectangle and circle gestures have a fixed vertex count and
    finalize on the click that completes them.
    """

    def __init__(self, store: Optional[FeatureStore] = None):
        self.store: FeatureStore = store or LoggingFeatureStore()
        self.mode: Optional[DrawingMode] = None
        self.buffer: List[LatLng] = []
        self.features: List[MapFeature] = []
        self.color = DEFAULT_COLOR
        self.fill_color = DEFAULT_FILL_COLOR
        self.weight = DEFAULT_WEIGHT
        self.title = ""
        self.description = ""
        self._pending: Set[asyncio.Task] = set()

    def select_mode(self, mode: Optional[DrawingMode]) -> None:
        self.mode = DrawingMode(mode) if mode is not None else None
        self.buffer = []

    def set_style(
        self,
        color: Optional[str] = None,
        fill_color: Optional[str] = None,
        weight: Optional[float] = None,
    ) -> None:
        if color is not None:
            self.color = color
        if fill_color is not None:
            self.fill_color = fill_color
        if weight is not None:
            self.weight = weight

    def set_details(self, title: Optional[str] = None, description: Optional[str] = None) -> None:
        if title is not None:
            self.title = title
        if description is not None:
            self.description = description

    def add_vertex(self, lat: float, lng: float) -> Optional[MapFeature]:
        """Buffer a map click; returns the feature if the click completed one."""
        if self.mode is None:
            return None

        self.buffer.append(LatLng(lat=lat, lng=lng))

        fixed = MODE_VERTEX_RULES[self.mode][1]
        if fixed is not None and len(self.buffer) >= fixed:
            return self.finalize()
        return None

    def undo_vertex(self) -> Optional[LatLng]:
        if not self.buffer:
            return None
        return self.buffer.pop()

    def can_finalize(self) -> bool:
        return self.mode is not None and len(self.buffer) >= minimum_vertices(self.mode)

    def finalize(self) -> Optional[MapFeature]:
        if not self.can_finalize():
            logger.debug(
                "Finalize ignored: not enough vertices",
                extra={'mode': self.mode.value if self.mode else None, 'vertices': len(self.buffer)},
            )
            return None

        feature = MapFeature(
            id=str(uuid.uuid4()),
            kind=self.mode,
            coordinates=list(self.buffer),
            color=self.color,
            fillColor=self.fill_color,
            weight=self.weight,
            title=self.title,
            description=self.description,
        )
        self.features = [*self.features, feature]
        self.buffer = []
        self.mode = None
        self._notify(lambda: self.store.save(feature), "save")
        return feature

    def get_feature(self, feature_id: str) -> Optional[MapFeature]:
        return next((feature for feature in self.features if feature.id == feature_id), None)

    def delete_feature(self, feature_id: str) -> bool:
        remaining = [feature for feature in self.features if feature.id != feature_id]
        removed = len(remaining) != len(self.features)
        self.features = remaining
        self._notify(lambda: self.store.delete(feature_id), "delete")
        return removed

    def clear_all_features(self) -> None:
        self.features = []
        self._notify(self.store.clear, "clear")

    def describe(self) -> DrawingView:
        return DrawingView(
            mode=self.mode,
            buffer=list(self.buffer),
            color=self.color,
            fillColor=self.fill_color,
            weight=self.weight,
            title=self.title,
            description=self.description,
        )

    async def drain(self) -> None:
        """Wait for outstanding persistence notifications."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _notify(self, call: Callable[[], Awaitable[None]], action: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No event loop running; feature {action} not persisted")
            return

        task = loop.create_task(self._persist(call, action))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _persist(self, call: Callable[[], Awaitable[None]], action: str) -> None:
        try:
            await call()
        except Exception as exc:
            logger.error(f"Feature store {action} failed: {exc}")
