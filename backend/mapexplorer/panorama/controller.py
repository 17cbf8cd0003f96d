from __future__ import annotations

from typing import Any, Dict, Optional, Union

from ..catalog import DEFAULT_VIEW_TYPE
from ..drive import panorama_image_url
from ..models import DriveFile, PanoramaSettings, PanoramaState, PanoramaView, PanoramaViewType
from ..utils.logging import get_logger
from .engine import EngineFactory, PanoramaEngine, ViewerEngine, ViewerOptions, build_viewer_options

logger = get_logger(__name__)


class PanoramaController:
    """Exclusive owner of the panorama rendering engine.

    At most one engine is alive at a time. Every transition destroys the
    current engine before anything else happens, and each engine is
    destroyed exactly once.
    """

    def __init__(self, engine_factory: EngineFactory = ViewerEngine):
        self._engine_factory = engine_factory
        self._engine: Optional[PanoramaEngine] = None
        self.selected_image: Optional[DriveFile] = None
        self.selected_folder: Optional[str] = None
        self.settings = PanoramaSettings()
        self.view_type: Union[PanoramaViewType, str] = DEFAULT_VIEW_TYPE
        self.state = PanoramaState.IDLE
        self.options: Optional[ViewerOptions] = None

    @property
    def engine(self) -> Optional[PanoramaEngine]:
        return self._engine

    @property
    def ready(self) -> bool:
        return self.state == PanoramaState.READY

    def select(self, image: Optional[DriveFile]) -> None:
        self._destroy()
        if image is None or self.selected_image is None or image.id != self.selected_image.id:
            self.settings = PanoramaSettings()
        self.selected_image = image
        self._initialize()

    def set_view_type(self, view_type: Union[PanoramaViewType, str]) -> None:
        self._destroy()
        try:
            self.view_type = PanoramaViewType(view_type)
        except ValueError:
            self.view_type = view_type
        self._initialize()

    def reset(self) -> None:
        """Drop the selection and return to the default projection."""
        self._destroy()
        self.selected_image = None
        self.view_type = DEFAULT_VIEW_TYPE
        self.selected_folder = None
        self.settings = PanoramaSettings()
        self.state = PanoramaState.IDLE

    def select_folder(self, folder: Optional[str]) -> None:
        """Narrow the image listing to one panorama folder; None shows all."""
        self.selected_folder = folder

    def update_settings(self, **changes: Optional[float]) -> PanoramaSettings:
        """Record the camera position the viewer reports. Never touches the engine."""
        values = self.settings.model_dump()
        values.update({key: value for key, value in changes.items() if value is not None})
        self.settings = PanoramaSettings(**values)
        return self.settings

    def teardown(self) -> None:
        self._destroy()
        self.state = PanoramaState.IDLE

    def describe(self) -> PanoramaView:
        engine: Optional[Dict[str, Any]] = None
        if self.ready and self.selected_image is not None:
            if self.options is not None:
                engine = {"mode": "viewer", "options": dict(self.options)}
            else:
                engine = {"mode": "flat", "url": panorama_image_url(self.selected_image.id)}

        view_type = self.view_type
        if not isinstance(view_type, PanoramaViewType):
            view_type = DEFAULT_VIEW_TYPE

        return PanoramaView(
            state=self.state,
            viewType=view_type,
            selectedImage=self.selected_image,
            selectedFolder=self.selected_folder,
            settings=self.settings,
            engine=engine,
            ready=self.ready,
        )

    def _initialize(self) -> None:
        image = self.selected_image
        if image is None:
            self.state = PanoramaState.IDLE
            return

        self.state = PanoramaState.INITIALIZING
        options = build_viewer_options(self.view_type, image)
        if options is None:
            self.state = PanoramaState.READY
            return

        try:
            self._engine = self._engine_factory(options)
        except Exception as exc:
            self._engine = None
            self.state = PanoramaState.FAILED
            logger.error(
                f"Failed to initialize panorama viewer: {exc}",
                extra={'image_id': image.id, 'view_type': str(self.view_type)},
            )
            return

        self.options = options
        self.state = PanoramaState.READY
        logger.info("Panorama viewer ready", extra={'image_id': image.id, 'view_type': str(self.view_type)})

    def _destroy(self) -> None:
        engine = self._engine
        self.options = None
        if engine is None:
            return
        try:
            engine.destroy()
        except Exception as exc:
            logger.error(f"Panorama engine destroy failed: {exc}")
        finally:
            self._engine = None
