from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Protocol

from ..drive import panorama_image_url
from ..models import DriveFile, PanoramaViewType

ViewerOptions = Dict[str, Any]

BASE_NAVBAR = ["zoom", "fullscreen", "caption"]


class PanoramaEngine(Protocol):
    """Handle on a live rendering engine; must release its surface on destroy()."""

    def destroy(self) -> None: ...


EngineFactory = Callable[[ViewerOptions], PanoramaEngine]


class ViewerEngine:
    """Server-side handle for one browser Photo Sphere Viewer instance.

    The browser mounts a viewer from :meth:`options`; destroying the handle
    tells the client to unmount it.
    """

    def __init__(self, options: ViewerOptions):
        panorama = options.get("panorama")
        if not panorama:
            raise ValueError("Viewer options require a panorama URL")
        self._options = dict(options)
        self.destroyed = False

    def options(self) -> ViewerOptions:
        return dict(self._options)

    def destroy(self) -> None:
        if self.destroyed:
            raise RuntimeError("Viewer already destroyed")
        self.destroyed = True


def _sphere_options(image: DriveFile, loading_txt: str, **extra: Any) -> ViewerOptions:
    options: ViewerOptions = {
        "panorama": panorama_image_url(image.id),
        "caption": image.name,
        "loadingTxt": loading_txt,
        "defaultZoomLvl": 50,
        "navbar": list(BASE_NAVBAR),
        "touchmoveTwoFingers": True,
        "mousewheelCtrlKey": False,
    }
    options.update(extra)
    return options


def _flat(image: DriveFile) -> Optional[ViewerOptions]:
    # Shown as a plain <img>; no engine.
    return None


def _spherical(image: DriveFile) -> ViewerOptions:
    return _sphere_options(image, "Loading 360° panorama...")


def _cylindrical(image: DriveFile) -> ViewerOptions:
    return _sphere_options(
        image,
        "Loading cylindrical panorama...",
        sphereCorrection={"pan": 0, "tilt": 0, "roll": 0},
        fisheye=False,
    )


def _horizontal(image: DriveFile) -> ViewerOptions:
    return _sphere_options(image, "Loading horizontal panorama...", minFov=30, maxFov=120)


def _vertical(image: DriveFile) -> ViewerOptions:
    return _sphere_options(image, "Loading vertical panorama...", minFov=20, maxFov=70)


CONFIG_BUILDERS: Dict[PanoramaViewType, Callable[[DriveFile], Optional[ViewerOptions]]] = {
    PanoramaViewType.DEGREE_360: _spherical,
    PanoramaViewType.SPHERICAL: _spherical,
    PanoramaViewType.CYLINDRICAL: _cylindrical,
    PanoramaViewType.HORIZONTAL: _horizontal,
    PanoramaViewType.VERTICAL: _vertical,
    PanoramaViewType.WIDE_ANGLE: _flat,
    PanoramaViewType.PLANAR: _flat,
}


def build_viewer_options(view_type: Any, image: DriveFile) -> Optional[ViewerOptions]:
    """Viewer options for a projection, or None when no engine is needed."""
    try:
        normalized = PanoramaViewType(view_type)
    except ValueError:
        return None
    return CONFIG_BUILDERS[normalized](image)
