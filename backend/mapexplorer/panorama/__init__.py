from .controller import PanoramaController
from .engine import CONFIG_BUILDERS, PanoramaEngine, ViewerEngine, build_viewer_options

__all__ = [
    "CONFIG_BUILDERS",
    "PanoramaController",
    "PanoramaEngine",
    "ViewerEngine",
    "build_viewer_options",
]
