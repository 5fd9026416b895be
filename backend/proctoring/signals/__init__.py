from .browser import BrowserActivityMonitor, build_shortcut
from .devtools import WindowMetrics, detect_devtools
from .fullscreen import FullscreenSignal
from .location import IpApiLookup, LocationMonitor, LocationSnapshot, calculate_distance
from .webcam import WebcamMonitor

__all__ = [
    "BrowserActivityMonitor",
    "build_shortcut",
    "WindowMetrics",
    "detect_devtools",
    "FullscreenSignal",
    "IpApiLookup",
    "LocationMonitor",
    "LocationSnapshot",
    "calculate_distance",
    "WebcamMonitor",
]
