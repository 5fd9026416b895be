"""
Developer tools heuristic based on window dimensions.

Docked devtools add 200-400px between the outer window and the viewport,
normal browser chrome about 100-120px. Only meaningful outside fullscreen,
so it runs when the candidate leaves fullscreen.
"""
import logging
from typing import Optional

from pydantic import BaseModel, Field

from ..core.config import settings

logger = logging.getLogger(__name__)


class WindowMetrics(BaseModel):
    outer_width: int = Field(..., ge=0)
    outer_height: int = Field(..., ge=0)
    inner_width: int = Field(..., ge=0)
    inner_height: int = Field(..., ge=0)


def detect_devtools(window: WindowMetrics, threshold: Optional[int] = None) -> bool:
    threshold = threshold if threshold is not None else settings.devtools_size_threshold
    height_diff = window.outer_height - window.inner_height
    width_diff = window.outer_width - window.inner_width
    is_open = height_diff > threshold or width_diff > threshold
    logger.debug(
        f"DevTools check: height_diff={height_diff}, width_diff={width_diff}, open={is_open}"
    )
    return is_open
