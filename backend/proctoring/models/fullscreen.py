from datetime import datetime
from typing import Optional

from pydantic import BaseModel, computed_field


class FullscreenState(BaseModel):
    """Snapshot of the fullscreen pause controller"""
    is_fullscreen: bool = False
    required: bool = False
    exit_count: int = 0
    total_time_outside_seconds: int = 0
    last_exit_instant: Optional[datetime] = None

    @computed_field
    @property
    def paused(self) -> bool:
        return self.required and not self.is_fullscreen

    class Config:
        frozen = True
