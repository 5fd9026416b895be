import os
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    port: int = 8000
    environment: str = "development"

    # violation delivery endpoint (assessment service)
    violation_api_url: str = os.getenv("VIOLATION_API_URL", "http://localhost:3000/api/v1")
    violation_api_token: Optional[str] = None
    delivery_timeout_seconds: float = 10.0
    batch_interval_seconds: float = 30.0
    flush_timeout_seconds: float = 15.0

    # fullscreen grace period
    fullscreen_ceiling_seconds: int = 300
    fullscreen_tick_seconds: float = 1.0

    # webcam monitoring
    no_face_threshold_seconds: float = 10.0
    critical_no_face_seconds: float = 30.0
    face_relog_interval_seconds: float = 5.0

    # devtools heuristic (outer minus inner window size, px)
    devtools_size_threshold: int = 160

    # location / IP tracking
    ip_lookup_url: str = "https://ipapi.co/json/"
    location_poll_interval_seconds: float = 60.0
    location_change_km: float = 1.0
    lookup_timeout_seconds: float = 10.0

    # local fallback storage for undelivered violations
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    fallback_ttl_seconds: int = 7 * 24 * 3600

    default_assessment_minutes: int = 60

    # finished sessions are evicted from the registry after this long
    session_retention_seconds: float = 3600.0
    session_prune_interval_seconds: float = 300.0

    default_timezone: str = "Asia/Almaty"
    timezone_display_format: str = "%d.%m.%Y, %H:%M:%S"

    cors_origins_str: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins_str.split(",")]

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
