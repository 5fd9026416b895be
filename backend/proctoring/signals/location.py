"""
IP address and geolocation tracking.

The baseline is captured when the session starts; every poll compares a fresh
lookup against it. Lookups are slow and unreliable, so each one runs under
its own timeout and a failure only skips that poll.
"""
import asyncio
import logging
import math
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from pydantic import BaseModel

from ..core.config import settings
from ..models.violation import Violation, ViolationKind
from ..services.violation_engine import ViolationEngine
from ..utils.timers import PeriodicTimer

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


class LocationSnapshot(BaseModel):
    ip: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    city: Optional[str] = None
    country: Optional[str] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


LocationLookup = Callable[[], Awaitable[LocationSnapshot]]


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres (haversine)"""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def has_ip_changed(baseline: LocationSnapshot, current: LocationSnapshot) -> bool:
    if not baseline.ip or not current.ip:
        return False
    return baseline.ip != current.ip


def has_location_changed(
    baseline: LocationSnapshot,
    current: LocationSnapshot,
    threshold_km: Optional[float] = None
) -> Optional[float]:
    """Distance moved when it exceeds the threshold, otherwise None"""
    if not baseline.has_coordinates or not current.has_coordinates:
        return None
    threshold_km = threshold_km if threshold_km is not None else settings.location_change_km
    distance = calculate_distance(
        baseline.latitude, baseline.longitude, current.latitude, current.longitude
    )
    return distance if distance > threshold_km else None


class IpApiLookup:
    """Public IP and approximate coordinates from an ipapi-compatible endpoint"""

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.url = url or settings.ip_lookup_url
        self.timeout = timeout if timeout is not None else settings.lookup_timeout_seconds
        self._transport = transport

    async def __call__(self) -> LocationSnapshot:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(self.url)
            response.raise_for_status()
            data = response.json()
        return LocationSnapshot(
            ip=data.get("ip"),
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            city=data.get("city"),
            country=data.get("country_name") or data.get("country"),
        )


class LocationMonitor:
    def __init__(
        self,
        engine: ViolationEngine,
        lookup: Optional[LocationLookup] = None,
        poll_interval_seconds: Optional[float] = None,
        lookup_timeout_seconds: Optional[float] = None,
        change_threshold_km: Optional[float] = None
    ):
        self.engine = engine
        self.lookup = lookup or IpApiLookup()
        self.poll_interval = poll_interval_seconds or settings.location_poll_interval_seconds
        self.lookup_timeout = lookup_timeout_seconds or settings.lookup_timeout_seconds
        self.change_threshold_km = change_threshold_km if change_threshold_km is not None else settings.location_change_km

        self.baseline: Optional[LocationSnapshot] = None
        self.enabled = True
        self._timer: Optional[PeriodicTimer] = None
        self._baseline_task: Optional[asyncio.Task] = None

    @property
    def polling(self) -> bool:
        return self._timer is not None and self._timer.running

    def set_baseline(self, snapshot: LocationSnapshot) -> None:
        self.baseline = snapshot
        logger.info(f"Location baseline set: ip={snapshot.ip}, city={snapshot.city}")

    def check(self, snapshot: LocationSnapshot) -> List[Violation]:
        """Compare a snapshot with the baseline; the first snapshot becomes the baseline"""
        if not self.enabled:
            return []
        if self.baseline is None:
            self.set_baseline(snapshot)
            return []

        logged: List[Violation] = []
        if has_ip_changed(self.baseline, snapshot):
            violation = self.engine.log_violation(ViolationKind.IP_CHANGE, {
                "previous_ip": self.baseline.ip,
                "current_ip": snapshot.ip,
            })
            if violation is not None:
                logged.append(violation)

        distance = has_location_changed(self.baseline, snapshot, self.change_threshold_km)
        if distance is not None:
            details: Dict[str, Any] = {"distance_km": round(distance, 2)}
            if snapshot.city:
                details["current_city"] = snapshot.city
            violation = self.engine.log_violation(ViolationKind.LOCATION_CHANGE, details)
            if violation is not None:
                logged.append(violation)
        return logged

    async def poll_once(self) -> List[Violation]:
        if not self.enabled:
            return []
        try:
            snapshot = await asyncio.wait_for(self.lookup(), timeout=self.lookup_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Location lookup timed out after {self.lookup_timeout}s")
            return []
        except Exception as e:
            logger.warning(f"Location lookup failed: {e}")
            return []
        return self.check(snapshot)

    def start(self) -> None:
        """Capture the baseline right away, then poll every interval"""
        if not self.enabled or self.polling:
            return
        if self.baseline is None:
            self._baseline_task = asyncio.get_running_loop().create_task(self.poll_once())
        self._timer = PeriodicTimer(self.poll_interval, self.poll_once, name="location-poll")
        self._timer.start()

    def reset(self) -> None:
        """Re-enable checks after a stop; the baseline is kept"""
        self.enabled = True

    def stop(self) -> None:
        self.enabled = False
        if self._baseline_task is not None:
            self._baseline_task.cancel()
            self._baseline_task = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
