"""MyShipTracking client: current position and speed for one vessel.

Normalises provider quirks into a single ``AISSample`` shape:
  - missing numeric fields stay None (unknown), never 0
  - SOG >= 102.2 is the AIS "not available" sentinel -> None
  - (0, 0) and out-of-range coordinates -> None
  - positions older than AIS_STALE_AFTER_HOURS are flagged ``is_stale``

Failures surface as ``ProviderUnavailable``, ``RateLimited``,
``NoDataForVessel`` or ``ProviderTimeout``. There are no inline retries: a
failed poll is retried on the vessel's next scheduled slot.

API docs: https://api.myshiptracking.com/
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

import httpx

from seatime.config import settings
from seatime.errors import NoDataForVessel, ProviderTimeout, ProviderUnavailable, RateLimited
from seatime.utils.geo import valid_coordinates
from seatime.utils.timestamps import parse_timestamp_flexible, utcnow

logger = logging.getLogger(__name__)

_SOURCE = "myshiptracking"
_SOG_NOT_AVAILABLE = 102.2

_LAT_KEYS = ("lat", "latitude", "LAT")
_LON_KEYS = ("lng", "lon", "longitude", "LON")
_SPEED_KEYS = ("speed", "sog", "SPEED")
_TIME_KEYS = ("received", "timestamp", "last_position_UTC", "time")
_STATUS_KEYS = ("nav_status", "navstat", "status_text", "STATUS")


@dataclass
class AISSample:
    speed_knots: float | None
    latitude: float | None
    longitude: float | None
    timestamp: datetime
    raw_status: str | None = None
    source: str = _SOURCE
    is_stale: bool = False

    @property
    def has_position(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class AISClient:
    """Per-vessel sampling client with a small in-process TTL cache."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        cache_ttl_seconds: int | None = None,
        stale_after_hours: float | None = None,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.api_key = api_key if api_key is not None else settings.MYSHIPTRACKING_API_KEY
        self.base_url = (base_url or settings.MYSHIPTRACKING_API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.AIS_REQUEST_TIMEOUT
        self.cache_ttl_seconds = (
            cache_ttl_seconds if cache_ttl_seconds is not None else settings.AIS_CACHE_TTL_SECONDS
        )
        self.stale_after_hours = (
            stale_after_hours if stale_after_hours is not None else settings.AIS_STALE_AFTER_HOURS
        )
        self._transport = transport
        self._clock = clock
        self._cache: dict[str, tuple[float, AISSample]] = {}
        self._cache_lock = threading.Lock()

    def fetch_sample(self, mmsi: str, force_refresh: bool = False) -> AISSample:
        """Return the vessel's current sample.

        ``force_refresh`` skips the local cache and asks the provider not to
        serve a cached answer either. Used for user-initiated checks.
        """
        if not force_refresh:
            cached = self._get_cached(mmsi)
            if cached is not None:
                logger.debug("AIS cache hit for MMSI %s", mmsi)
                return cached

        payload = self._request(mmsi, force_refresh)
        sample = parse_vessel_payload(
            payload, now=self._clock(), stale_after_hours=self.stale_after_hours
        )
        with self._cache_lock:
            self._cache[mmsi] = (time.monotonic(), sample)

        logger.info(
            "AIS sample for MMSI %s: speed=%s lat=%s lon=%s at %s%s",
            mmsi, sample.speed_knots, sample.latitude, sample.longitude,
            sample.timestamp.isoformat(), " (stale)" if sample.is_stale else "",
        )
        return sample

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()

    def _get_cached(self, mmsi: str) -> AISSample | None:
        if self.cache_ttl_seconds <= 0:
            return None
        with self._cache_lock:
            hit = self._cache.get(mmsi)
            if hit is None:
                return None
            stored_at, sample = hit
            if time.monotonic() - stored_at > self.cache_ttl_seconds:
                del self._cache[mmsi]
                return None
            return sample

    def _request(self, mmsi: str, force_refresh: bool) -> Any:
        if not self.api_key:
            raise ProviderUnavailable("MYSHIPTRACKING_API_KEY not configured")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }
        if force_refresh:
            headers["Cache-Control"] = "no-cache"
        params = {"mmsi": mmsi, "response": "extended"}
        url = f"{self.base_url}/vessel"

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                resp = client.get(url, params=params, headers=headers)
        except httpx.TimeoutException as exc:
            logger.warning("AIS request for MMSI %s timed out after %ss", mmsi, self.timeout)
            raise ProviderTimeout(f"AIS provider timed out after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            logger.warning("AIS request for MMSI %s failed: %s", mmsi, type(exc).__name__)
            raise ProviderUnavailable(f"AIS provider unreachable: {exc}") from exc

        if resp.status_code == 429:
            retry_after = _parse_retry_after(resp.headers.get("Retry-After"))
            logger.warning("AIS provider rate limited MMSI %s (retry after %s)", mmsi, retry_after)
            raise RateLimited(retry_after=retry_after)
        if resp.status_code == 404:
            raise NoDataForVessel(f"No AIS data for MMSI {mmsi}")
        if resp.status_code in (401, 403):
            logger.error("AIS provider rejected credentials: HTTP %d", resp.status_code)
            raise ProviderUnavailable(f"AIS provider rejected credentials (HTTP {resp.status_code})")
        if resp.status_code >= 400:
            logger.warning("AIS provider error for MMSI %s: HTTP %d", mmsi, resp.status_code)
            raise ProviderUnavailable(f"AIS provider error (HTTP {resp.status_code})")

        credits = resp.headers.get("X-Credits-Remaining")
        if credits is not None:
            logger.debug("MyShipTracking credits remaining: %s", credits)

        try:
            return resp.json()
        except ValueError as exc:
            raise ProviderUnavailable("AIS provider returned a non-JSON body") from exc


def parse_vessel_payload(
    payload: Any,
    now: datetime,
    stale_after_hours: float,
) -> AISSample:
    """Map a provider response body to an ``AISSample``.

    Raises NoDataForVessel when the body carries neither position nor speed.
    """
    if isinstance(payload, dict) and payload.get("status") == "error":
        message = str(payload.get("message") or payload.get("error") or "unknown error")
        if "not found" in message.lower() or "no data" in message.lower():
            raise NoDataForVessel(message)
        raise ProviderUnavailable(f"AIS provider error: {message}")

    data = payload.get("data", payload) if isinstance(payload, dict) else payload
    if isinstance(data, list):
        data = data[0] if data else None
    if not isinstance(data, dict) or not data:
        raise NoDataForVessel("AIS provider returned no vessel record")

    lat = _to_float(_first(data, _LAT_KEYS))
    lon = _to_float(_first(data, _LON_KEYS))
    if not valid_coordinates(lat, lon) or (lat == 0 and lon == 0):
        lat, lon = None, None

    speed = _to_float(_first(data, _SPEED_KEYS))
    if speed is not None and (speed < 0 or speed >= _SOG_NOT_AVAILABLE):
        speed = None

    if lat is None and speed is None:
        raise NoDataForVessel("AIS record has neither position nor speed")

    # No provider timestamp -> the poll time is the best observation time we have
    ts = parse_timestamp_flexible(_first(data, _TIME_KEYS)) or now
    is_stale = (now - ts) > timedelta(hours=stale_after_hours)

    raw_status = _first(data, _STATUS_KEYS)
    return AISSample(
        speed_knots=speed,
        latitude=lat,
        longitude=lon,
        timestamp=ts,
        raw_status=str(raw_status) if raw_status is not None else None,
        is_stale=is_stale,
    )


def _first(data: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None and value != "":
            return value
    return None


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


_default_client: AISClient | None = None
_default_client_lock = threading.Lock()


def get_default_client() -> AISClient:
    """Process-wide client so the sample cache is shared by scheduler and API."""
    global _default_client
    with _default_client_lock:
        if _default_client is None:
            _default_client = AISClient()
        return _default_client
