# tools/weather.py
"""
Hourly weather lookup for outdoor-venue checks.
Provider: Open-Meteo (forecast only, ~15 days ahead, no API key).
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from workflows.errors import WeatherServiceError
from workflows.schemas import WeatherReport

FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

_WMO_SUMMARY = {
    0: "Clear sky", 1: "Partly cloudy", 2: "Partly cloudy", 3: "Overcast",
    45: "Foggy", 48: "Foggy",
    **{c: "Drizzle" for c in (51, 53, 55, 56, 57)},
    **{c: "Rain" for c in (61, 63, 65, 66, 67)},
    **{c: "Snow" for c in (71, 73, 75, 77)},
    **{c: "Rain showers" for c in (80, 81, 82)},
    **{c: "Snow showers" for c in (85, 86)},
    **{c: "Thunderstorm" for c in (95, 96, 99)},
}

OUTDOOR_TYPES = frozenset({
    "park", "zoo", "amusement_park", "tourist_attraction", "stadium", "campground",
    "rv_park", "beach", "lake", "natural_feature", "hiking_area", "golf_course",
    "garden", "botanical_garden", "national_park", "playground", "marina",
})
OUTDOOR_NAME_KEYWORDS = (
    "park", "garden", "outdoor", "patio", "terrace", "rooftop", "beach", "pier", "market", "square",
)

MIN_TEMP_C = 5.0
MAX_TEMP_C = 35.0
MAX_WIND_MS = 15.0
BAD_CONDITIONS = ("rain", "thunderstorm", "snow", "drizzle")

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in _RETRYABLE_STATUS
    return isinstance(exc, httpx.RequestError)


@retry(
    retry=retry_if_exception(_is_retryable),
    wait=wait_exponential(multiplier=0.6, min=0.6, max=6),
    stop=stop_after_attempt(3),
    reraise=True,
)
def _request(method: str, url: str, **kw) -> httpx.Response:
    with httpx.Client(timeout=kw.pop("timeout", 20)) as c:
        r = c.request(method, url, **kw)
        r.raise_for_status()
        return r


def is_outdoor_venue(types: Iterable[str], name: Optional[str] = None) -> bool:
    """Classify a venue as outdoor by its place types or name keywords."""
    if any(t in OUTDOOR_TYPES for t in types or ()):
        return True
    lowered = (name or "").lower()
    return any(keyword in lowered for keyword in OUTDOOR_NAME_KEYWORDS)


def get_hourly_forecast(lat: float, lng: float, when: datetime, *, timeout: float = 20.0) -> List[Dict[str, Any]]:
    """
    Fetch hourly forecast around ``when`` for the given coordinates.

    Returns:
        [{"time": datetime (UTC), "temperature_c": 12.1, "precipitation_mm": 0.0,
          "wind_speed_ms": 3.2, "weather_code": 3, "condition": "Overcast"}, ...]
    """
    when_utc = when.astimezone(timezone.utc)
    params = {
        "latitude": lat,
        "longitude": lng,
        "hourly": "temperature_2m,precipitation,weather_code,wind_speed_10m",
        "start_date": (when_utc - timedelta(days=1)).strftime("%Y-%m-%d"),
        "end_date": (when_utc + timedelta(days=1)).strftime("%Y-%m-%d"),
        "timezone": "GMT",
        "temperature_unit": "celsius",
        "wind_speed_unit": "ms",
        "precipitation_unit": "mm",
    }
    try:
        r = _request("GET", FORECAST_URL, params=params, timeout=timeout)
    except httpx.HTTPStatusError as e:
        raise WeatherServiceError(f"Open-Meteo returned {e.response.status_code}") from e
    except httpx.RequestError as e:
        raise WeatherServiceError(f"Open-Meteo request failed: {e}") from e

    try:
        data = r.json()
    except ValueError as e:
        raise WeatherServiceError("Open-Meteo returned a non-JSON body") from e
    hourly = (data.get("hourly") or {}) if isinstance(data, dict) else None
    if not isinstance(hourly, dict):
        raise WeatherServiceError("Open-Meteo returned an unexpected payload")
    times = hourly.get("time", [])
    temps = hourly.get("temperature_2m", [])
    precip = hourly.get("precipitation", [])
    codes = hourly.get("weather_code", [])
    winds = hourly.get("wind_speed_10m", [])

    def _at(values: List[Any], i: int) -> Any:
        return values[i] if i < len(values) else None

    out: List[Dict[str, Any]] = []
    for i, stamp in enumerate(times):
        try:
            moment = datetime.fromisoformat(stamp).replace(tzinfo=timezone.utc)
        except (TypeError, ValueError):
            continue
        code = _at(codes, i)
        out.append({
            "time": moment,
            "temperature_c": _at(temps, i),
            "precipitation_mm": _at(precip, i),
            "wind_speed_ms": _at(winds, i),
            "weather_code": code,
            "condition": _WMO_SUMMARY.get(int(code), "Unknown") if code is not None else "Unknown",
        })
    return out


def nearest_forecast(forecast: List[Dict[str, Any]], when: datetime) -> Optional[Dict[str, Any]]:
    if not forecast:
        return None
    return min(forecast, key=lambda entry: abs((entry["time"] - when).total_seconds()))


def assess_conditions(entry: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """Return ``(suitable, reason)`` for an outdoor visit."""
    temp = entry.get("temperature_c")
    condition = (entry.get("condition") or "").lower()
    wind = entry.get("wind_speed_ms")

    if temp is not None and temp < MIN_TEMP_C:
        return False, f"Too cold ({temp:.0f}°C)"
    if temp is not None and temp > MAX_TEMP_C:
        return False, f"Too hot ({temp:.0f}°C)"
    if any(bad in condition for bad in BAD_CONDITIONS):
        return False, f"{entry.get('condition')} forecast"
    if wind is not None and wind > MAX_WIND_MS:
        return False, f"High wind ({wind:.0f} m/s)"
    return True, None


def get_weather_at(lat: float, lng: float, when: datetime, *, timeout: float = 20.0) -> Optional[WeatherReport]:
    """Forecast for the hour nearest ``when``; None when the provider has no data."""
    entry = nearest_forecast(get_hourly_forecast(lat, lng, when, timeout=timeout), when)
    if entry is None:
        return None
    suitable, reason = assess_conditions(entry)
    return WeatherReport(
        time=entry["time"],
        temperature_c=entry.get("temperature_c"),
        condition=entry.get("condition") or "Unknown",
        precipitation_mm=entry.get("precipitation_mm"),
        wind_speed_ms=entry.get("wind_speed_ms"),
        suitable=suitable,
        reason=reason,
    )


__all__ = [
    "assess_conditions",
    "get_hourly_forecast",
    "get_weather_at",
    "is_outdoor_venue",
    "nearest_forecast",
]
