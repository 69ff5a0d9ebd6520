"""Typed errors raised by the planning pipeline.

Client-caused failures carry a 4xx ``status_code``, system-caused failures a
5xx one. ``is_operational`` is False for errors whose message should not be
shown to end users verbatim.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class PlannerError(Exception):
    """Base class for every error the planner raises on purpose."""

    status_code: int = 500
    is_operational: bool = True

    def __init__(self, message: str, *, status_code: Optional[int] = None, is_operational: Optional[bool] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if is_operational is not None:
            self.is_operational = is_operational

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message if self.is_operational else "Internal error",
            "status_code": self.status_code,
        }


# ============================================================================
# Client-caused (4xx)
# ============================================================================

class ValidationError(PlannerError):
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        if self.field:
            payload["field"] = self.field
        return payload


class UnknownCityError(ValidationError):
    def __init__(self, slug: str):
        super().__init__(f"Unsupported city: {slug}", field="city_slug")
        self.slug = slug


class NotFoundError(PlannerError):
    status_code = 404

    def __init__(self, resource: str, identifier: Any):
        super().__init__(f"{resource} with ID {identifier} not found")
        self.resource = resource
        self.identifier = identifier


class RateLimitError(PlannerError):
    status_code = 429

    def __init__(self, message: str = "Too many requests"):
        super().__init__(message)


# ============================================================================
# Upstream services
# ============================================================================

class UpstreamServiceError(PlannerError):
    """An external dependency failed after retries."""

    status_code = 502
    service = "upstream"


class ExtractionServiceError(UpstreamServiceError):
    service = "nlp"


class PlacesServiceError(UpstreamServiceError):
    service = "places"


class WeatherServiceError(UpstreamServiceError):
    status_code = 503
    service = "weather"


class CircuitOpenError(UpstreamServiceError):
    status_code = 503

    def __init__(self, service: str, retry_after: float):
        super().__init__(f"{service} circuit is open; retry in {retry_after:.0f}s")
        self.service = service
        self.retry_after = retry_after


# ============================================================================
# System-caused (5xx)
# ============================================================================

class ConfigurationError(PlannerError):
    status_code = 500


class StorageError(PlannerError):
    status_code = 500
    is_operational = False


class DuplicateVenueError(StorageError):
    def __init__(self, external_id: str):
        super().__init__(f"Venue {external_id} already exists")
        self.external_id = external_id


def is_client_error(exc: BaseException) -> bool:
    return isinstance(exc, PlannerError) and 400 <= exc.status_code < 500


def is_system_error(exc: BaseException) -> bool:
    """Anything that is not a client error counts as system-caused."""
    return not is_client_error(exc)


__all__ = [
    "CircuitOpenError",
    "ConfigurationError",
    "DuplicateVenueError",
    "ExtractionServiceError",
    "NotFoundError",
    "PlacesServiceError",
    "PlannerError",
    "RateLimitError",
    "StorageError",
    "UnknownCityError",
    "UpstreamServiceError",
    "ValidationError",
    "WeatherServiceError",
    "is_client_error",
    "is_system_error",
]
