"""Global configuration for the day planner.

This module loads environment variables from the .env file and exposes them as
an immutable ``Settings`` snapshot. Components receive a snapshot through their
constructors; ``reload_settings()`` builds a fresh snapshot instead of mutating
the one already handed out.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load environment variables from .env file
# Look for .env in the project root directory
env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)


def _get_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw in (None, ""):
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid float for {name}: {raw!r}")
        return default


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid int for {name}: {raw!r}")
        return default


def _get_float_list(env: Mapping[str, str], name: str, default: Tuple[float, ...]) -> Tuple[float, ...]:
    raw = env.get(name)
    if not raw:
        return default
    values = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            values.append(float(part))
        except ValueError:
            logger.warning(f"Ignoring invalid value in {name}: {part!r}")
    return tuple(values) or default


@dataclass(frozen=True)
class BreakerSettings:
    failure_threshold: int
    cooldown_seconds: float


@dataclass(frozen=True)
class Settings:
    """Read-only configuration snapshot."""

    # ========================================================================
    # Language Model Configuration
    # ========================================================================
    model_name: str = "gemini-2.0-flash"
    extraction_temperatures: Tuple[float, ...] = (0.2, 0.4)

    # ========================================================================
    # API Keys
    # ========================================================================
    google_api_key: Optional[str] = None
    google_maps_api_key: Optional[str] = None

    # ========================================================================
    # HTTP / Venue Search
    # ========================================================================
    http_timeout_s: float = 20.0
    places_page_size: int = 10
    max_alternatives: int = 3

    # ========================================================================
    # Caching
    # ========================================================================
    cache_max_size: int = 1000
    extraction_cache_ttl_seconds: float = 1800.0
    places_cache_ttl_seconds: float = 300.0
    weather_cache_ttl_seconds: float = 1800.0

    # ========================================================================
    # Circuit Breakers
    # ========================================================================
    nlp_breaker: BreakerSettings = field(default_factory=lambda: BreakerSettings(3, 30.0))
    places_breaker: BreakerSettings = field(default_factory=lambda: BreakerSettings(5, 60.0))
    weather_breaker: BreakerSettings = field(default_factory=lambda: BreakerSettings(5, 120.0))

    # ========================================================================
    # Storage
    # ========================================================================
    redis_url: Optional[str] = None
    itinerary_ttl_seconds: Optional[int] = None

    default_city: str = "london"

    @property
    def llm_timeout_s(self) -> float:
        return self.http_timeout_s * 3


# ============================================================================
# AWS Secrets Manager Integration
# ============================================================================

def _get_secret_from_aws(secret_name: str, region: str) -> Optional[dict]:
    """Fetch secret from AWS Secrets Manager."""
    try:
        client = boto3.client("secretsmanager", region_name=region)
        response = client.get_secret_value(SecretId=secret_name)
        return json.loads(response["SecretString"])
    except (ClientError, BotoCoreError) as e:
        logger.warning(f"Failed to fetch secret from AWS Secrets Manager: {e}")
        return None
    except (KeyError, ValueError) as e:
        logger.warning(f"AWS secret {secret_name} is not a JSON object: {e}")
        return None


def _get_api_key_with_fallback(
    env: Mapping[str, str],
    names: Tuple[str, ...],
    secrets: Optional[dict],
) -> Optional[str]:
    """Return the first key found in the environment, then in the AWS secret."""
    for name in names:
        value = env.get(name)
        if value:
            return value
    if secrets:
        for name in names:
            if secrets.get(name):
                return secrets[name]
    return None


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build a fresh ``Settings`` from ``environ`` (defaults to ``os.environ``)."""
    env = os.environ if environ is None else environ

    secrets = None
    secret_name = env.get("AWS_SECRETS_MANAGER_SECRET_NAME")
    if secret_name:
        secrets = _get_secret_from_aws(secret_name, env.get("AWS_REGION", "us-east-1"))

    ttl = _get_int(env, "ITINERARY_TTL_SECONDS", 0)

    return Settings(
        model_name=env.get("DEFAULT_MODEL_NAME", "gemini-2.0-flash"),
        extraction_temperatures=_get_float_list(env, "EXTRACTION_TEMPERATURES", (0.2, 0.4)),
        google_api_key=_get_api_key_with_fallback(env, ("GOOGLE_API_KEY", "GEMINI_API_KEY"), secrets),
        google_maps_api_key=_get_api_key_with_fallback(env, ("GOOGLE_MAPS_API_KEY",), secrets),
        http_timeout_s=_get_float(env, "HTTP_TIMEOUT_S", 20.0),
        places_page_size=max(1, min(_get_int(env, "PLACES_PAGE_SIZE", 10), 20)),
        max_alternatives=max(0, _get_int(env, "MAX_ALTERNATIVES", 3)),
        cache_max_size=max(1, _get_int(env, "CACHE_MAX_SIZE", 1000)),
        extraction_cache_ttl_seconds=_get_float(env, "EXTRACTION_CACHE_TTL_SECONDS", 1800.0),
        places_cache_ttl_seconds=_get_float(env, "PLACES_CACHE_TTL_SECONDS", 300.0),
        weather_cache_ttl_seconds=_get_float(env, "WEATHER_CACHE_TTL_SECONDS", 1800.0),
        nlp_breaker=BreakerSettings(
            _get_int(env, "NLP_BREAKER_THRESHOLD", 3),
            _get_float(env, "NLP_BREAKER_COOLDOWN_S", 30.0),
        ),
        places_breaker=BreakerSettings(
            _get_int(env, "PLACES_BREAKER_THRESHOLD", 5),
            _get_float(env, "PLACES_BREAKER_COOLDOWN_S", 60.0),
        ),
        weather_breaker=BreakerSettings(
            _get_int(env, "WEATHER_BREAKER_THRESHOLD", 5),
            _get_float(env, "WEATHER_BREAKER_COOLDOWN_S", 120.0),
        ),
        redis_url=env.get("REDIS_URL") or None,
        itinerary_ttl_seconds=ttl or None,
        default_city=(env.get("DEFAULT_CITY") or "london").strip().lower(),
    )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the current settings snapshot, loading it on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reload_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Re-read the environment and publish a new snapshot.

    Components constructed before the reload keep the snapshot they were given.
    """
    global _settings
    _settings = load_settings(environ)
    logger.info("Configuration reloaded")
    return _settings


# ============================================================================
# Validation
# ============================================================================

def validate_api_keys(settings: Optional[Settings] = None) -> List[str]:
    """Validate that required API keys are present. Returns list of missing keys."""
    settings = settings or get_settings()
    missing = []

    if not settings.google_maps_api_key:
        missing.append("GOOGLE_MAPS_API_KEY")

    if not settings.google_api_key:
        missing.append("GOOGLE_API_KEY or GEMINI_API_KEY")

    return missing
