"""City gazetteer registry.

City configurations are plain module-level constants. The registry is built
once at import and handed out read-only.
"""
from __future__ import annotations

import logging
import re
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from cities import austin, boston, london, nyc
from workflows.errors import UnknownCityError
from workflows.schemas import CityConfig

__all__ = ["CITY_REGISTRY", "detect_city", "get_city_config", "list_cities", "matches_city_address"]

logger = logging.getLogger(__name__)


def _build_registry(*configs: CityConfig) -> Mapping[str, CityConfig]:
    registry: Dict[str, CityConfig] = {}
    for config in configs:
        slug = config.slug.lower()
        if slug in registry:
            logger.warning(f"Overwriting configuration for city: {config.name} (slug: {slug})")
        registry[slug] = config
    return MappingProxyType(registry)


CITY_REGISTRY: Mapping[str, CityConfig] = _build_registry(london.CITY, nyc.CITY, boston.CITY, austin.CITY)


def get_city_config(slug: str) -> CityConfig:
    """Return the config for ``slug`` or raise ``UnknownCityError``."""
    config = CITY_REGISTRY.get((slug or "").strip().lower())
    if config is None:
        raise UnknownCityError(slug)
    return config


def list_cities() -> List[CityConfig]:
    return list(CITY_REGISTRY.values())


def matches_city_address(address: Optional[str], city: CityConfig) -> bool:
    """True when ``address`` mentions one of the city's region aliases.

    Aliases of two characters or fewer ("ny", "ma", "uk") only count as a
    whole comma/space-delimited token, otherwise "ma" would match "Mayfair".
    """
    if not address:
        return False
    text = address.lower()
    for alias in city.filter_aliases:
        if len(alias) <= 2:
            if re.search(rf"[, ]{re.escape(alias)}(?:[, ]|$)", text):
                return True
        elif alias in text:
            return True
    return False


def detect_city(text: str) -> Optional[CityConfig]:
    """Guess the city a free-text query refers to, if it names one."""
    lowered = f" {(text or '').lower()} "
    for config in CITY_REGISTRY.values():
        for alias in (config.name.lower(), config.slug) + config.filter_aliases:
            if len(alias) <= 3:
                continue
            if re.search(rf"\b{re.escape(alias)}\b", lowered):
                return config
    return None
