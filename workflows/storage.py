"""Persistence for itineraries and venues.

Venues are keyed by their places external id and are never overwritten:
a second insert raises ``DuplicateVenueError`` and the caller reads the
existing record instead. Itineraries get increasing integer ids.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Dict, Optional, Protocol

import redis
from redis.exceptions import ConnectionError, RedisError

from config import Settings, get_settings
from workflows.errors import DuplicateVenueError, NotFoundError, StorageError
from workflows.schemas import Itinerary, Venue

logger = logging.getLogger(__name__)


class PlanStorage(Protocol):
    def insert_venue(self, venue: Venue) -> Venue: ...

    def get_venue(self, external_id: str) -> Venue: ...

    def save_itinerary(self, itinerary: Itinerary) -> Itinerary: ...

    def get_itinerary(self, itinerary_id: int) -> Itinerary: ...


def upsert_venue(storage: PlanStorage, venue: Venue) -> Venue:
    """Insert ``venue``; on a duplicate external id return the stored record."""
    try:
        return storage.insert_venue(venue)
    except DuplicateVenueError:
        logger.debug(f"Venue {venue.external_id} already stored; reading existing record")
        return storage.get_venue(venue.external_id)


class InMemoryPlanStorage:
    """Process-local storage used when Redis is not configured."""

    def __init__(self) -> None:
        self._venues: Dict[str, Venue] = {}
        self._itineraries: Dict[int, Itinerary] = {}
        self._next_id = 0
        self._lock = threading.Lock()

    def insert_venue(self, venue: Venue) -> Venue:
        with self._lock:
            if venue.external_id in self._venues:
                raise DuplicateVenueError(venue.external_id)
            self._venues[venue.external_id] = venue
            return venue

    def get_venue(self, external_id: str) -> Venue:
        venue = self._venues.get(external_id)
        if venue is None:
            raise NotFoundError("Venue", external_id)
        return venue

    def save_itinerary(self, itinerary: Itinerary) -> Itinerary:
        with self._lock:
            self._next_id += 1
            stored = itinerary.model_copy(update={"id": self._next_id})
            self._itineraries[stored.id] = stored
        return stored

    def get_itinerary(self, itinerary_id: int) -> Itinerary:
        itinerary = self._itineraries.get(itinerary_id)
        if itinerary is None:
            raise NotFoundError("Itinerary", itinerary_id)
        return itinerary


class RedisPlanStorage:
    """Redis-backed storage.

    Keys:
        ``venue:{external_id}``  JSON venue, written with SET NX
        ``itinerary:{id}``       JSON itinerary, optional TTL
        ``itinerary:next_id``    INCR counter
    """

    def __init__(self, client: redis.Redis, ttl_seconds: Optional[int] = None) -> None:
        self._client = client
        self._ttl = ttl_seconds

    @classmethod
    def from_url(cls, url: str, ttl_seconds: Optional[int] = None) -> "RedisPlanStorage":
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            health_check_interval=30,
        )
        client.ping()
        return cls(client, ttl_seconds)

    def insert_venue(self, venue: Venue) -> Venue:
        data = venue.model_dump_json()
        try:
            created = self._client.set(f"venue:{venue.external_id}", data, nx=True)
        except RedisError as e:
            logger.error(f"Error storing venue {venue.external_id} in Redis: {e}")
            raise StorageError(f"Could not store venue {venue.external_id}") from e
        if not created:
            raise DuplicateVenueError(venue.external_id)
        return venue

    def get_venue(self, external_id: str) -> Venue:
        try:
            data = self._client.get(f"venue:{external_id}")
        except RedisError as e:
            logger.error(f"Error retrieving venue {external_id} from Redis: {e}")
            raise StorageError(f"Could not read venue {external_id}") from e
        if not data:
            raise NotFoundError("Venue", external_id)
        return Venue.model_validate_json(data)

    def save_itinerary(self, itinerary: Itinerary) -> Itinerary:
        try:
            itinerary_id = int(self._client.incr("itinerary:next_id"))
            stored = itinerary.model_copy(update={"id": itinerary_id})
            payload = json.dumps(stored.model_dump(mode="json"))
            if self._ttl:
                self._client.setex(f"itinerary:{itinerary_id}", self._ttl, payload)
            else:
                self._client.set(f"itinerary:{itinerary_id}", payload)
        except RedisError as e:
            logger.error(f"Error storing itinerary in Redis: {e}")
            raise StorageError("Could not store itinerary") from e
        return stored

    def get_itinerary(self, itinerary_id: int) -> Itinerary:
        try:
            data = self._client.get(f"itinerary:{itinerary_id}")
        except RedisError as e:
            logger.error(f"Error retrieving itinerary {itinerary_id} from Redis: {e}")
            raise StorageError(f"Could not read itinerary {itinerary_id}") from e
        if not data:
            raise NotFoundError("Itinerary", itinerary_id)
        return Itinerary.model_validate(json.loads(data))


def get_plan_storage(settings: Optional[Settings] = None) -> PlanStorage:
    """Redis storage when ``REDIS_URL`` is set and reachable, else in-memory."""
    settings = settings or get_settings()
    if settings.redis_url:
        try:
            storage = RedisPlanStorage.from_url(settings.redis_url, settings.itinerary_ttl_seconds)
            logger.info("Connected to Redis for plan storage")
            return storage
        except (ConnectionError, RedisError) as e:
            logger.warning(f"Failed to connect to Redis: {e}. Using in-memory storage.")
    else:
        logger.info("REDIS_URL not set. Using in-memory storage.")
    return InMemoryPlanStorage()


__all__ = [
    "InMemoryPlanStorage",
    "PlanStorage",
    "RedisPlanStorage",
    "get_plan_storage",
    "upsert_venue",
]
