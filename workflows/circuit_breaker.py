"""Circuit breaker shared by the external dependencies (LLM, places, weather)."""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type, TypeVar

from config import Settings, get_settings
from workflows.errors import CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Opens after ``failure_threshold`` consecutive failures.

    While open, calls fail fast with ``CircuitOpenError``. Once
    ``cooldown_seconds`` have passed a single probe is let through
    (half-open); its outcome closes or re-opens the circuit.
    """

    def __init__(
        self,
        name: str,
        *,
        failure_threshold: int = 5,
        cooldown_seconds: float = 60.0,
        excluded: Tuple[Type[BaseException], ...] = (),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.failure_threshold = max(1, failure_threshold)
        self.cooldown_seconds = cooldown_seconds
        self.excluded = excluded
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at: Optional[float] = None
        self._probe_in_flight = False
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._maybe_half_open()
            return self._state

    @property
    def failure_count(self) -> int:
        return self._failures

    def _maybe_half_open(self) -> None:
        if self._state is CircuitState.OPEN and self._opened_at is not None:
            if self._clock() - self._opened_at >= self.cooldown_seconds:
                self._state = CircuitState.HALF_OPEN
                self._probe_in_flight = False
                logger.info(f"Circuit '{self.name}' half-open; probing")

    def _before_call(self) -> None:
        with self._lock:
            self._maybe_half_open()
            if self._state is CircuitState.OPEN:
                remaining = self.cooldown_seconds - (self._clock() - (self._opened_at or 0.0))
                raise CircuitOpenError(self.name, max(0.0, remaining))
            if self._state is CircuitState.HALF_OPEN:
                if self._probe_in_flight:
                    raise CircuitOpenError(self.name, self.cooldown_seconds)
                self._probe_in_flight = True

    def record_success(self) -> None:
        with self._lock:
            if self._state is not CircuitState.CLOSED:
                logger.info(f"Circuit '{self.name}' closed")
            self._state = CircuitState.CLOSED
            self._failures = 0
            self._opened_at = None
            self._probe_in_flight = False

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            self._probe_in_flight = False
            if self._state is CircuitState.HALF_OPEN or self._failures >= self.failure_threshold:
                if self._state is not CircuitState.OPEN:
                    logger.warning(
                        f"Circuit '{self.name}' opened after {self._failures} failures; "
                        f"cooling down for {self.cooldown_seconds:.0f}s"
                    )
                self._state = CircuitState.OPEN
                self._opened_at = self._clock()

    def _settle(self, exc: BaseException) -> None:
        if self.excluded and isinstance(exc, self.excluded):
            self.record_success()
        else:
            self.record_failure()

    def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        self._before_call()
        try:
            result = func(*args, **kwargs)
        except Exception as exc:
            self._settle(exc)
            raise
        self.record_success()
        return result

    async def acall(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        self._before_call()
        try:
            result = await func(*args, **kwargs)
        except Exception as exc:
            self._settle(exc)
            raise
        self.record_success()
        return result

    def reset(self) -> None:
        self.record_success()

    def snapshot(self) -> Dict[str, Any]:
        return {"name": self.name, "state": self.state.value, "failures": self._failures}


class CircuitBreakerRegistry:
    """Named breakers for the planner's external dependencies."""

    def __init__(self, settings: Optional[Settings] = None, clock: Callable[[], float] = time.monotonic) -> None:
        settings = settings or get_settings()
        self._breakers: Dict[str, CircuitBreaker] = {}
        for name, conf in (
            ("nlp", settings.nlp_breaker),
            ("places", settings.places_breaker),
            ("weather", settings.weather_breaker),
        ):
            self._breakers[name] = CircuitBreaker(
                name,
                failure_threshold=conf.failure_threshold,
                cooldown_seconds=conf.cooldown_seconds,
                clock=clock,
            )

    def __getitem__(self, name: str) -> CircuitBreaker:
        return self._breakers[name]

    @property
    def nlp(self) -> CircuitBreaker:
        return self._breakers["nlp"]

    @property
    def places(self) -> CircuitBreaker:
        return self._breakers["places"]

    @property
    def weather(self) -> CircuitBreaker:
        return self._breakers["weather"]

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        return {name: breaker.snapshot() for name, breaker in self._breakers.items()}


__all__ = ["CircuitBreaker", "CircuitBreakerRegistry", "CircuitState"]
