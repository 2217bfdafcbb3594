"""
Circuit breaker pattern for ETL fault isolation.

Breakers are keyed by (scope, fault type), where the scope is normally a game
code. Repeated failures of one kind (database, image queue, ...) turn into
fast admission denials for that kind only, so a degraded dependency stops
being hammered while unrelated cards keep flowing.
"""
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

import structlog

from tcg_catalog.core.config import settings
from tcg_catalog.core.errors import ETLErrorType

logger = structlog.get_logger()


class CircuitState(Enum):
    CLOSED = "closed"      # Normal operation
    OPEN = "open"          # Failing fast
    HALF_OPEN = "half_open"  # Testing recovery


class FaultType(str, Enum):
    GAME_LEVEL = "game_level"
    DATABASE = "database"
    API_RATE_LIMIT = "api_rate_limit"
    VALIDATION = "validation"
    IMAGE_PROCESSING = "image_processing"
    EXTERNAL_SERVICE = "external_service"


@dataclass(frozen=True)
class BreakerConfig:
    threshold: int
    reset_timeout: float  # seconds
    max_half_open_attempts: int
    enabled: bool = True


def default_breaker_configs() -> dict[FaultType, BreakerConfig]:
    """
    Static per-fault-type breaker table.

    Only the game-level entry reads settings; card-level entries are fixed.
    """
    return {
        FaultType.GAME_LEVEL: BreakerConfig(
            threshold=settings.etl_circuit_breaker_threshold,
            reset_timeout=settings.etl_circuit_breaker_reset_timeout_ms / 1000,
            max_half_open_attempts=3,
        ),
        FaultType.DATABASE: BreakerConfig(threshold=5, reset_timeout=30.0, max_half_open_attempts=2),
        FaultType.API_RATE_LIMIT: BreakerConfig(threshold=3, reset_timeout=60.0, max_half_open_attempts=1),
        FaultType.VALIDATION: BreakerConfig(threshold=10, reset_timeout=15.0, max_half_open_attempts=2),
        FaultType.IMAGE_PROCESSING: BreakerConfig(threshold=8, reset_timeout=45.0, max_half_open_attempts=3),
        FaultType.EXTERNAL_SERVICE: BreakerConfig(threshold=5, reset_timeout=60.0, max_half_open_attempts=2),
    }


_ERROR_FAULT_TYPES: dict[ETLErrorType, FaultType] = {
    ETLErrorType.DATABASE_ERROR: FaultType.DATABASE,
    ETLErrorType.API_ERROR: FaultType.API_RATE_LIMIT,
    ETLErrorType.VALIDATION_ERROR: FaultType.VALIDATION,
    ETLErrorType.IMAGE_ERROR: FaultType.IMAGE_PROCESSING,
}


def fault_type_for_error(error_type: ETLErrorType | None) -> FaultType:
    """Map an ETL error type to the breaker that tracks it."""
    if error_type is None:
        return FaultType.EXTERNAL_SERVICE
    return _ERROR_FAULT_TYPES.get(error_type, FaultType.EXTERNAL_SERVICE)


@dataclass
class CircuitBreaker:
    """
    Circuit breaker for one (scope, fault type) pair.

    States:
    - CLOSED: Normal operation, calls are admitted
    - OPEN: Dependency unhealthy, calls are denied
    - HALF_OPEN: A bounded number of trial calls are admitted

    Not thread-safe on its own; CircuitBreakerRegistry serializes access.
    """
    scope: str
    fault_type: FaultType
    failure_threshold: int = 5       # Consecutive failures before opening
    recovery_timeout: float = 30.0   # Seconds before trying half-open
    max_half_open_attempts: int = 2  # Trial calls admitted while half-open

    # State
    state: CircuitState = field(default=CircuitState.CLOSED)
    consecutive_failures: int = field(default=0)
    failure_count: int = field(default=0)
    success_count: int = field(default=0)
    half_open_attempts: int = field(default=0)
    last_failure_time: Optional[float] = field(default=None)
    last_success_time: Optional[float] = field(default=None)

    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    @property
    def name(self) -> str:
        return f"{self.scope}:{self.fault_type.value}"

    def admit(self) -> bool:
        """Decide whether a call may proceed, moving OPEN to HALF_OPEN when due."""
        if self.state == CircuitState.OPEN:
            if not self._should_attempt_recovery():
                return False
            self.state = CircuitState.HALF_OPEN
            self.half_open_attempts = 0
            logger.info(
                "Circuit breaker entering half-open state",
                breaker=self.name,
            )

        if self.state == CircuitState.HALF_OPEN:
            if self.half_open_attempts >= self.max_half_open_attempts:
                return False
            self.half_open_attempts += 1
            return True

        return True

    def _should_attempt_recovery(self) -> bool:
        if self.last_failure_time is None:
            return True
        return self.clock() - self.last_failure_time > self.recovery_timeout

    def time_until_recovery(self) -> float:
        if self.state != CircuitState.OPEN or self.last_failure_time is None:
            return 0
        elapsed = self.clock() - self.last_failure_time
        return max(0, self.recovery_timeout - elapsed)

    def record_success(self):
        self.success_count += 1
        self.consecutive_failures = 0
        self.last_success_time = self.clock()

        if self.state == CircuitState.HALF_OPEN:
            self.state = CircuitState.CLOSED
            self.half_open_attempts = 0
            logger.info(
                "Circuit breaker closed after successful trial call",
                breaker=self.name,
                success_count=self.success_count,
            )

    def record_failure(self, error: BaseException | str | None = None):
        self.failure_count += 1
        self.consecutive_failures += 1
        self.last_failure_time = self.clock()

        if self.state == CircuitState.HALF_OPEN:
            self.state = CircuitState.OPEN
            self.half_open_attempts = 0
            logger.warning(
                "Circuit breaker reopened after half-open failure",
                breaker=self.name,
                error=str(error) if error else None,
                consecutive_failures=self.consecutive_failures,
            )
        elif (
            self.state == CircuitState.CLOSED
            and self.consecutive_failures >= self.failure_threshold
        ):
            self.state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened due to consecutive failures",
                breaker=self.name,
                error=str(error) if error else None,
                consecutive_failures=self.consecutive_failures,
                threshold=self.failure_threshold,
            )

    def reset(self):
        """Manually reset the circuit breaker to closed state."""
        self.state = CircuitState.CLOSED
        self.consecutive_failures = 0
        self.half_open_attempts = 0
        self.last_failure_time = None


class CircuitBreakerRegistry:
    """
    Mutex-guarded map of breakers keyed by (scope, fault type).

    One registry is shared by every worker of an ETL service. Breakers are
    created lazily in the CLOSED state and live only in process memory.

    Usage:
        breakers = CircuitBreakerRegistry()

        if breakers.admit("MTG", FaultType.DATABASE):
            ...
            breakers.record_success("MTG", FaultType.DATABASE)
    """

    def __init__(
        self,
        configs: dict[FaultType, BreakerConfig] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._configs = configs or default_breaker_configs()
        self._clock = clock
        self._breakers: dict[tuple[str, FaultType], CircuitBreaker] = {}
        self._lock = threading.Lock()

    def config_for(self, fault_type: FaultType) -> BreakerConfig:
        return self._configs[fault_type]

    def _get(self, scope: str, fault_type: FaultType) -> CircuitBreaker:
        key = (scope, fault_type)
        breaker = self._breakers.get(key)
        if breaker is None:
            config = self._configs[fault_type]
            breaker = CircuitBreaker(
                scope=scope,
                fault_type=fault_type,
                failure_threshold=config.threshold,
                recovery_timeout=config.reset_timeout,
                max_half_open_attempts=config.max_half_open_attempts,
                clock=self._clock,
            )
            self._breakers[key] = breaker
        return breaker

    def admit(self, scope: str, fault_type: FaultType) -> bool:
        if not self._configs[fault_type].enabled:
            return True
        with self._lock:
            return self._get(scope, fault_type).admit()

    def record_success(self, scope: str, fault_type: FaultType) -> None:
        with self._lock:
            self._get(scope, fault_type).record_success()

    def record_failure(
        self,
        scope: str,
        fault_type: FaultType,
        error: BaseException | str | None = None,
    ) -> None:
        if not self._configs[fault_type].enabled:
            return
        with self._lock:
            self._get(scope, fault_type).record_failure(error)

    def state(self, scope: str, fault_type: FaultType) -> CircuitState:
        """Current state without triggering an OPEN to HALF_OPEN transition."""
        with self._lock:
            breaker = self._breakers.get((scope, fault_type))
            return breaker.state if breaker else CircuitState.CLOSED

    def get(self, scope: str, fault_type: FaultType) -> CircuitBreaker | None:
        with self._lock:
            return self._breakers.get((scope, fault_type))

    def reset(self) -> None:
        """Drop every breaker. Useful for testing."""
        with self._lock:
            self._breakers.clear()
