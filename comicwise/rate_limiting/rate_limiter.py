"""
Rate Limiter

Fixed-window request counting per identifier, stored in the key-value store
under ``ratelimit:<identifier>``.

Algorithm (per check):
1. INCR the counter
2. On the first hit of a window (count == 1) EXPIRE it to the window length
3. If the counter has no TTL (an earlier EXPIRE was lost), re-arm it
4. allowed = count <= limit, remaining = max(0, limit - count)
5. reset_at = now + remaining TTL (epoch milliseconds)

Fail-open: if the store raises, or returns a non-positive counter (its safe
default during an outage), the request is allowed with ``remaining = limit``.
Availability wins over strict enforcement.

Known limitation: a fixed window admits up to twice the limit across a window
boundary (a burst at the end of one window plus one at the start of the next).
"""

import asyncio
import math
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass

from comicwise.config.constants import RATE_LIMIT_KEY_PREFIX, Stage
from comicwise.config.settings import get_settings
from comicwise.core.exceptions import ConfigurationError, RateLimitExceededError
from comicwise.core.interfaces.store import KeyValueStore
from comicwise.core.logging.logger import get_logger, log_stage
from comicwise.infrastructure.cache.store_factory import get_store
from comicwise.infrastructure.monitoring.metrics_collector import get_metrics_collector

logger = get_logger(__name__)


# ============================================================================
# Data Types
# ============================================================================


@dataclass(frozen=True)
class RateLimitConfig:
    """``requests`` allowed per ``window`` seconds."""

    requests: int
    window: int

    def __post_init__(self):
        if self.requests <= 0 or self.window <= 0:
            raise ConfigurationError(
                "Rate limit requests and window must be positive",
                details={"requests": self.requests, "window": self.window},
            )


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one rate limit check. ``reset_at`` is epoch milliseconds."""

    allowed: bool
    remaining: int
    reset_at: int
    limit: int

    def retry_after(self, now_ms: int | None = None) -> int:
        """Whole seconds until the window resets (never negative)."""
        now_ms = int(time.time() * 1000) if now_ms is None else now_ms
        return max(0, math.ceil((self.reset_at - now_ms) / 1000))

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class RateLimitStatus:
    """Current record for an identifier, without counting a request."""

    exists: bool
    count: int = 0
    reset_at: int | None = None


# ============================================================================
# Presets
# ============================================================================

RATE_LIMIT_PRESETS: dict[str, dict[str, RateLimitConfig]] = {
    "auth": {
        "sign_in": RateLimitConfig(requests=5, window=300),
        "sign_up": RateLimitConfig(requests=3, window=3600),
        "reset_password": RateLimitConfig(requests=3, window=3600),
        "verify_email": RateLimitConfig(requests=5, window=300),
    },
    "api": {
        "default": RateLimitConfig(requests=100, window=60),
        "search": RateLimitConfig(requests=20, window=60),
        "upload": RateLimitConfig(requests=10, window=3600),
        "create": RateLimitConfig(requests=30, window=3600),
        "update": RateLimitConfig(requests=50, window=3600),
        "delete": RateLimitConfig(requests=20, window=3600),
    },
    "user": {
        "comment": RateLimitConfig(requests=10, window=300),
        "bookmark": RateLimitConfig(requests=50, window=300),
        "rating": RateLimitConfig(requests=20, window=300),
    },
}


def get_preset(category: str, action: str) -> RateLimitConfig:
    """
    Look up a named preset, e.g. ``get_preset("auth", "sign_in")``.

    Raises:
        ConfigurationError: For an unknown category or action
    """
    try:
        return RATE_LIMIT_PRESETS[category][action]
    except KeyError:
        raise ConfigurationError(
            f"Unknown rate limit preset: {category}.{action}",
            details={"available": {c: sorted(a) for c, a in RATE_LIMIT_PRESETS.items()}},
        ) from None


def build_identifier(user_id: str | None = None, ip: str | None = None, action: str | None = None) -> str:
    """
    ``user:<id>`` for signed-in users, else ``ip:<address>``, optionally
    scoped to an action (``sign_in:ip:1.2.3.4``).
    """
    base = f"user:{user_id}" if user_id else f"ip:{ip or 'unknown'}"
    return f"{action}:{base}" if action else base


def default_config() -> RateLimitConfig:
    settings = get_settings()
    return RateLimitConfig(
        requests=settings.rate_limit.RATE_LIMIT_DEFAULT_REQUESTS,
        window=settings.rate_limit.RATE_LIMIT_DEFAULT_WINDOW,
    )


# ============================================================================
# Rate Limiter
# ============================================================================


class RateLimiter:
    """
    Fixed-window rate limiter over a key-value store.

    Usage:
        limiter = RateLimiter(store)
        result = await limiter.check("ip:1.2.3.4", RateLimitConfig(100, 60))
        if not result.allowed:
            ...  # 429
    """

    def __init__(self, store: KeyValueStore, clock: Callable[[], float] = time.time):
        """
        Args:
            store: Key-value store holding the counters
            clock: Wall-clock source in seconds, used for reset timestamps
        """
        self._store = store
        self._clock = clock
        self._metrics = get_metrics_collector()
        self._sweeper: asyncio.Task | None = None

    @staticmethod
    def key_for(identifier: str) -> str:
        return f"{RATE_LIMIT_KEY_PREFIX}{identifier}"

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _fail_open(self, identifier: str, config: RateLimitConfig, reason: str) -> RateLimitResult:
        log_stage(
            logger,
            Stage.RATE_LIMIT_FAIL_OPEN,
            "Rate limit check failed, allowing request",
            level="warning",
            identifier=identifier,
            reason=reason,
        )
        self._metrics.record_rate_limit_decision("fail_open")
        return RateLimitResult(
            allowed=True,
            remaining=config.requests,
            reset_at=self._now_ms(),
            limit=config.requests,
        )

    async def check(self, identifier: str, config: RateLimitConfig | None = None) -> RateLimitResult:
        """
        Count one request for ``identifier`` and decide whether to allow it.

        Stages: RATELIMIT.ALLOW, RATELIMIT.REJECT, RATELIMIT.FAIL_OPEN
        """
        config = config or default_config()
        key = self.key_for(identifier)
        now_ms = self._now_ms()

        try:
            count = await self._store.increment(key, 1)
            if count <= 0:
                return self._fail_open(identifier, config, "store returned no counter")

            if count == 1:
                await self._store.expire(key, config.window)
                ttl = config.window
            else:
                ttl = await self._store.ttl(key)
                if ttl < 0:
                    await self._store.expire(key, config.window)
                    ttl = config.window
        except Exception as e:
            return self._fail_open(identifier, config, str(e))

        allowed = count <= config.requests
        result = RateLimitResult(
            allowed=allowed,
            remaining=max(0, config.requests - count),
            reset_at=now_ms + ttl * 1000,
            limit=config.requests,
        )

        if allowed:
            self._metrics.record_rate_limit_decision("allowed")
            log_stage(
                logger, Stage.RATE_LIMIT_ALLOW, "Request allowed", level="debug",
                identifier=identifier, count=count, limit=config.requests,
            )
        else:
            self._metrics.record_rate_limit_decision("rejected")
            log_stage(
                logger, Stage.RATE_LIMIT_REJECT, "Rate limit exceeded", level="warning",
                identifier=identifier, count=count, limit=config.requests, window=config.window,
            )
        return result

    async def enforce(self, identifier: str, config: RateLimitConfig | None = None) -> RateLimitResult:
        """
        Like ``check`` but raise when the request is rejected.

        Raises:
            RateLimitExceededError: Carrying the RateLimitResult
        """
        result = await self.check(identifier, config)
        if not result.allowed:
            raise RateLimitExceededError(
                "Rate limit exceeded. Please try again later.",
                result=result,
                details={
                    "identifier": identifier,
                    "limit": result.limit,
                    "reset_at": result.reset_at,
                },
            )
        return result

    async def clear(self, identifier: str) -> bool:
        """Forget the identifier's current window. False when the store did not answer."""
        try:
            removed = await self._store.delete(self.key_for(identifier))
        except Exception as e:
            logger.error("Rate limit clear failed", identifier=identifier, error=str(e))
            return False
        if removed is None:
            logger.error("Rate limit clear failed", identifier=identifier, error="store unavailable")
            return False
        return True

    async def status(self, identifier: str) -> RateLimitStatus:
        """Inspect the identifier's window without counting a request."""
        key = self.key_for(identifier)
        try:
            raw = await self._store.get(key)
            if raw is None:
                return RateLimitStatus(exists=False)
            count = int(raw)
            ttl = await self._store.ttl(key)
        except Exception as e:
            logger.error("Rate limit status failed", identifier=identifier, error=str(e))
            return RateLimitStatus(exists=False)

        if ttl == -2:
            return RateLimitStatus(exists=False)
        reset_at = self._now_ms() + ttl * 1000 if ttl >= 0 else None
        return RateLimitStatus(exists=True, count=count, reset_at=reset_at)

    # ------------------------------------------------------------------
    # Background sweep
    # ------------------------------------------------------------------

    async def sweep_once(self) -> int:
        """Purge expired records from stores that do not expire keys themselves."""
        try:
            purged = await self._store.purge_expired()
        except Exception as e:
            logger.error("Rate limit sweep failed", stage=Stage.RATE_LIMIT_SWEEP.value, error=str(e))
            return 0
        self._metrics.record_rate_limit_swept(purged)
        if purged:
            log_stage(logger, Stage.RATE_LIMIT_SWEEP, "Purged expired records", level="debug", purged=purged)
        return purged

    async def _sweep_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.sweep_once()

    def start_sweeper(self, interval: float | None = None) -> asyncio.Task:
        """Start the periodic sweep task (idempotent)."""
        if self._sweeper is None or self._sweeper.done():
            interval = interval or get_settings().rate_limit.RATE_LIMIT_SWEEP_INTERVAL
            self._sweeper = asyncio.create_task(self._sweep_loop(interval), name="rate-limit-sweeper")
            logger.info("Rate limit sweeper started", stage=Stage.RATE_LIMIT_SWEEP.value, interval=interval)
        return self._sweeper

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
        logger.info("Rate limit sweeper stopped", stage=Stage.RATE_LIMIT_SWEEP.value)


# ============================================================================
# Global instance and module-level helpers
# ============================================================================

_rate_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """Get the global rate limiter, bound to the global store."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter(get_store())
    return _rate_limiter


def set_rate_limiter(limiter: RateLimiter | None) -> None:
    """Replace the global rate limiter (tests, custom wiring)."""
    global _rate_limiter
    _rate_limiter = limiter


async def check_rate_limit(identifier: str, config: RateLimitConfig | None = None) -> RateLimitResult:
    return await get_rate_limiter().check(identifier, config)


async def clear_rate_limit(identifier: str) -> bool:
    return await get_rate_limiter().clear(identifier)


async def get_rate_limit_status(identifier: str) -> RateLimitStatus:
    return await get_rate_limiter().status(identifier)
