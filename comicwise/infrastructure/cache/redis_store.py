"""
Redis Key-Value Store

Architecture:
    RedisStore (KeyValueStore implementation)
        ├── ConnectionManager (lazy pool, TLS, connect retries, reconnect cooldown)
        ├── OperationExecutor (command execution, error logging, safe defaults)
        └── HealthMonitor (ping latency and pool utilization)

Failure handling:
    Every command goes through OperationExecutor.run(). A RedisError (or a
    connection refused during cooldown) is logged with the command name and
    key, counted in metrics, and turned into the command's safe default. The
    store therefore never raises for an outage; callers observe an empty cache.
    DEL, SADD and SREM default to None so a failed write is not mistaken for
    "nothing to do".

    Individual commands are retried by redis-py itself (Retry with
    ExponentialBackoff, REDIS_MAX_RETRIES attempts). The initial connect is
    retried with tenacity. After a failed connect, further attempts are
    suppressed for REDIS_RECONNECT_COOLDOWN seconds.
"""

import time
from collections.abc import Awaitable, Callable
from typing import Any

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool, SSLConnection
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError, RedisError, TimeoutError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from comicwise.config.constants import DELETE_CHUNK_SIZE, SCAN_BATCH_SIZE, Stage
from comicwise.config.settings import Settings, get_settings
from comicwise.core.exceptions import CacheConnectionError
from comicwise.core.logging.logger import get_logger
from comicwise.infrastructure.monitoring.metrics_collector import get_metrics_collector

logger = get_logger(__name__)


# =============================================================================
# LAYER 1: CONNECTION MANAGEMENT
# Lazy connection, pooling, TLS and reconnection
# =============================================================================


class ConnectionManager:
    """
    Manages the Redis connection lifecycle.

    The pool is created on first use, not at import or construction, so a
    process without Redis can still start and serve (uncached) traffic.

    Connection states logged: connecting, connected, error, reconnecting,
    restored, closed.
    """

    def __init__(self, settings: Settings, client: redis.Redis | None = None):
        """
        Args:
            settings: Application settings
            client: Pre-built client (tests); skips pool construction
        """
        self._settings = settings
        self._pool: ConnectionPool | None = None
        self._client: redis.Redis | None = client
        self._is_connected = False
        self._last_failure: float | None = None
        self._ever_connected = False

    def _build_pool(self) -> ConnectionPool:
        cfg = self._settings.redis
        pool_kwargs: dict[str, Any] = {
            "host": cfg.REDIS_HOST,
            "port": cfg.REDIS_PORT,
            "db": cfg.REDIS_DB,
            "password": cfg.REDIS_PASSWORD,
            "max_connections": cfg.REDIS_MAX_CONNECTIONS,
            "socket_connect_timeout": cfg.REDIS_SOCKET_CONNECT_TIMEOUT,
            "socket_timeout": cfg.REDIS_SOCKET_TIMEOUT,
            "health_check_interval": cfg.REDIS_HEALTH_CHECK_INTERVAL,
            "retry": Retry(
                ExponentialBackoff(cap=cfg.REDIS_RETRY_BACKOFF_CAP, base=cfg.REDIS_RETRY_BACKOFF_BASE),
                cfg.REDIS_MAX_RETRIES,
            ),
            "decode_responses": True,
        }
        if self._settings.use_tls:
            pool_kwargs["connection_class"] = SSLConnection
        return ConnectionPool(**pool_kwargs)

    async def connect(self) -> redis.Redis:
        """
        Establish (or re-establish) the connection and verify it with PING.

        Stage: STORE.CONNECT

        Raises:
            CacheConnectionError: If Redis cannot be reached after retries
        """
        if self._client is None:
            self._pool = self._build_pool()
            self._client = redis.Redis(connection_pool=self._pool)

        cfg = self._settings.redis
        client = self._client
        logger.info(
            "Redis connecting" if not self._ever_connected else "Redis reconnecting",
            stage=Stage.STORE_CONNECT.value,
            host=cfg.REDIS_HOST,
            port=cfg.REDIS_PORT,
            tls=self._settings.use_tls,
        )

        @retry(
            stop=stop_after_attempt(max(cfg.REDIS_MAX_RETRIES, 1)),
            wait=wait_exponential_jitter(
                initial=cfg.REDIS_RETRY_BACKOFF_BASE, max=cfg.REDIS_RETRY_BACKOFF_CAP
            ),
            retry=retry_if_exception_type((ConnectionError, TimeoutError)),
            reraise=True,
            before_sleep=lambda retry_state: logger.warning(
                "Redis connect retry",
                stage=Stage.STORE_CONNECT.value,
                attempt=retry_state.attempt_number,
            ),
        )
        async def _ping() -> None:
            await client.ping()

        try:
            await _ping()
        except RedisError as e:
            self.mark_failed(e)
            raise CacheConnectionError(
                message=f"Failed to connect to Redis: {e}",
                details={"host": cfg.REDIS_HOST, "port": cfg.REDIS_PORT},
            ) from e

        if self._last_failure is not None:
            logger.info("Redis connection restored", stage=Stage.STORE_CONNECT.value)
        else:
            logger.info(
                "Redis connected successfully",
                stage=Stage.STORE_CONNECT.value,
                host=cfg.REDIS_HOST,
                port=cfg.REDIS_PORT,
                max_connections=cfg.REDIS_MAX_CONNECTIONS,
            )
        self._is_connected = True
        self._ever_connected = True
        self._last_failure = None
        get_metrics_collector().set_store_connected("redis", True)
        return client

    async def get_client(self) -> redis.Redis:
        """
        Return a connected client, connecting lazily.

        Raises:
            CacheConnectionError: While in reconnect cooldown or if connect fails
        """
        if self._is_connected and self._client is not None:
            return self._client

        cooldown = self._settings.redis.REDIS_RECONNECT_COOLDOWN
        if self._last_failure is not None and time.monotonic() - self._last_failure < cooldown:
            raise CacheConnectionError(
                message="Redis unavailable, reconnect cooling down",
                details={"cooldown_seconds": cooldown},
            )
        return await self.connect()

    def mark_failed(self, error: Exception) -> None:
        """Record a connection-level failure and start the cooldown."""
        was_connected = self._is_connected
        self._is_connected = False
        self._last_failure = time.monotonic()
        get_metrics_collector().set_store_connected("redis", False)
        logger.error(
            "Redis connection error",
            stage=Stage.STORE_CONNECT.value,
            error=str(error),
            was_connected=was_connected,
        )

    async def disconnect(self) -> None:
        """
        Close the client and pool.

        Stage: STORE.CLOSE
        """
        if self._client is not None:
            await self._client.aclose()
        if self._pool is not None:
            await self._pool.disconnect()

        self._client = None
        self._pool = None
        self._is_connected = False
        get_metrics_collector().set_store_connected("redis", False)
        logger.info("Redis connection closed", stage=Stage.STORE_CLOSE.value)

    def get_pool(self) -> ConnectionPool | None:
        return self._pool

    def is_connected(self) -> bool:
        return self._is_connected


# =============================================================================
# LAYER 2: OPERATION EXECUTOR
# Runs commands with uniform error handling
# =============================================================================


class OperationExecutor:
    """
    Executes Redis commands with consistent error handling.

    Error Handling Strategy:
    - Catch RedisError and CacheConnectionError
    - Connection-level errors start the reconnect cooldown
    - Log with stage ``REDIS.<COMMAND>`` and the key
    - Return the command's safe default
    """

    def __init__(self, connection_manager: ConnectionManager):
        self._conn_mgr = connection_manager

    async def run(
        self,
        command: str,
        call: Callable[[redis.Redis], Awaitable[Any]],
        default: Any = None,
        key: str | None = None,
    ) -> Any:
        """
        Run ``call(client)`` and return its result, or ``default`` on failure.

        ``default`` may be a zero-argument callable (e.g. ``list``) so mutable
        defaults are never shared.
        """
        start = time.perf_counter()
        try:
            client = await self._conn_mgr.get_client()
            return await call(client)
        except (ConnectionError, TimeoutError) as e:
            self._conn_mgr.mark_failed(e)
            self._log_failure(command, key, e)
        except (RedisError, CacheConnectionError) as e:
            self._log_failure(command, key, e)
        finally:
            get_metrics_collector().record_store_latency(
                "redis", command.lower(), time.perf_counter() - start
            )
        return default() if callable(default) else default

    @staticmethod
    def _log_failure(command: str, key: str | None, error: Exception) -> None:
        logger.error(
            f"Redis {command} failed",
            stage=f"REDIS.{command}",
            key=key,
            error=str(error),
            error_type=type(error).__name__,
        )
        get_metrics_collector().record_cache_error(command.lower())


# =============================================================================
# LAYER 3: HEALTH MONITORING
# =============================================================================


class HealthMonitor:
    """
    Reports Redis health with ping latency and pool utilization.

    Pool utilization above 80% is flagged with ``pool_warning``.
    """

    def __init__(self, connection_manager: ConnectionManager, settings: Settings):
        self._conn_mgr = connection_manager
        self._settings = settings

    async def health_check(self) -> dict[str, Any]:
        """
        PING latency and pool usage.

        Returns:
            Dict with status, connected, latency_ms and pool metrics
        """
        health: dict[str, Any] = {
            "status": "healthy",
            "backend": "redis",
            "connected": False,
            "host": self._settings.redis.REDIS_HOST,
            "port": self._settings.redis.REDIS_PORT,
            "latency_ms": None,
            "pool_size": 0,
            "pool_utilization_pct": 0.0,
            "pool_warning": False,
        }

        try:
            client = await self._conn_mgr.get_client()
            start = time.perf_counter()
            await client.ping()
            health["latency_ms"] = round((time.perf_counter() - start) * 1000, 2)
            health["connected"] = True

            pool = self._conn_mgr.get_pool()
            if pool is not None:
                health["pool_size"] = pool.max_connections
                in_use = len(getattr(pool, "_in_use_connections", ()))
                utilization = 100.0 * in_use / pool.max_connections
                health["pool_utilization_pct"] = round(utilization, 1)
                if utilization > 80:
                    health["pool_warning"] = True
                    logger.warning(
                        "Redis pool utilization high",
                        pool_utilization=utilization,
                        max_connections=pool.max_connections,
                    )
        except (RedisError, CacheConnectionError) as e:
            health["status"] = "unhealthy"
            health["error"] = str(e)

        return health


# =============================================================================
# LAYER 4: PUBLIC API
# =============================================================================


class RedisStore:
    """
    KeyValueStore backed by Redis.

    Usage:
        store = RedisStore()
        await store.set("comic:1", '{"id": 1}', ttl=7200)
        raw = await store.get("comic:1")
        await store.close()
    """

    name = "redis"

    def __init__(self, settings: Settings | None = None, client: redis.Redis | None = None):
        """
        No network I/O here; the client connects lazily.

        Args:
            settings: Application settings (defaults to the global settings)
            client: Pre-built redis client, mainly for tests
        """
        self._settings = settings or get_settings()
        self._conn_mgr = ConnectionManager(self._settings, client=client)
        self._executor = OperationExecutor(self._conn_mgr)
        self._health_monitor = HealthMonitor(self._conn_mgr, self._settings)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """
        Connect eagerly. Failure is logged, not raised: the store keeps
        serving safe defaults and reconnects lazily after the cooldown.
        """
        try:
            await self._conn_mgr.connect()
        except CacheConnectionError as e:
            logger.warning("Redis unavailable at startup, continuing degraded", error=e.message)

    async def close(self) -> None:
        await self._conn_mgr.disconnect()

    async def ping(self) -> bool:
        async def _ping(client):
            return bool(await client.ping())

        return await self._executor.run("PING", _ping, default=False)

    async def health_check(self) -> dict[str, Any]:
        return await self._health_monitor.health_check()

    async def stats(self) -> dict[str, Any]:
        async def _stats(client):
            stats_info = await client.info("stats")
            memory_info = await client.info("memory")
            return {
                "keys": await client.dbsize(),
                "memory": memory_info.get("used_memory_human", "unknown"),
                "hits": int(stats_info.get("keyspace_hits", 0)),
                "misses": int(stats_info.get("keyspace_misses", 0)),
            }

        return await self._executor.run(
            "INFO",
            _stats,
            default=lambda: {"keys": 0, "memory": "unknown", "hits": 0, "misses": 0},
        )

    async def flush(self) -> bool:
        async def _flush(client):
            return bool(await client.flushdb())

        return await self._executor.run("FLUSHDB", _flush, default=False)

    # -------------------------------------------------------------------------
    # Strings
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        return await self._executor.run("GET", lambda c: c.get(key), key=key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        async def _set(client):
            if ttl is not None and ttl > 0:
                return bool(await client.set(key, value, ex=ttl))
            return bool(await client.set(key, value))

        return await self._executor.run("SET", _set, default=False, key=key)

    async def delete(self, *keys: str) -> int | None:
        if not keys:
            return 0
        return await self._executor.run("DEL", lambda c: c.delete(*keys), key=keys[0])

    async def delete_many(self, keys: list[str]) -> int | None:
        removed = 0
        for i in range(0, len(keys), DELETE_CHUNK_SIZE):
            count = await self.delete(*keys[i:i + DELETE_CHUNK_SIZE])
            if count is None:
                return None
            removed += count
        return removed

    async def exists(self, key: str) -> bool:
        async def _exists(client):
            return bool(await client.exists(key))

        return await self._executor.run("EXISTS", _exists, default=False, key=key)

    async def ttl(self, key: str) -> int:
        return await self._executor.run("TTL", lambda c: c.ttl(key), default=-1, key=key)

    async def expire(self, key: str, seconds: int) -> bool:
        async def _expire(client):
            return bool(await client.expire(key, seconds))

        return await self._executor.run("EXPIRE", _expire, default=False, key=key)

    async def keys_matching(self, pattern: str) -> list[str]:
        async def _scan(client):
            return [key async for key in client.scan_iter(match=pattern, count=SCAN_BATCH_SIZE)]

        return await self._executor.run("SCAN", _scan, default=list, key=pattern)

    async def purge_expired(self) -> int:
        # Redis expires keys itself
        return 0

    # -------------------------------------------------------------------------
    # Counters
    # -------------------------------------------------------------------------

    async def increment(self, key: str, amount: int = 1) -> int:
        return await self._executor.run(
            "INCRBY", lambda c: c.incrby(key, amount), default=0, key=key
        )

    async def decrement(self, key: str, amount: int = 1) -> int:
        return await self._executor.run(
            "DECRBY", lambda c: c.decrby(key, amount), default=0, key=key
        )

    # -------------------------------------------------------------------------
    # Sets
    # -------------------------------------------------------------------------

    async def add_to_set(self, key: str, *members: str) -> int | None:
        if not members:
            return 0
        return await self._executor.run("SADD", lambda c: c.sadd(key, *members), key=key)

    async def members(self, key: str) -> list[str]:
        async def _members(client):
            return list(await client.smembers(key))

        return await self._executor.run("SMEMBERS", _members, default=list, key=key)

    async def remove_from_set(self, key: str, *members: str) -> int | None:
        if not members:
            return 0
        return await self._executor.run("SREM", lambda c: c.srem(key, *members), key=key)

    async def is_member(self, key: str, member: str) -> bool:
        async def _is_member(client):
            return bool(await client.sismember(key, member))

        return await self._executor.run("SISMEMBER", _is_member, default=False, key=key)

    # -------------------------------------------------------------------------
    # Sorted sets
    # -------------------------------------------------------------------------

    async def add_scored(self, key: str, score: float, member: str) -> bool:
        async def _zadd(client):
            await client.zadd(key, {member: score})
            return True

        return await self._executor.run("ZADD", _zadd, default=False, key=key)

    async def top_n(self, key: str, count: int) -> list[tuple[str, float]]:
        if count <= 0:
            return []

        async def _top(client):
            rows = await client.zrevrange(key, 0, count - 1, withscores=True)
            return [(member, float(score)) for member, score in rows]

        return await self._executor.run("ZREVRANGE", _top, default=list, key=key)

    async def increment_score(self, key: str, member: str, amount: float = 1) -> float:
        async def _zincrby(client):
            return float(await client.zincrby(key, amount, member))

        return await self._executor.run("ZINCRBY", _zincrby, default=0.0, key=key)
