from __future__ import annotations

import logging
import socket

import redis
from redis.backoff import ExponentialBackoff
from redis.connection import Connection, ConnectionPool
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.retry import Retry

from .config import RetryPolicy, RunConfig
from .errors import DialError, ProbeError, ResolutionError
from .resolver import EndpointResolver

LOGGER = logging.getLogger("kvbench.client")


class ResolvingConnection(Connection):
    """Redis connection that re-resolves the server hostname on every dial.

    The configured host is only used as a name to resolve; each (re)connect
    goes to whichever address the resolver picks for that attempt.
    """

    def __init__(self, resolver: EndpointResolver | None = None, **kwargs) -> None:
        self._resolver = resolver or EndpointResolver()
        super().__init__(**kwargs)

    def _connect(self) -> socket.socket:
        target = self._resolver.select(self.host, self.port)
        sock = socket.create_connection(
            (target.address, target.port),
            timeout=self.socket_connect_timeout,
        )
        try:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            sock.settimeout(self.socket_timeout)
        except OSError:
            sock.close()
            raise
        return sock


def build_retry(policy: RetryPolicy) -> Retry:
    return Retry(
        ExponentialBackoff(cap=policy.max_backoff, base=policy.min_backoff),
        policy.max_retries,
    )


class RedisProbeClient:
    """Issues PING probes over a single worker-owned Redis client."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    def ping(self) -> None:
        try:
            reply = self._client.ping()
        except ResolutionError:
            raise
        except (RedisConnectionError, RedisTimeoutError) as exc:
            raise DialError(f"lost connection to server: {exc}") from exc
        except RedisError as exc:
            raise ProbeError(f"PING failed: {exc}") from exc
        if not reply:
            raise ProbeError(f"PING returned unexpected reply {reply!r}")

    def close(self) -> None:
        self._client.close()
        self._client.connection_pool.disconnect()


def create_probe_client(
    config: RunConfig,
    resolver: EndpointResolver | None = None,
) -> RedisProbeClient:
    pool = ConnectionPool(
        connection_class=ResolvingConnection,
        resolver=resolver or EndpointResolver(),
        host=config.host,
        port=config.port,
        password=config.password or None,
        socket_connect_timeout=config.retry.connect_timeout,
        retry=build_retry(config.retry),
        retry_on_error=[RedisConnectionError, RedisTimeoutError],
    )
    LOGGER.debug(
        "Created client for %s:%d (retries=%d, backoff=%.3fs..%.3fs)",
        config.host,
        config.port,
        config.retry.max_retries,
        config.retry.min_backoff,
        config.retry.max_backoff,
    )
    return RedisProbeClient(redis.Redis(connection_pool=pool))


__all__ = [
    "RedisProbeClient",
    "ResolvingConnection",
    "build_retry",
    "create_probe_client",
]
