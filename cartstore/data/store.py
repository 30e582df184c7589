# cartstore/data/store.py
from contextlib import contextmanager
from typing import Iterator

import redis

from cartstore.utils.settings import REDIS_URL
from cartstore.utils.logging import get_logger

logger = get_logger(__name__)


def create_redis(url: str | None = None) -> redis.Redis:
    return redis.Redis.from_url(
        url or REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=10,
        socket_timeout=30,
        health_check_interval=30,
    )


@contextmanager
def open_redis(url: str | None = None) -> Iterator[redis.Redis]:
    """
    Pooled Redis client scoped to a with-block.

    The client is passed explicitly to whoever needs it (API lifespan,
    cleanup task); the pool is disconnected when the block exits.
    """
    client = create_redis(url)
    try:
        client.ping()
        logger.info("Connected to Redis")
        yield client
    finally:
        client.close()
        client.connection_pool.disconnect()
        logger.info("Redis connection pool closed")
