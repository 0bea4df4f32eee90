"""Quiz storage backends."""

from __future__ import annotations

import redis

DEFAULT_REDIS_ADDR = "localhost:6379"


class InMemoryStore:
    """Quiz store kept in process memory; it holds no data of its own."""


class QuizRedisStore:
    """Quiz store backed by a Redis server."""

    def __init__(self, addr: str = DEFAULT_REDIS_ADDR, db: int = 0) -> None:
        host, _, port = addr.rpartition(":")
        self.rdb = redis.Redis(host=host or "localhost", port=int(port), db=db)