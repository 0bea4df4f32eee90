import pytest

from wsquiz.store import QuizRedisStore


def test_redis_store_defaults():
    kwargs = QuizRedisStore().rdb.connection_pool.connection_kwargs
    assert kwargs["host"] == "localhost"
    assert kwargs["port"] == 6379
    assert kwargs["db"] == 0
    assert kwargs.get("password") is None


def test_redis_store_custom_address():
    kwargs = QuizRedisStore("cache.example.com:6380", db=2).rdb.connection_pool.connection_kwargs
    assert (kwargs["host"], kwargs["port"], kwargs["db"]) == ("cache.example.com", 6380, 2)


def test_redis_store_bad_port():
    with pytest.raises(ValueError):
        QuizRedisStore("localhost:port")