"""
Shared fixtures: a controllable clock and an in-memory stand-in for the Redis client
"""
import fnmatch

import pytest
import redis


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeRedis:
    """Implements the handful of redis-py client calls the cache makes"""

    def __init__(self):
        self.data = {}
        self.fail_writes = False
        self.fail_reads = False
        self.fail_ping = False
        self.fail_deletes = False

    def ping(self):
        if self.fail_ping:
            raise redis.ConnectionError("Connection refused")
        return True

    def get(self, name):
        if self.fail_reads:
            raise redis.ConnectionError("Connection reset by peer")
        return self.data.get(name)

    def set(self, name, value, px=None):
        if self.fail_writes:
            raise redis.ResponseError("OOM command not allowed when used memory > 'maxmemory'")
        self.data[name] = value
        return True

    def delete(self, *names):
        if self.fail_deletes:
            raise redis.ConnectionError("Connection reset by peer")
        return sum(1 for n in names if self.data.pop(n, None) is not None)

    def exists(self, *names):
        return sum(1 for n in names if n in self.data)

    def scan_iter(self, match=None):
        for name in list(self.data):
            if match is None or fnmatch.fnmatchcase(name, match):
                yield name


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_redis():
    return FakeRedis()
