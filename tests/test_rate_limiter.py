import pytest

from hotel_auth.infrastructure.rate_limit.memory_rate_limiter import InMemoryRateLimiter
from hotel_auth.infrastructure.rate_limit.redis_rate_limiter import RedisRateLimiter


def test_memory_rate_limiter_allows_then_blocks():
    rl = InMemoryRateLimiter()
    key = "email:a@x.com"
    assert rl.allow(key, max_requests=2, window_seconds=60) is True
    assert rl.allow(key, max_requests=2, window_seconds=60) is True
    assert rl.allow(key, max_requests=2, window_seconds=60) is False
    assert rl.allow("email:b@x.com", max_requests=2, window_seconds=60) is True


def test_memory_rate_limiter_window_slides():
    now = [1000.0]
    rl = InMemoryRateLimiter(clock=lambda: now[0])
    assert rl.allow("k", 1, 60) is True
    assert rl.allow("k", 1, 60) is False
    now[0] += 61
    assert rl.allow("k", 1, 60) is True


class FakePipe:
    def __init__(self, client):
        self.client = client
        self.ops = []

    def set(self, k, v, ex=None, nx=False):
        self.ops.append(("set", k, v, ex, nx))
        return self

    def incr(self, k, n):
        self.ops.append(("incr", k, n))
        return self

    def execute(self):
        results = []
        for op in self.ops:
            if op[0] == "set":
                _, k, v, ex, nx = op
                if nx and k in self.client.store:
                    results.append(None)
                    continue
                self.client.store[k] = v
                self.client.ttls[k] = ex
                results.append(True)
            else:
                self.client.store[op[1]] = self.client.store.get(op[1], 0) + op[2]
                results.append(self.client.store[op[1]])
        return results


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.ttls = {}

    def pipeline(self):
        return FakePipe(self)

    def tick(self, seconds):
        for k in list(self.ttls):
            self.ttls[k] -= seconds
            if self.ttls[k] <= 0:
                del self.ttls[k]
                del self.store[k]


def test_redis_rate_limiter_with_fake():
    client = FakeRedis()
    rl = RedisRateLimiter(client=client)
    assert rl.allow("k1", 2, 60) is True
    assert rl.allow("k1", 2, 60) is True
    assert rl.allow("k1", 2, 60) is False
    assert client.ttls == {"otp-rl:k1:60": 60}


def test_redis_window_is_not_extended_by_blocked_hits():
    client = FakeRedis()
    rl = RedisRateLimiter(client=client)
    for _ in range(3):
        assert rl.allow("email:a@x.com", 3, 3600) is True
    client.tick(3000)
    assert rl.allow("email:a@x.com", 3, 3600) is False
    assert client.ttls["otp-rl:email:a@x.com:3600"] == 600

    client.tick(600)
    assert rl.allow("email:a@x.com", 3, 3600) is True
    assert client.store["otp-rl:email:a@x.com:3600"] == 1



def test_redis_rate_limiter_requires_url_or_client():
    with pytest.raises(ValueError):
        RedisRateLimiter()
