import unittest

from drift.config import settings
from drift.db.redis import RedisService


class FakeRedis:
    """Just the commands the limiter uses; keys never expire."""

    def __init__(self):
        self.values = {}
        self.ttls = {}

    def get(self, key):
        return self.values.get(key)

    def setex(self, key, seconds, value):
        self.values[key] = value
        self.ttls[key] = seconds

    def ttl(self, key):
        return self.ttls.get(key, -2)

    def incr(self, key):
        self.values[key] = str(int(self.values[key]) + 1)
        return int(self.values[key])


class RateLimitTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.redis = RedisService(client=FakeRedis())

    async def test_fixed_window_counts_down_then_blocks(self) -> None:
        results = [await self.redis.check_rate_limit("p1", "test", 3, 60) for _ in range(4)]

        self.assertEqual([r[0] for r in results], [True, True, True, False])
        self.assertEqual([r[1] for r in results], [2, 1, 0, 0])
        self.assertEqual(results[-1][2], 60)

    async def test_limits_are_per_profile_and_action(self) -> None:
        await self.redis.check_rate_limit("p1", "test", 1, 60)

        self.assertTrue((await self.redis.check_rate_limit("p2", "test", 1, 60))[0])
        self.assertTrue((await self.redis.check_rate_limit("p1", "other", 1, 60))[0])
        self.assertFalse((await self.redis.check_rate_limit("p1", "test", 1, 60))[0])

    async def test_swipe_allowance(self) -> None:
        allowed, remaining = await self.redis.check_swipe_limit("p1")

        self.assertTrue(allowed)
        self.assertEqual(remaining, settings.SWIPE_LIMIT_PER_DAY - 1)
        self.assertEqual(self.redis.client.ttls["ratelimit:swipe:p1"], 86400)

    def test_requires_a_client(self) -> None:
        with self.assertRaises(RuntimeError):
            RedisService()


if __name__ == "__main__":
    unittest.main()
