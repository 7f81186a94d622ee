import redis
from cachetools import TTLCache
from .config import settings

class CounterCache:
    """
    Windowed hit counters for rate limiting.
    Redis when USE_REDIS is set (INCR + EXPIRE, atomic), else in-process.
    """
    def __init__(self, window_seconds: int = 60, maxsize: int = 4096):
        self.window_seconds = window_seconds
        self.backend = None
        self._local = TTLCache(maxsize=maxsize, ttl=window_seconds)
        if settings.USE_REDIS:
            self.backend = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)

    def hit(self, key: str) -> int:
        """Increment the counter for `key` and return the new count."""
        if self.backend:
            pipe = self.backend.pipeline()
            pipe.incr(key)
            pipe.expire(key, self.window_seconds)
            count, _ = pipe.execute()
            return int(count)
        count = self._local.get(key, 0) + 1
        self._local[key] = count
        return count

    def clear(self) -> None:
        self._local.clear()

counters = CounterCache()
