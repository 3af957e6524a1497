"""
Stockage clé/valeur à TTL pour les verrous en vol et les fenêtres de rate limit.

Deux implémentations : Redis (multi-instance) et mémoire (mono-processus).
Le choix se fait via REDIS_URL ; l'instance est injectée dans le worker,
le client Shopee et le notifier.
"""
import logging
import threading
import time
from typing import Dict, Optional, Tuple

import redis

logger = logging.getLogger(__name__)


class InMemoryStore:
    """Stockage en mémoire avec expiration explicite"""

    def __init__(self):
        self._data: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()

    def _purge(self, now: float):
        expired = [k for k, (_, expiry) in self._data.items() if expiry <= now]
        for key in expired:
            del self._data[key]

    def acquire(self, key: str, ttl_seconds: int) -> bool:
        """Pose la clé si absente (équivalent SET NX EX)"""
        with self._lock:
            now = time.monotonic()
            self._purge(now)
            if key in self._data:
                return False
            self._data[key] = (1, now + ttl_seconds)
            return True

    def release(self, key: str):
        with self._lock:
            self._data.pop(key, None)

    def increment(self, key: str, ttl_seconds: int) -> int:
        """Incrémente un compteur de fenêtre ; la TTL part du premier hit"""
        with self._lock:
            now = time.monotonic()
            self._purge(now)
            count, expiry = self._data.get(key, (0, now + ttl_seconds))
            count += 1
            self._data[key] = (count, expiry)
            return count


class RedisStore:
    """Stockage Redis partagé entre instances"""

    def __init__(self, client: redis.Redis, prefix: str = "adspilot"):
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str) -> "RedisStore":
        return cls(redis.Redis.from_url(url))

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def acquire(self, key: str, ttl_seconds: int) -> bool:
        return bool(self.client.set(self._key(key), 1, nx=True, ex=ttl_seconds))

    def release(self, key: str):
        self.client.delete(self._key(key))

    def increment(self, key: str, ttl_seconds: int) -> int:
        full_key = self._key(key)
        count = int(self.client.incr(full_key))
        if count == 1:
            self.client.expire(full_key, ttl_seconds)
        return count


def build_store(redis_url: Optional[str] = None):
    """Construit le stockage à partir de la configuration"""
    if redis_url:
        logger.info("✅ Redis store initialized")
        return RedisStore.from_url(redis_url)
    logger.info("Using in-memory store (single instance)")
    return InMemoryStore()
