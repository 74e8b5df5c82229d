"""
Cache Management System

File-based caching with TTL for weather readings and the context tracker's
persisted state. Cache failures are logged and treated as misses; nothing
in the engine depends on a cache write succeeding.
"""

import hashlib
import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import structlog
from diskcache import Cache

from ..models.context_models import ListeningContext, WeatherReading

logger = structlog.get_logger(__name__)

CacheError = (OSError, sqlite3.Error)


class CacheManager:
    """
    diskcache-backed cache with one namespace per data type.

    Handles caching for:
    - Weather readings (short TTL, shared by all users at a location)
    - Context tracker state per user (last context, last generation time)
    """

    def __init__(self, cache_dir: str = "data/cache", weather_ttl_seconds: int = 15 * 60):
        """
        Initialize cache manager.

        Args:
            cache_dir: Directory for cache storage
            weather_ttl_seconds: How long a weather reading stays fresh
        """
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

        self.caches = {
            "weather": Cache(str(self.cache_dir / "weather")),
            "tracker": Cache(str(self.cache_dir / "tracker")),
        }

        self.default_ttl = {
            "weather": weather_ttl_seconds,
            "tracker": 30 * 24 * 3600,    # 30 days
        }

        self.logger = logger.bind(component="CacheManager")
        self.logger.info(
            "Cache manager initialized",
            cache_dir=str(self.cache_dir),
            cache_types=list(self.caches.keys())
        )

    @staticmethod
    def _generate_key(*args) -> str:
        key_str = json.dumps(args, sort_keys=True, default=str)
        return hashlib.md5(key_str.encode()).hexdigest()

    def get(self, cache_type: str, key: str, default: Any = None) -> Any:
        """Get a value, or `default` on a miss, an unknown namespace or a cache error."""
        if cache_type not in self.caches:
            self.logger.warning("Invalid cache type", cache_type=cache_type)
            return default

        try:
            value = self.caches[cache_type].get(key, default)
        except CacheError as e:
            self.logger.error("Cache get failed", cache_type=cache_type, error=str(e))
            return default

        self.logger.debug(
            "Cache hit" if value is not default else "Cache miss",
            cache_type=cache_type,
            key=key[:16]
        )
        return value

    def set(self, cache_type: str, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        """
        Set a value.

        Args:
            cache_type: Namespace
            key: Cache key
            value: Picklable value
            ttl: Time to live in seconds (namespace default if None)

        Returns:
            True if stored
        """
        if cache_type not in self.caches:
            self.logger.warning("Invalid cache type", cache_type=cache_type)
            return False

        if ttl is None:
            ttl = self.default_ttl.get(cache_type, 3600)
        try:
            self.caches[cache_type].set(key, value, expire=ttl)
        except CacheError as e:
            self.logger.error("Cache set failed", cache_type=cache_type, error=str(e))
            return False

        self.logger.debug("Cache set", cache_type=cache_type, key=key[:16], ttl=ttl)
        return True

    def delete(self, cache_type: str, key: str) -> bool:
        if cache_type not in self.caches:
            return False
        try:
            return bool(self.caches[cache_type].delete(key))
        except CacheError as e:
            self.logger.error("Cache delete failed", cache_type=cache_type, error=str(e))
            return False

    def clear(self, cache_type: Optional[str] = None) -> bool:
        """Clear one namespace, or all of them when `cache_type` is None."""
        if cache_type and cache_type not in self.caches:
            self.logger.warning("Invalid cache type", cache_type=cache_type)
            return False

        targets = [cache_type] if cache_type else list(self.caches)
        try:
            for name in targets:
                self.caches[name].clear()
        except CacheError as e:
            self.logger.error("Cache clear failed", error=str(e))
            return False

        self.logger.info("Cache cleared", cache_types=targets)
        return True

    def get_stats(self) -> Dict[str, Dict[str, Any]]:
        stats = {}
        for name, cache in self.caches.items():
            try:
                stats[name] = {
                    "size": len(cache),
                    "volume": cache.volume(),
                    "directory": str(cache.directory),
                }
            except CacheError as e:
                self.logger.error("Failed to get cache stats", cache_name=name, error=str(e))
                stats[name] = {"error": str(e)}
        return stats

    # Convenience methods for specific cache types

    def cache_weather(self, latitude: Optional[float], longitude: Optional[float], reading: WeatherReading) -> str:
        key = self._generate_key("weather", latitude, longitude)
        self.set("weather", key, reading.to_dict())
        return key

    def get_weather(self, latitude: Optional[float], longitude: Optional[float]) -> Optional[WeatherReading]:
        data = self.get("weather", self._generate_key("weather", latitude, longitude))
        if data is None:
            return None
        try:
            return WeatherReading.from_dict(data)
        except (KeyError, ValueError) as e:
            self.logger.warning("Discarding unreadable weather entry", error=str(e))
            return None

    def save_tracker_state(
        self,
        user_id: str,
        last_context: Optional[ListeningContext],
        last_generation_at: Optional[datetime]
    ) -> bool:
        state = {
            "last_context": last_context.to_dict() if last_context else None,
            "last_generation_at": last_generation_at.isoformat() if last_generation_at else None,
        }
        return self.set("tracker", self._generate_key("tracker", user_id), state)

    def get_tracker_state(self, user_id: str) -> Tuple[Optional[ListeningContext], Optional[datetime]]:
        """Persisted (last context, last generation time); (None, None) when absent."""
        state = self.get("tracker", self._generate_key("tracker", user_id))
        if not state:
            return None, None
        try:
            context = ListeningContext.from_dict(state["last_context"]) if state.get("last_context") else None
            generated = state.get("last_generation_at")
            return context, datetime.fromisoformat(generated) if generated else None
        except (KeyError, ValueError) as e:
            self.logger.warning("Discarding unreadable tracker state", user_id=user_id, error=str(e))
            return None, None

    def close(self) -> None:
        """Close all cache connections."""
        for name, cache in self.caches.items():
            try:
                cache.close()
            except CacheError as e:
                self.logger.error("Failed to close cache", cache_name=name, error=str(e))
