"""
API layer for ToneMap

Collaborator interfaces plus the HTTP clients shipped with the engine.
"""

from .base_client import BaseAPIClient
from .interfaces import (
    DiscoverySource,
    EventStore,
    MusicPlatformClient,
    NotificationSink,
    WeatherProvider,
)
from .rate_limiter import RateLimiter
from .weather_client import OpenMeteoClient, condition_from_wmo_code

__all__ = [
    "BaseAPIClient",
    "DiscoverySource",
    "EventStore",
    "MusicPlatformClient",
    "NotificationSink",
    "OpenMeteoClient",
    "RateLimiter",
    "WeatherProvider",
    "condition_from_wmo_code",
]
