"""
Discovery for ToneMap

Blends never-played tracks into history-based selections.
"""

from .discovery_blender import BlendResult, DiscoveryBlender, build_target_profile, interleave
from .platform_discovery import PlatformDiscoverySource, PopularityProfile

__all__ = [
    "BlendResult",
    "DiscoveryBlender",
    "PlatformDiscoverySource",
    "PopularityProfile",
    "build_target_profile",
    "interleave",
]
