"""
ToneMap - Contextual Music Recommendation Engine

Learns context-keyed listening patterns from a user's history, scores and
diversifies candidate tracks for a target context, blends in discovery
tracks and watches for context shifts that warrant a fresh playlist.
"""

__version__ = "0.1.0"
__author__ = "ToneMap Team"
