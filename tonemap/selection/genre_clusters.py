"""
Genre Clusters

Coarse genre families used to cap how many tracks of one family a
playlist may contain.
"""

from typing import Iterable, Tuple

UNKNOWN_CLUSTER = "unknown"
OTHER_CLUSTER = "other"

# Checked in order; a track belongs to the first cluster that matches
GENRE_CLUSTERS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("indie", ("indie", "indie rock", "indie pop", "indie folk", "alternative", "alt rock")),
    ("electronic", ("electronic", "edm", "house", "techno", "ambient", "synth", "electro", "dubstep")),
    ("rock", ("rock", "classic rock", "hard rock", "punk", "punk rock", "garage rock")),
    ("hip-hop", ("hip hop", "rap", "trap", "hip-hop", "r&b", "rnb")),
    ("pop", ("pop", "dance pop", "synth pop", "k-pop", "j-pop")),
    ("folk", ("folk", "americana", "singer-songwriter", "acoustic")),
    ("metal", ("metal", "heavy metal", "death metal", "metalcore", "thrash")),
    ("jazz", ("jazz", "smooth jazz", "jazz fusion", "bebop")),
    ("classical", ("classical", "orchestral", "baroque", "romantic")),
    ("soul", ("soul", "funk", "motown", "neo soul", "neo-soul")),
)


def genres_overlap(first: str, second: str) -> bool:
    """Case-insensitive substring match in either direction."""
    a, b = first.lower().strip(), second.lower().strip()
    if not a or not b:
        return False
    return a in b or b in a


def cluster_for(genres: Iterable[str]) -> str:
    """
    Name of the genre cluster for a track's genre tags.

    Returns 'unknown' for a track without genres and 'other' when no
    cluster matches.
    """
    tags = [g for g in genres if g and g.strip()]
    if not tags:
        return UNKNOWN_CLUSTER
    for name, members in GENRE_CLUSTERS:
        if any(genres_overlap(member, tag) for member in members for tag in tags):
            return name
    return OTHER_CLUSTER
