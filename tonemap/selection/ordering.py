"""
Playlist Ordering

Reorders a finished selection: energy arcs (building, peaking, winding
down) and greedy "smart transitions" that keep neighbouring tracks close
in key and tempo.
"""

from typing import List, Optional, Sequence

from ..models.listening_models import TrackCandidate
from ..models.playlist_models import EnergyArcShape

NEUTRAL_ENERGY = 0.5
PITCH_CLASSES = 12


def _energy(track: TrackCandidate) -> float:
    energy = track.features.energy
    return NEUTRAL_ENERGY if energy is None else energy


def shape_energy_arc(
    tracks: Sequence[TrackCandidate],
    arc: Optional[EnergyArcShape]
) -> List[TrackCandidate]:
    """
    Order tracks to follow an energy arc.

    building: ascending energy. winding_down: descending. peaking: the
    lower-energy half ascending, then the rest descending. steady or None
    keeps the input order.
    """
    ordered = list(tracks)
    if arc is None or arc is EnergyArcShape.STEADY:
        return ordered
    if arc is EnergyArcShape.BUILDING:
        return sorted(ordered, key=_energy)
    if arc is EnergyArcShape.WINDING_DOWN:
        return sorted(ordered, key=_energy, reverse=True)

    by_energy = sorted(ordered, key=_energy)
    midpoint = len(by_energy) // 2
    return by_energy[:midpoint] + sorted(by_energy[midpoint:], key=_energy, reverse=True)


def transition_distance(current: TrackCandidate, candidate: TrackCandidate) -> float:
    """Circular key distance (weighted x2) plus tempo difference / 10."""
    distance = 0.0
    key_a, key_b = current.features.key, candidate.features.key
    if key_a is not None and key_b is not None and key_a >= 0 and key_b >= 0:
        step = abs(key_a - key_b) % PITCH_CLASSES
        distance += min(step, PITCH_CLASSES - step) * 2
    tempo_a, tempo_b = current.features.tempo, candidate.features.tempo
    if tempo_a is not None and tempo_b is not None:
        distance += abs(tempo_a - tempo_b) / 10
    return distance


def order_for_smart_transitions(tracks: Sequence[TrackCandidate]) -> List[TrackCandidate]:
    """Greedy nearest-neighbour ordering starting from the first track."""
    remaining = list(tracks)
    if len(remaining) < 3:
        return remaining

    ordered = [remaining.pop(0)]
    while remaining:
        current = ordered[-1]
        best_index = min(
            range(len(remaining)),
            key=lambda i: transition_distance(current, remaining[i])
        )
        ordered.append(remaining.pop(best_index))
    return ordered
