"""
Context Feature Weights

Per-feature weights used when comparing a track to a listening pattern.
Weights start from an immutable base; each active context dimension
applies an override function in the fixed order time -> activity ->
weather -> template, so later dimensions win on shared fields.
"""

from dataclasses import dataclass, fields, replace
from functools import reduce
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from ...models.listening_models import (
    ActivityType,
    ContextSignature,
    TimeOfDay,
    UNSPECIFIED,
    WeatherCondition,
)
from ...models.playlist_models import PlaylistTemplate


@dataclass(frozen=True)
class FeatureWeights:
    """Weight per compared audio feature."""
    energy: float = 0.20
    valence: float = 0.20
    tempo: float = 0.15
    danceability: float = 0.15
    acousticness: float = 0.15
    instrumentalness: float = 0.15

    def with_overrides(self, overrides: Mapping[str, float]) -> "FeatureWeights":
        return replace(self, **overrides)

    def items(self) -> List[Tuple[str, float]]:
        return [(f.name, getattr(self, f.name)) for f in fields(self)]


DEFAULT_FEATURE_WEIGHTS = FeatureWeights()


@dataclass(frozen=True)
class ScoringContext:
    """The context dimensions active for one scoring pass."""
    time_of_day: Optional[TimeOfDay] = None
    activity: Optional[ActivityType] = None
    weather: Optional[WeatherCondition] = None
    template: Optional[PlaylistTemplate] = None

    @classmethod
    def from_signature(
        cls,
        signature: ContextSignature,
        template: Optional[PlaylistTemplate] = None
    ) -> "ScoringContext":
        return cls(
            time_of_day=None if signature.time_of_day is UNSPECIFIED else signature.time_of_day,
            activity=None if signature.activity is UNSPECIFIED else signature.activity,
            weather=None if signature.weather is UNSPECIFIED else signature.weather,
            template=template,
        )


TIME_OF_DAY_OVERRIDES: Dict[TimeOfDay, Dict[str, float]] = {
    TimeOfDay.MORNING: {"energy": 0.30, "valence": 0.30, "tempo": 0.20},
    TimeOfDay.AFTERNOON: {"energy": 0.20, "danceability": 0.25, "tempo": 0.20},
    TimeOfDay.EVENING: {"acousticness": 0.30, "valence": 0.25, "energy": 0.15},
    TimeOfDay.NIGHT: {"acousticness": 0.35, "energy": 0.10, "valence": 0.20},
}

_MOVING = {"energy": 0.35, "tempo": 0.35, "danceability": 0.20}
ACTIVITY_OVERRIDES: Dict[ActivityType, Dict[str, float]] = {
    ActivityType.RUNNING: _MOVING,
    ActivityType.CYCLING: _MOVING,
    ActivityType.WALKING: {"tempo": 0.25, "energy": 0.25},
    ActivityType.STATIONARY: {"acousticness": 0.25, "instrumentalness": 0.25},
}

_OVERCAST = {"acousticness": 0.30, "valence": 0.25, "energy": 0.15}
WEATHER_OVERRIDES: Dict[WeatherCondition, Dict[str, float]] = {
    WeatherCondition.RAINY: _OVERCAST,
    WeatherCondition.CLOUDY: _OVERCAST,
    WeatherCondition.SUNNY: {"energy": 0.30, "valence": 0.30},
    WeatherCondition.STORMY: {"energy": 0.25, "instrumentalness": 0.25},
}

TEMPLATE_OVERRIDES: Dict[PlaylistTemplate, Dict[str, float]] = {
    PlaylistTemplate.FOCUS_FLOW: {"instrumentalness": 0.40, "energy": 0.30, "acousticness": 0.20},
    PlaylistTemplate.WORKOUT: {"energy": 0.40, "tempo": 0.40, "danceability": 0.20},
    PlaylistTemplate.EVENING_WINDDOWN: {"acousticness": 0.35, "energy": 0.10, "valence": 0.25},
}

WeightOverride = Callable[[FeatureWeights, ScoringContext], FeatureWeights]


def _table_override(table: Mapping, dimension: str) -> WeightOverride:
    def apply(weights: FeatureWeights, context: ScoringContext) -> FeatureWeights:
        value = getattr(context, dimension)
        overrides = table.get(value) if value is not None else None
        return weights.with_overrides(overrides) if overrides else weights

    apply.__name__ = f"apply_{dimension}_override"
    return apply


apply_time_of_day_override = _table_override(TIME_OF_DAY_OVERRIDES, "time_of_day")
apply_activity_override = _table_override(ACTIVITY_OVERRIDES, "activity")
apply_weather_override = _table_override(WEATHER_OVERRIDES, "weather")
apply_template_override = _table_override(TEMPLATE_OVERRIDES, "template")

OVERRIDE_ORDER: Tuple[WeightOverride, ...] = (
    apply_time_of_day_override,
    apply_activity_override,
    apply_weather_override,
    apply_template_override,
)


def resolve_feature_weights(
    context: Optional[ScoringContext],
    base: FeatureWeights = DEFAULT_FEATURE_WEIGHTS,
    overrides: Tuple[WeightOverride, ...] = OVERRIDE_ORDER
) -> FeatureWeights:
    """Apply each override in order to the base weights."""
    if context is None:
        return base
    return reduce(lambda weights, override: override(weights, context), overrides, base)
