"""
Playlist Templates

Predefined playlist recipes: filters, ordering, diversity and discovery
defaults, plus the context hint used to look up a matching pattern.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from ..models.listening_models import (
    ActivityType,
    ContextSignature,
    DayGroup,
    DayOfWeek,
    TimeOfDay,
    WeatherCondition,
)
from ..models.playlist_models import (
    DiversityLevel,
    EnergyArcShape,
    PlaylistFilters,
    PlaylistGenerationOptions,
    PlaylistTemplate,
)

DEFAULT_PLAYLIST_NAME = "ToneMap Playlist"
DEFAULT_PLAYLIST_DESCRIPTION = "Generated by ToneMap based on your listening patterns"


@dataclass(frozen=True)
class TemplateConfig:
    """Defaults a template applies to a generation request."""
    name: str
    description: str
    filters: Optional[PlaylistFilters] = None
    energy_arc: EnergyArcShape = EnergyArcShape.STEADY
    smart_transitions: bool = False
    diversity_level: DiversityLevel = DiversityLevel.MEDIUM
    include_discovery: bool = False
    use_current_context: bool = False
    pattern_hint: ContextSignature = field(default_factory=ContextSignature)


TEMPLATE_CONFIGS: Dict[PlaylistTemplate, TemplateConfig] = {
    PlaylistTemplate.MORNING_ENERGY: TemplateConfig(
        name="Morning Energy",
        description="Start your day with high-energy tracks matched to your taste",
        filters=PlaylistFilters(energy_range=(0.5, 1.0), valence_range=(0.4, 1.0), tempo_range=(90, 160)),
        energy_arc=EnergyArcShape.BUILDING,
        smart_transitions=True,
        diversity_level=DiversityLevel.HIGH,
        pattern_hint=ContextSignature(time_of_day=TimeOfDay.MORNING),
    ),
    PlaylistTemplate.FOCUS_FLOW: TemplateConfig(
        name="Focus Flow",
        description="Instrumental and low-energy tracks for deep concentration",
        filters=PlaylistFilters(energy_range=(0.2, 0.75), valence_range=(0.25, 0.75), tempo_range=(60, 130)),
        pattern_hint=ContextSignature(activity=ActivityType.STATIONARY),
    ),
    PlaylistTemplate.EVENING_WINDDOWN: TemplateConfig(
        name="Evening Wind-Down",
        description="Wind down with mellow tracks that match your mood",
        filters=PlaylistFilters(energy_range=(0.1, 0.65), valence_range=(0.2, 0.8), tempo_range=(60, 130)),
        energy_arc=EnergyArcShape.WINDING_DOWN,
        smart_transitions=True,
        pattern_hint=ContextSignature(time_of_day=TimeOfDay.EVENING),
    ),
    PlaylistTemplate.RAINY_DAY: TemplateConfig(
        name="Rainy Day Vibes",
        description="Perfect for cloudy, rainy weather",
        filters=PlaylistFilters(energy_range=(0.15, 0.75), valence_range=(0.2, 0.75), tempo_range=(60, 130)),
        diversity_level=DiversityLevel.HIGH,
        pattern_hint=ContextSignature(weather=WeatherCondition.RAINY),
    ),
    PlaylistTemplate.WORKOUT: TemplateConfig(
        name="Workout Mix",
        description="High-energy tracks to power your workout",
        filters=PlaylistFilters(energy_range=(0.6, 1.0), tempo_range=(110, 200), valence_range=(0.3, 1.0)),
        energy_arc=EnergyArcShape.BUILDING,
        pattern_hint=ContextSignature(activity=ActivityType.RUNNING),
    ),
    PlaylistTemplate.WEEKEND_VIBES: TemplateConfig(
        name="Weekend Vibes",
        description="Your perfect weekend soundtrack",
        filters=PlaylistFilters(day_of_week=[DayOfWeek.SATURDAY, DayOfWeek.SUNDAY]),
        diversity_level=DiversityLevel.HIGH,
        include_discovery=True,
        pattern_hint=ContextSignature(day_of_week=DayGroup.WEEKEND),
    ),
    PlaylistTemplate.RIGHT_NOW: TemplateConfig(
        name="Right Now",
        description="Perfect for your current mood and context",
        diversity_level=DiversityLevel.HIGH,
        use_current_context=True,
    ),
    PlaylistTemplate.CUSTOM: TemplateConfig(
        name="Custom Playlist",
        description="Custom-generated playlist by ToneMap",
    ),
}

# Time of day -> energy band used when no pattern covers the current context
CONTEXT_ENERGY_BANDS: Dict[TimeOfDay, Tuple[float, float]] = {
    TimeOfDay.MORNING: (0.4, 1.0),
    TimeOfDay.AFTERNOON: (0.3, 0.9),
    TimeOfDay.EVENING: (0.2, 0.8),
    TimeOfDay.NIGHT: (0.1, 0.7),
}
CONTEXT_VALENCE_BAND = (0.2, 1.0)
CONTEXT_TEMPO_BAND = (60, 180)


def get_template_config(template: Optional[PlaylistTemplate]) -> TemplateConfig:
    return TEMPLATE_CONFIGS.get(template, TEMPLATE_CONFIGS[PlaylistTemplate.CUSTOM])


def template_name(template: Optional[PlaylistTemplate]) -> str:
    config = TEMPLATE_CONFIGS.get(template)
    return config.name if config else DEFAULT_PLAYLIST_NAME


def template_description(template: Optional[PlaylistTemplate]) -> str:
    config = TEMPLATE_CONFIGS.get(template)
    return config.description if config else DEFAULT_PLAYLIST_DESCRIPTION


def resolve_options(
    template: PlaylistTemplate,
    options: Optional[PlaylistGenerationOptions] = None
) -> PlaylistGenerationOptions:
    """
    Template defaults overlaid with the caller's explicit options.

    Only options the caller actually set override the template; filters
    are merged field by field.
    """
    config = get_template_config(template)
    resolved = PlaylistGenerationOptions(
        template=template,
        filters=config.filters.model_copy(deep=True) if config.filters else None,
        energy_arc=config.energy_arc,
        smart_transitions=config.smart_transitions,
        diversity_level=config.diversity_level,
        include_discovery=config.include_discovery,
        use_current_context=config.use_current_context,
    )
    if options is None:
        return resolved

    updates = {
        name: getattr(options, name)
        for name in options.model_fields_set
        if name not in ("template", "filters")
    }
    if options.filters is not None:
        base = resolved.filters or PlaylistFilters()
        updates["filters"] = base.merged_with(options.filters)
    return resolved.model_copy(update=updates)


def context_band_filters(time_of_day: TimeOfDay) -> PlaylistFilters:
    """Broad filters for the current time of day."""
    return PlaylistFilters(
        energy_range=CONTEXT_ENERGY_BANDS[time_of_day],
        valence_range=CONTEXT_VALENCE_BAND,
        tempo_range=CONTEXT_TEMPO_BAND,
    )


def pattern_hint_for(
    template: PlaylistTemplate,
    filters: Optional[PlaylistFilters] = None
) -> ContextSignature:
    """
    Context hint for pattern lookup.

    Single-valued context filters take precedence over the template's own
    hint for that dimension.
    """
    hint = get_template_config(template).pattern_hint
    if filters is None:
        return hint

    values = {
        "time_of_day": hint.time_of_day,
        "day_of_week": hint.day_of_week,
        "weather": hint.weather,
        "activity": hint.activity,
    }
    for name in values:
        chosen = getattr(filters, name)
        if len(chosen) == 1:
            values[name] = chosen[0]
    return ContextSignature(**values)
