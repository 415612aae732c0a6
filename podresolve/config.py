"""Configuration for candidate extraction, catalog resolution and the catalog client.

Thresholds below were tuned empirically against real player screenshots.
They are kept as named constants so they can be recalibrated against a
labelled corpus without touching the scoring logic.
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)

# Minimum combined confidence for a validated result
MIN_CONFIDENCE = 0.5

# Catalog similarity thresholds
PODCAST_ACCEPT_SIMILARITY = 0.7
STRONG_PODCAST_SIMILARITY = 0.85
PAIR_EPISODE_MIN_SIMILARITY = 0.5
ADJACENT_EPISODE_MIN_SIMILARITY = 0.3
CATALOG_EPISODE_MIN_SIMILARITY = 0.2
KEYWORD_MIN_COVERAGE = 0.4
BROAD_EPISODE_MIN_SIMILARITY = 0.6
BROAD_SEARCH_PENALTY = 0.8

# Spatial pairing
MAX_PAIR_DISTANCE = 100
MAX_PAIR_SIMILARITY = 0.8
MAX_HORIZONTAL_OVERLAP = 0.7

# Box areas (px^2)
CLOCK_AREA_THRESHOLD = 5000
MAX_BOX_AREA = 8000
MIN_FONT_AREA = 300

# Vertical bands as fractions of the text extent, narrowest first.
# The last entry is the lenient whole-screen pass.
POSITION_BANDS: Tuple[Tuple[float, float], ...] = (
    (0.50, 0.875),
    (0.20, 0.50),
    (0.15, 0.95),
)

# Literal system-UI strings. Language-specific entries belong here and only
# here; the structural filters in candidate_extractor stay language-agnostic.
SYSTEM_PHRASES: Tuple[str, ...] = (
    "battery",
    "charging",
    "optimized charging",
    "low power mode",
    "scheduled",
    "not charging",
    "carga optimizada",
    "recarga",
    "programado",
    "batería",
    "cargando",
    "batterie",
    "chargement",
    "akku",
    "now playing",
    "up next",
    "control center",
    "airplay",
)

# Words that mark a nearby hh:mm as wall-clock time rather than playback position
CLOCK_CONTEXT_PHRASES: Tuple[str, ...] = (
    "morning",
    "afternoon",
    "evening",
    "night",
    "today",
    "tomorrow",
    "yesterday",
    "scheduled",
    "mañana",
    "tarde",
    "noche",
    "hoy",
    "ayer",
    "programado",
    "optimizada",
    "recarga",
)

STOPWORDS = frozenset([
    'the', 'and', 'for', 'with', 'that', 'this', 'but', 'not', 'you', 'are',
    'was', 'were', 'been', 'have', 'has', 'had', 'will', 'would', 'could',
    'should', 'of', 'to', 'in', 'on', 'at', 'an', 'is', 'it', 'or', 'as', 'by',
])


@dataclass
class ExtractorConfig:
    min_candidate_length: int = 8
    max_candidate_length: int = 80
    line_tolerance: float = 10
    max_candidates: int = 8
    max_box_area: float = MAX_BOX_AREA
    min_font_area: float = MIN_FONT_AREA
    clock_area_threshold: float = CLOCK_AREA_THRESHOLD
    position_bands: Tuple[Tuple[float, float], ...] = POSITION_BANDS
    system_phrases: Tuple[str, ...] = SYSTEM_PHRASES
    clock_context_phrases: Tuple[str, ...] = CLOCK_CONTEXT_PHRASES


@dataclass
class ResolverConfig:
    min_confidence: float = MIN_CONFIDENCE
    podcast_accept_similarity: float = PODCAST_ACCEPT_SIMILARITY
    strong_podcast_similarity: float = STRONG_PODCAST_SIMILARITY
    pair_episode_min_similarity: float = PAIR_EPISODE_MIN_SIMILARITY
    adjacent_episode_min_similarity: float = ADJACENT_EPISODE_MIN_SIMILARITY
    catalog_episode_min_similarity: float = CATALOG_EPISODE_MIN_SIMILARITY
    keyword_min_coverage: float = KEYWORD_MIN_COVERAGE
    broad_episode_min_similarity: float = BROAD_EPISODE_MIN_SIMILARITY
    broad_search_penalty: float = BROAD_SEARCH_PENALTY
    max_pair_distance: float = MAX_PAIR_DISTANCE
    max_pair_similarity: float = MAX_PAIR_SIMILARITY
    max_horizontal_overlap: float = MAX_HORIZONTAL_OVERLAP

    def __post_init__(self):
        # Validated results may never fall below the global floor
        if self.min_confidence < MIN_CONFIDENCE:
            raise ValueError(f"min_confidence must be >= {MIN_CONFIDENCE}, got {self.min_confidence}")


@dataclass
class CatalogConfig:
    base_url: str = "https://itunes.apple.com"
    timeout: float = 15.0
    search_limit: int = 10
    episode_limit: int = 200
    country: str = "US"


@dataclass
class Config:
    extractor: ExtractorConfig = field(default_factory=ExtractorConfig)
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)


def _merge_section(section, overrides: Dict, name: str):
    """Return a copy of a config dataclass with known keys replaced."""
    known = {f.name for f in fields(section)}
    values = {}
    for key, value in overrides.items():
        if key not in known:
            logger.warning(f"Ignoring unknown {name} setting: {key}")
            continue
        # JSON has no tuples
        if isinstance(value, list):
            value = tuple(tuple(v) if isinstance(v, list) else v for v in value)
        values[key] = value
    return replace(section, **values)


def load_config(path: Optional[Path] = None) -> Config:
    """
    Build a Config from defaults, an optional JSON file and environment variables.

    The JSON file may contain "extractor", "resolver" and "catalog" objects;
    missing keys keep their defaults. PODRESOLVE_CATALOG_TIMEOUT and
    PODRESOLVE_COUNTRY override the catalog section last.

    Args:
        path: Optional path to a JSON config file

    Returns:
        Populated Config

    Raises:
        ValueError: If the file exists but is not valid JSON
    """
    config = Config()

    if path is not None and path.exists():
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid config file {path}: {e}") from e

        config.extractor = _merge_section(config.extractor, data.get("extractor", {}), "extractor")
        config.resolver = _merge_section(config.resolver, data.get("resolver", {}), "resolver")
        config.catalog = _merge_section(config.catalog, data.get("catalog", {}), "catalog")
        logger.info(f"Loaded configuration from {path}")

    timeout = os.getenv('PODRESOLVE_CATALOG_TIMEOUT')
    if timeout:
        config.catalog = replace(config.catalog, timeout=float(timeout))
    country = os.getenv('PODRESOLVE_COUNTRY')
    if country:
        config.catalog = replace(config.catalog, country=country)

    return config
