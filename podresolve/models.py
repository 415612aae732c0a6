"""Data types shared across the screenshot resolution pipeline."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from podresolve.config import MIN_CONFIDENCE


@dataclass(frozen=True)
class WordBox:
    """A single OCR word with its four bounding-box vertices (x, y)."""
    text: str
    vertices: Tuple[Tuple[float, float], ...]

    @property
    def left(self) -> float:
        return min(x for x, _ in self.vertices)

    @property
    def right(self) -> float:
        return max(x for x, _ in self.vertices)

    @property
    def top(self) -> float:
        return min(y for _, y in self.vertices)

    @property
    def bottom(self) -> float:
        return max(y for _, y in self.vertices)

    @property
    def area(self) -> float:
        return (self.right - self.left) * (self.bottom - self.top)


@dataclass
class TextLine:
    """Words sharing a horizontal baseline, in reading order."""
    text: str
    center_y: float
    center_x: float
    left: float
    right: float
    box_area: float
    word_count: int
    words: List[WordBox] = field(default_factory=list)


@dataclass(frozen=True)
class TextCandidate:
    """A filtered, scored line of OCR text that may be a podcast or episode title."""
    text: str
    center_y: float
    center_x: float
    box_area: float
    word_count: int
    score: float
    left: float = 0.0
    right: float = 0.0
    is_truncated: bool = False

    @property
    def width(self) -> float:
        return max(0.0, self.right - self.left)


@dataclass(frozen=True)
class SpatialPair:
    top: TextCandidate
    bottom: TextCandidate
    vertical_distance: float
    text_similarity: float
    horizontal_overlap_ratio: float


@dataclass(frozen=True)
class CatalogPodcast:
    id: int
    title: str
    artist_name: str = ""
    feed_url: Optional[str] = None
    artwork_url: Optional[str] = None
    match_confidence: float = 0.0


@dataclass(frozen=True)
class CatalogEpisode:
    """An episode record; podcast_id/podcast_title are set when known (broad search)."""
    id: int
    title: str
    duration_ms: Optional[int] = None
    artwork_url: Optional[str] = None
    release_date: Optional[str] = None
    podcast_id: Optional[int] = None
    podcast_title: Optional[str] = None
    match_confidence: float = 0.0


@dataclass(frozen=True)
class ResolutionResult:
    """
    Terminal output of the catalog resolver.

    A validated result always carries confidence >= MIN_CONFIDENCE; anything
    weaker is reported through the NOT_FOUND sentinel instead.
    """
    podcast_title: Optional[str]
    episode_title: Optional[str]
    confidence: float
    method: str
    validated: bool
    podcast_id: Optional[int] = None
    episode_id: Optional[int] = None

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")
        if self.validated and self.confidence < MIN_CONFIDENCE:
            raise ValueError(
                f"validated result requires confidence >= {MIN_CONFIDENCE}, got {self.confidence:.3f}"
            )

    @property
    def found(self) -> bool:
        return self.validated


NOT_FOUND = ResolutionResult(
    podcast_title=None,
    episode_title=None,
    confidence=0.0,
    method="not_found",
    validated=False,
)


@dataclass
class OcrOutput:
    """Raw OCR provider output for one image."""
    full_text: str
    word_boxes: List[WordBox]


@dataclass
class ScreenshotResult:
    """Everything extracted from one screenshot, handed to the transcript step."""
    resolution: ResolutionResult
    timestamp: Optional[str]
    candidates: List[TextCandidate] = field(default_factory=list)
    raw_text: str = ""
