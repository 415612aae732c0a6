"""Turn raw OCR word boxes into scored podcast/episode title candidates."""

import logging
import re
from typing import Callable, List, Optional, Sequence

from podresolve.config import ExtractorConfig
from podresolve.models import TextCandidate, TextLine, WordBox

logger = logging.getLogger(__name__)

TIME_PATTERNS = [
    re.compile(r'^\d{1,2}:\d{2}(:\d{2})?(\s*(am|pm|a\.m\.|p\.m\.))?$', re.IGNORECASE),
]
TIMESTAMP_RE = re.compile(r'^\d{1,2}:\d{2}(:\d{2})?$')
PERCENT_RE = re.compile(r'\b\d+%')
NUMERIC_RE = re.compile(r'^[\d\s\-:.,/]+$')
SYMBOLS_RE = re.compile(r'^[^\w\s]+$')
ELLIPSIS_RE = re.compile(r'\.{3,}|…')
PLAYER_GLYPHS_RE = re.compile(r'[→←↑↓▶◀⏸⏯⏭⏮⏪⏩🔄🔀🔁]')

TITLE_MARKERS = [
    re.compile(r'\b(episode|ep|part|pt|chapter)\b', re.IGNORECASE),
    re.compile(r'\b(with|featuring|feat|interview|conversation|discussion)\b', re.IGNORECASE),
    re.compile(r'\?\s*$'),
    re.compile(r'\b(how|what|why|where|when|who)\b', re.IGNORECASE),
    re.compile(r'\b(the|a|an)\b', re.IGNORECASE),
]

METADATA_MARKERS = [
    re.compile(r'\b\d+\s*(min|mins|minutes|hour|hours|hr|hrs|sec|secs)\b', re.IGNORECASE),
    re.compile(r'\b(ago|yesterday|today|tomorrow)\b', re.IGNORECASE),
    re.compile(r'^\d+$'),
]

TRUNCATION_PENALTY = 0.7

# Multiple of the lenient band's top margin treated as the status-bar region
UPPER_REGION_FACTOR = 1.5


def group_words_into_lines(word_boxes: Sequence[WordBox], tolerance: float = 10) -> List[TextLine]:
    """
    Group OCR words into text lines.

    Words whose top-left Y coordinates lie within tolerance of an existing
    line join that line; words in a line are sorted by X to restore reading
    order.

    Args:
        word_boxes: OCR words in provider order
        tolerance: Maximum Y difference (px) for two words to share a line

    Returns:
        Lines in the order they were first seen
    """
    groups = []
    for word in word_boxes:
        if not word.text or not word.text.strip():
            continue
        y = word.vertices[0][1]
        group = next((g for g in groups if abs(g['y'] - y) < tolerance), None)
        if group is None:
            group = {'y': y, 'words': []}
            groups.append(group)
        group['words'].append(word)

    lines = []
    for group in groups:
        words = sorted(group['words'], key=lambda w: w.vertices[0][0])
        left = min(w.left for w in words)
        right = max(w.right for w in words)
        top = min(w.top for w in words)
        bottom = max(w.bottom for w in words)
        lines.append(TextLine(
            text=' '.join(w.text.strip() for w in words).strip(),
            center_y=(top + bottom) / 2,
            center_x=(left + right) / 2,
            left=left,
            right=right,
            box_area=sum(w.area for w in words) / len(words),
            word_count=len(words),
            words=words,
        ))
    return lines


def _is_oversized(
    line: TextLine,
    upper_limit: float,
    image_center_x: float,
    image_width: float,
    config: ExtractorConfig
) -> bool:
    # Lock-screen clock digits near the top of the screen
    if line.center_y < upper_limit and line.box_area > config.max_box_area:
        return True
    # Album art text sits in the horizontal centre of the screen
    if abs(line.center_x - image_center_x) < image_width * 0.15 and line.box_area > config.clock_area_threshold:
        return True
    return False


def filter_by_position(
    lines: Sequence[TextLine],
    config: Optional[ExtractorConfig] = None,
    accept: Optional[Callable[[TextLine], bool]] = None
) -> List[TextLine]:
    """
    Restrict lines to the vertical band where player metadata renders.

    Bands from config.position_bands are tried in order and the first one
    holding at least two accepted lines wins; otherwise the result of the
    last (most lenient) band is returned. Huge boxes in the status-bar region
    and large boxes centred like album art are always dropped.

    Args:
        lines: All lines of the screenshot
        config: Extractor configuration
        accept: Predicate deciding which lines count as survivors (default: all)

    Returns:
        Accepted lines inside the chosen band
    """
    config = config or ExtractorConfig()
    if not lines:
        return []
    accept = accept or (lambda line: True)

    min_y = min(line.center_y for line in lines)
    max_y = max(line.center_y for line in lines)
    height = max_y - min_y
    image_width = max(line.right for line in lines)
    image_center_x = image_width / 2
    upper_limit = min_y + height * config.position_bands[-1][0] * UPPER_REGION_FACTOR

    kept = []
    for line in lines:
        if _is_oversized(line, upper_limit, image_center_x, image_width, config):
            logger.debug(f"Dropped oversized box \"{line.text}\" (area: {line.box_area:.0f})")
            continue
        kept.append(line)

    survivors: List[TextLine] = []
    for low, high in config.position_bands:
        band_top = min_y + height * low
        band_bottom = min_y + height * high
        survivors = [l for l in kept if band_top <= l.center_y <= band_bottom and accept(l)]
        if len(survivors) >= 2:
            logger.debug(f"Position band {low:.0%}-{high:.0%} kept {len(survivors)} lines")
            return survivors

    logger.debug(f"Using lenient position band ({len(survivors)} lines)")
    return survivors


def is_time_pattern(text: str) -> bool:
    return any(p.match(text.strip()) for p in TIME_PATTERNS)


def is_date_pattern(text: str) -> bool:
    """Language-agnostic date detection (numeric separators, day/month phrases)."""
    lowered = text.lower()
    if re.search(r'\d+[/\-.]\d+([/\-.]\d+)?', lowered):
        return True
    if re.search(r'\b\d{1,2}\s+de\s+\w+', lowered):
        return True
    if len(lowered) < 25 and (re.search(r'^\d{1,2}\s+\w+', lowered) or re.search(r'^\w+\s+\d{1,2}$', lowered)):
        return True
    # Weekday with comma: "Tuesday, ..."
    if re.match(r'^[A-Z]\w+,', text) and len(text) < 20:
        return True
    return False


def could_be_timestamp(text: str) -> bool:
    return bool(TIMESTAMP_RE.match(text.strip()))


def is_clock_time(text: str, line: TextLine, config: ExtractorConfig) -> bool:
    """Large hh:mm text is a clock display, not playback progress."""
    if line.box_area > config.clock_area_threshold:
        return True
    return line.box_area > config.clock_area_threshold * 0.6 and bool(re.match(r'^\d{1,2}:\d{2}$', text.strip()))


def matches_system_phrase(text: str, phrases: Sequence[str]) -> bool:
    lowered = text.lower()
    return any(re.search(r'\b' + re.escape(phrase) + r'\b', lowered) for phrase in phrases)


def has_system_text_structure(text: str, line: TextLine, config: ExtractorConfig) -> bool:
    if line.box_area < config.min_font_area and not could_be_timestamp(text):
        return True

    words = text.split()
    has_digits = bool(re.search(r'\d', text))
    avg_word_length = sum(len(w) for w in words) / len(words) if words else 0
    if has_digits and avg_word_length < 4 and len(words) <= 4 and not could_be_timestamp(text):
        return True

    if re.search(r':\s*\d', text) and is_clock_time(text, line, config):
        return True

    if re.match(r'^\d', text) and len(text) < 15 and not could_be_timestamp(text):
        return True

    if PLAYER_GLYPHS_RE.search(text):
        return True

    return False


def is_valid_candidate(line: TextLine, config: Optional[ExtractorConfig] = None) -> bool:
    """
    Decide whether a line could plausibly be a podcast or episode title.

    Rules are structural (length, digit density, casing, box size) apart from
    the literal system phrase denylist kept in config.
    """
    config = config or ExtractorConfig()
    original = line.text.strip()
    text = original.lower()

    if len(text) < config.min_candidate_length or len(text) > config.max_candidate_length:
        logger.debug(f"Rejected \"{original}\": length {len(text)}")
        return False

    if line.word_count < 1 or (line.word_count == 1 and len(text) < 6):
        logger.debug(f"Rejected \"{original}\": single short word")
        return False

    if is_time_pattern(text) or is_date_pattern(original) or PERCENT_RE.search(text):
        logger.debug(f"Rejected \"{original}\": time/date/percentage")
        return False

    if NUMERIC_RE.match(text) or SYMBOLS_RE.match(text):
        logger.debug(f"Rejected \"{original}\": numbers or symbols only")
        return False

    if len(re.sub(r'\s', '', text)) <= 2:
        return False

    # Short ALL-CAPS runs are UI chrome; long ones may be podcast names
    if original == original.upper() and re.search(r'[A-Z]', original) and 3 < len(original) < 15 and line.word_count <= 2:
        logger.debug(f"Rejected \"{original}\": short all-caps UI element")
        return False

    if re.match(r'^[a-z]', original) and len(text) < 10:
        logger.debug(f"Rejected \"{original}\": short lowercase fragment")
        return False

    if ELLIPSIS_RE.search(text) and len(text) < 15:
        logger.debug(f"Rejected \"{original}\": short truncated text")
        return False

    if matches_system_phrase(text, config.system_phrases):
        logger.debug(f"Rejected \"{original}\": system phrase")
        return False

    if has_system_text_structure(text, line, config):
        logger.debug(f"Rejected \"{original}\": system text structure")
        return False

    return True


def is_potentially_truncated(text: str) -> bool:
    if '...' in text or '…' in text:
        return True
    if re.match(r'^[a-z]', text):
        return True
    if len(text) > 10 and re.search(r'\b\w{1,2}$', text):
        return True
    return bool(re.search(r'\w+\s+[a-z]{1,3}$', text))


def score_candidate(line: TextLine) -> TextCandidate:
    """
    Score a valid line by how title-like it looks.

    Larger boxes, moderate length and word count, title markers and proper
    noun casing add to the score. Truncated text is penalised rather than
    dropped since it still helps fuzzy matching.
    """
    original = line.text.strip()
    text = original.lower()
    score = min(line.box_area / 1000, 5)

    if 15 <= len(text) <= 50:
        score += 2
    elif 10 <= len(text) <= 60:
        score += 1

    if 3 <= line.word_count <= 8:
        score += 2
    elif line.word_count >= 2:
        score += 1

    for pattern in TITLE_MARKERS:
        if pattern.search(text):
            score += 1

    if re.match(r'^[A-Z]', original) and re.search(r'[A-Z][a-z]', original):
        score += 1.5

    # e.g. "BIG PICTURE SCIENCE"
    if original == original.upper() and len(original) >= 15 and line.word_count >= 2:
        score += 1

    if '?' in original:
        score += 1

    truncated = is_potentially_truncated(original)
    if truncated:
        score *= TRUNCATION_PENALTY

    for pattern in METADATA_MARKERS:
        if pattern.search(text):
            score -= 2

    return TextCandidate(
        text=original,
        center_y=line.center_y,
        center_x=line.center_x,
        box_area=line.box_area,
        word_count=line.word_count,
        score=max(0.0, score),
        left=line.left,
        right=line.right,
        is_truncated=truncated,
    )


def extract_candidates(
    word_boxes: Sequence[WordBox],
    config: Optional[ExtractorConfig] = None
) -> List[TextCandidate]:
    """
    Extract the top scored title candidates from OCR word boxes.

    Args:
        word_boxes: Raw OCR words
        config: Extractor configuration

    Returns:
        Up to config.max_candidates candidates, best score first
    """
    config = config or ExtractorConfig()
    lines = group_words_into_lines(word_boxes, config.line_tolerance)
    positioned = filter_by_position(lines, config, accept=lambda line: is_valid_candidate(line, config))

    candidates = sorted((score_candidate(line) for line in positioned), key=lambda c: c.score, reverse=True)
    candidates = candidates[:config.max_candidates]

    logger.info(f"Found {len(candidates)} text candidates from {len(lines)} lines")
    for candidate in candidates:
        logger.debug(f"  \"{candidate.text}\" (score: {candidate.score:.2f})")
    return candidates
