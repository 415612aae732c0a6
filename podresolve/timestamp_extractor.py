"""Find the playback-progress timestamp in a player screenshot.

Clock times (status bar, lock screen, scheduled-charging notices) look exactly
like progress timestamps, so a match is only discarded as a clock when its
box is clock-sized, or when it is written as an am/pm literal AND sits next
to clock-context words. Remaining-time displays ("-12:30") are skipped.
"""

import logging
import re
from typing import List, Optional, Sequence, Tuple

from podresolve.candidate_extractor import filter_by_position, group_words_into_lines
from podresolve.config import ExtractorConfig
from podresolve.models import TextLine, WordBox

logger = logging.getLogger(__name__)

TIME_RE = re.compile(r'(?<![\d:])(\d{1,2}:\d{2}(?::\d{2})?)(?![\d:])')
AMPM_RE = re.compile(r'^\s*(am|pm|a\.\s?m\.?|p\.\s?m\.?)(?![a-z])', re.IGNORECASE)
NEGATIVE_SIGNS = ('-', '−', '–')
CONTEXT_RADIUS = 30


def _is_ampm_literal(text: str, end: int) -> bool:
    return bool(AMPM_RE.match(text[end:]))


def _has_clock_context(full_text: str, position: int, length: int, phrases: Sequence[str]) -> bool:
    context = full_text[max(0, position - CONTEXT_RADIUS):position + length + CONTEXT_RADIUS].lower()
    return any(re.search(r'\b' + re.escape(phrase) + r'\b', context) for phrase in phrases)


def _is_clock(full_text: str, position: int, value: str, phrases: Sequence[str]) -> bool:
    """Both checks must agree: am/pm literal and clock-context words nearby."""
    return (
        _is_ampm_literal(full_text, position + len(value))
        and _has_clock_context(full_text, position, len(value), phrases)
    )


def _is_negative(text: str, start: int) -> bool:
    return start > 0 and text[start - 1] in NEGATIVE_SIGNS


def extract_timestamp(
    full_text: str,
    lines: Sequence[TextLine],
    config: Optional[ExtractorConfig] = None
) -> Optional[str]:
    """
    Extract the elapsed-time timestamp from OCR output.

    Args:
        full_text: Complete OCR text
        lines: Text lines with geometry (see group_words_into_lines)
        config: Extractor configuration (bands, clock area, context phrases)

    Returns:
        "MM:SS" or "H:MM:SS" string, or None if nothing plausible was found
    """
    config = config or ExtractorConfig()
    full_text = full_text or '\n'.join(line.text for line in lines)
    phrases = config.clock_context_phrases

    in_band = filter_by_position(lines, config, accept=lambda line: bool(TIME_RE.search(line.text)))

    found: List[Tuple[float, str]] = []
    for line in in_band:
        if line.box_area > config.clock_area_threshold:
            logger.debug(f"Skipping clock-sized time \"{line.text}\" (area: {line.box_area:.0f})")
            continue

        line_offset = full_text.find(line.text)
        for match in TIME_RE.finditer(line.text):
            value = match.group(1)
            if _is_negative(line.text, match.start()):
                logger.debug(f"Skipping remaining-time display -{value}")
                continue

            if line_offset >= 0:
                is_clock = _is_clock(full_text, line_offset + match.start(), value, phrases)
            else:
                is_clock = _is_clock(line.text, match.start(), value, phrases)
            if is_clock:
                logger.debug(f"Skipping clock time {value}")
                continue

            found.append((line.center_y, value))

    if found:
        # Lowest on screen is closest to the scrubber
        lowest = max(y for y, _ in found)
        timestamp = next(value for y, value in found if y == lowest)
        logger.info(f"Extracted timestamp {timestamp}")
        return timestamp

    for match in TIME_RE.finditer(full_text):
        value = match.group(1)
        if _is_clock(full_text, match.start(), value, phrases):
            continue
        logger.info(f"Extracted timestamp {value} from raw text fallback")
        return value

    logger.info("No timestamp found")
    return None


def extract_timestamp_from_words(
    full_text: str,
    word_boxes: Sequence[WordBox],
    config: Optional[ExtractorConfig] = None
) -> Optional[str]:
    """Group word boxes into lines, then extract the timestamp."""
    config = config or ExtractorConfig()
    lines = group_words_into_lines(word_boxes, config.line_tolerance)
    return extract_timestamp(full_text, lines, config)
