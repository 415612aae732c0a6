"""Propose (podcast, episode) pairs from vertically adjacent candidates."""

import logging
from typing import List, Optional, Sequence

from podresolve.config import ResolverConfig
from podresolve.models import SpatialPair, TextCandidate
from podresolve.similarity import similarity

logger = logging.getLogger(__name__)


def horizontal_overlap_ratio(a: TextCandidate, b: TextCandidate) -> float:
    """
    Overlap of the two boxes' X extents divided by their combined extent.

    Left-aligned lines score low only when their widths differ a lot; two
    fragments of the same text block score close to 1.
    """
    overlap = min(a.right, b.right) - max(a.left, b.left)
    if overlap <= 0:
        return 0.0
    union = max(a.right, b.right) - min(a.left, b.left)
    if union <= 0:
        return 0.0
    return overlap / union


def find_spatial_pairs(
    candidates: Sequence[TextCandidate],
    config: Optional[ResolverConfig] = None
) -> List[SpatialPair]:
    """
    Build ranked top/bottom pairs from candidates.

    Pairs are discarded when the lines are too far apart, nearly identical, or
    overlap horizontally so much that they are one block split by OCR.
    Remaining pairs are ordered by the better individual score (desc), then
    position on screen (higher first), then distance (closer first), then
    text similarity (more distinct first).

    Args:
        candidates: Scored candidates
        config: Resolver configuration holding the pairing thresholds

    Returns:
        Ranked list of SpatialPair
    """
    config = config or ResolverConfig()
    ordered = sorted(candidates, key=lambda c: c.center_y)
    pairs = []

    for i, top in enumerate(ordered):
        for bottom in ordered[i + 1:]:
            if bottom.center_y <= top.center_y:
                continue

            distance = bottom.center_y - top.center_y
            if distance > config.max_pair_distance:
                # Sorted by Y, every later candidate is further away
                break

            text_similarity = similarity(top.text, bottom.text)
            if text_similarity > config.max_pair_similarity:
                logger.debug(f"Skipping near-duplicate pair \"{top.text}\" / \"{bottom.text}\"")
                continue

            overlap = horizontal_overlap_ratio(top, bottom)
            if overlap > config.max_horizontal_overlap:
                logger.debug(f"Skipping overlapping pair \"{top.text}\" / \"{bottom.text}\" ({overlap:.2f})")
                continue

            pairs.append(SpatialPair(
                top=top,
                bottom=bottom,
                vertical_distance=distance,
                text_similarity=text_similarity,
                horizontal_overlap_ratio=overlap,
            ))

    pairs.sort(key=lambda p: (
        -max(p.top.score, p.bottom.score),
        p.top.center_y,
        p.vertical_distance,
        p.text_similarity,
    ))

    logger.info(f"Found {len(pairs)} spatial pairs")
    for pair in pairs:
        logger.debug(f"  \"{pair.top.text}\" + \"{pair.bottom.text}\" ({pair.vertical_distance:.0f}px apart)")
    return pairs
