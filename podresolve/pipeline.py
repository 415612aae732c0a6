"""End-to-end screenshot processing: OCR, candidates, pairing, resolution, timestamp."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Tuple, Union

from podresolve.candidate_extractor import extract_candidates, group_words_into_lines
from podresolve.config import Config
from podresolve.episode_cache import EpisodeCache
from podresolve.exceptions import OcrError
from podresolve.models import OcrOutput, ScreenshotResult
from podresolve.ocr_engine import detect_text
from podresolve.resolver import CatalogResolver
from podresolve.spatial_pairing import find_spatial_pairs
from podresolve.timestamp_extractor import extract_timestamp

logger = logging.getLogger(__name__)

OcrFunction = Callable[[bytes], OcrOutput]


def resolve_ocr_output(
    ocr_output: OcrOutput,
    resolver: CatalogResolver,
    config: Optional[Config] = None
) -> ScreenshotResult:
    """
    Resolve an already-recognised screenshot.

    Candidate extraction and timestamp extraction both work from the same
    OCR output; each call gets its own episode cache.
    """
    config = config or Config()

    candidates = extract_candidates(ocr_output.word_boxes, config.extractor)
    pairs = find_spatial_pairs(candidates, config.resolver)
    resolution = resolver.resolve(candidates, pairs, cache=EpisodeCache())

    lines = group_words_into_lines(ocr_output.word_boxes, config.extractor.line_tolerance)
    timestamp = extract_timestamp(ocr_output.full_text, lines, config.extractor)

    return ScreenshotResult(
        resolution=resolution,
        timestamp=timestamp,
        candidates=candidates,
        raw_text=ocr_output.full_text,
    )


def process_screenshot(
    image_bytes: bytes,
    resolver: CatalogResolver,
    config: Optional[Config] = None,
    ocr: OcrFunction = detect_text
) -> ScreenshotResult:
    """
    Identify podcast, episode and timestamp from a player screenshot.

    Raises:
        OcrError: If text could not be recognised; no partial result is produced
    """
    try:
        ocr_output = ocr(image_bytes)
    except OcrError as e:
        logger.error(f"OCR failed: {e}")
        raise
    return resolve_ocr_output(ocr_output, resolver, config)


def process_screenshots(
    images: Dict[str, bytes],
    resolver: CatalogResolver,
    config: Optional[Config] = None,
    ocr: OcrFunction = detect_text,
    max_workers: int = 4
) -> List[Tuple[str, Union[ScreenshotResult, OcrError]]]:
    """
    Resolve several screenshots concurrently.

    Each screenshot runs through process_screenshot independently; an OCR
    failure is returned in place of that screenshot's result.

    Returns:
        (name, ScreenshotResult or OcrError) in the order of images
    """
    def _run(name: str, data: bytes):
        try:
            return name, process_screenshot(data, resolver, config, ocr)
        except OcrError as e:
            return name, e

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(_run, name, data) for name, data in images.items()]
        return [future.result() for future in futures]
