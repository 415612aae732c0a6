"""podresolve - Identify podcast, episode and timestamp from player screenshots."""

__version__ = "1.0.0"

from podresolve.candidate_extractor import extract_candidates, is_valid_candidate, score_candidate
from podresolve.catalog_client import ITunesCatalogClient
from podresolve.exceptions import CatalogError, NoTextDetectedError, OcrError
from podresolve.models import NOT_FOUND, ResolutionResult, ScreenshotResult, TextCandidate
from podresolve.pipeline import process_screenshot, process_screenshots
from podresolve.resolver import CatalogResolver
from podresolve.similarity import similarity
from podresolve.spatial_pairing import find_spatial_pairs
from podresolve.timestamp_extractor import extract_timestamp

__all__ = [
    'extract_candidates',
    'is_valid_candidate',
    'score_candidate',
    'ITunesCatalogClient',
    'CatalogError',
    'NoTextDetectedError',
    'OcrError',
    'NOT_FOUND',
    'ResolutionResult',
    'ScreenshotResult',
    'TextCandidate',
    'process_screenshot',
    'process_screenshots',
    'CatalogResolver',
    'similarity',
    'find_spatial_pairs',
    'extract_timestamp',
]
