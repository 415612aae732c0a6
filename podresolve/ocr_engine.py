"""OCR provider for player screenshots using EasyOCR."""

import io
import logging
import threading
import warnings
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import List, Optional, Sequence

from PIL import Image, UnidentifiedImageError

try:
    import easyocr
    import numpy as np
    import torch
    has_easyocr = True

    # Suppress PyTorch pin_memory warnings on MPS (Apple Silicon)
    warnings.filterwarnings('ignore', message='.*pin_memory.*', category=UserWarning)
    warnings.filterwarnings('ignore', message='.*not supported on MPS.*', category=UserWarning)
except ImportError:
    easyocr = None
    np = None
    torch = None
    has_easyocr = False

from podresolve.exceptions import NoTextDetectedError, OcrError
from podresolve.models import OcrOutput, WordBox

# Global reader instance (initialized lazily)
EASYOCR_READER = None
_READER_LOCK = threading.Lock()
DEFAULT_LANGUAGES = ('en',)
DEFAULT_TIMEOUT = 30.0
logger = logging.getLogger(__name__)


def initialize_reader(gpu: Optional[bool] = None, languages: Sequence[str] = DEFAULT_LANGUAGES, verbose: bool = True) -> None:
    """
    Initialize the EasyOCR reader, using a GPU if one is available.

    Args:
        gpu: Use GPU acceleration (default: auto-detect)
        languages: EasyOCR language codes
        verbose: Log which device is used

    Raises:
        OcrError: If easyocr is missing or the reader cannot be created
    """
    if not has_easyocr:
        raise OcrError("easyocr is not installed. Please install it with: pip install easyocr")

    # Screenshots processed concurrently must share a single reader
    with _READER_LOCK:
        if EASYOCR_READER is None:
            _create_reader(gpu, languages, verbose)


def _create_reader(gpu: Optional[bool], languages: Sequence[str], verbose: bool) -> None:
    global EASYOCR_READER

    if gpu is None:
        if torch is not None and torch.cuda.is_available():
            gpu = True
            if verbose: logger.info("EasyOCR: Using CUDA (NVIDIA/ROCm GPU)")
        elif torch is not None and hasattr(torch.backends, 'mps') and torch.backends.mps.is_available():
            gpu = True
            if verbose: logger.info("EasyOCR: Using MPS (Apple Silicon GPU)")
        else:
            gpu = False
            if verbose: logger.info("EasyOCR: Using CPU (No GPU detected)")
    else:
        if verbose: logger.info(f"EasyOCR: Using {'GPU' if gpu else 'CPU'} (Manual override)")

    try:
        EASYOCR_READER = easyocr.Reader(list(languages), gpu=gpu)
    except Exception as e:
        # Fallback to CPU if GPU initialization fails
        if gpu:
            if verbose: logger.warning(f"EasyOCR: GPU initialization failed ({e}), falling back to CPU")
            try:
                EASYOCR_READER = easyocr.Reader(list(languages), gpu=False)
                return
            except Exception as e2:
                raise OcrError(f"Failed to initialize EasyOCR (CPU fallback also failed): {e2}") from e2
        raise OcrError(f"Failed to initialize EasyOCR: {e}") from e


def _load_image(image_bytes: bytes):
    """Decode image bytes into an RGB numpy array."""
    try:
        image = Image.open(io.BytesIO(image_bytes))
        if image.mode != 'RGB':
            image = image.convert('RGB')
    except (UnidentifiedImageError, OSError) as e:
        raise OcrError("Invalid image format - please use PNG, JPG, or WebP") from e
    return np.array(image)


def split_segment(bbox, text: str) -> List[WordBox]:
    """
    Split an EasyOCR text segment into per-word boxes.

    EasyOCR returns phrase-level boxes; word X extents are interpolated from
    character offsets along the segment so downstream line grouping and word
    counts behave as with a word-level provider.
    """
    points = [(float(x), float(y)) for x, y in bbox]
    words = text.split()
    if len(words) <= 1:
        return [WordBox(text=text.strip(), vertices=tuple(points))] if text.strip() else []

    left = min(x for x, _ in points)
    right = max(x for x, _ in points)
    top = min(y for _, y in points)
    bottom = max(y for _, y in points)
    char_width = (right - left) / max(len(text), 1)

    boxes = []
    offset = 0
    for word in words:
        start = text.index(word, offset)
        end = start + len(word)
        offset = end
        x0 = left + start * char_width
        x1 = left + end * char_width
        boxes.append(WordBox(text=word, vertices=((x0, top), (x1, top), (x1, bottom), (x0, bottom))))
    return boxes


def detect_text(
    image_bytes: bytes,
    min_confidence: float = 0.3,
    timeout: float = DEFAULT_TIMEOUT
) -> OcrOutput:
    """
    Run OCR on a screenshot.

    Recognition runs on a worker thread of its own executor. EasyOCR cannot be
    interrupted, so after a timeout that thread keeps running until readtext
    returns and its result is discarded; later calls are not queued behind it.

    Args:
        image_bytes: Encoded image (PNG, JPG, WebP)
        min_confidence: Minimum EasyOCR confidence for a segment to be kept
        timeout: Seconds to wait for recognition

    Returns:
        OcrOutput with the reading-order full text and per-word boxes

    Raises:
        NoTextDetectedError: If recognition succeeded but found no text
        OcrError: On any provider failure or timeout
    """
    if not image_bytes:
        raise OcrError("Empty image")

    if EASYOCR_READER is None:
        initialize_reader(gpu=None)

    image = _load_image(image_bytes)

    executor = ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(EASYOCR_READER.readtext, image, paragraph=False)
        results = future.result(timeout=timeout)
    except FutureTimeoutError as e:
        raise OcrError("Image processing timed out - try a smaller image or crop the screenshot") from e
    except Exception as e:
        raise OcrError(f"OCR provider error: {e}") from e
    finally:
        executor.shutdown(wait=False)

    segments = [(bbox, text.strip()) for bbox, text, confidence in results
                if confidence >= min_confidence and text and text.strip()]
    if not segments:
        raise NoTextDetectedError("No text detected in image")

    # Reading order: top to bottom, then left to right
    segments.sort(key=lambda s: (min(p[1] for p in s[0]), min(p[0] for p in s[0])))

    word_boxes = []
    for bbox, text in segments:
        word_boxes.extend(split_segment(bbox, text))

    full_text = '\n'.join(text for _, text in segments)
    logger.info(f"OCR found {len(word_boxes)} words in {len(segments)} segments")
    logger.debug(f"OCR full text:\n{full_text}")
    return OcrOutput(full_text=full_text, word_boxes=word_boxes)
