import pytest

from podresolve.exceptions import NoTextDetectedError, OcrError
from podresolve.models import OcrOutput
from podresolve.pipeline import process_screenshot, process_screenshots, resolve_ocr_output
from podresolve.resolver import CatalogResolver


@pytest.fixture
def player_ocr(player_screenshot):
    full_text, boxes = player_screenshot
    return OcrOutput(full_text=full_text, word_boxes=boxes)


def test_resolve_ocr_output(hidden_brain_catalog, player_ocr):
    result = resolve_ocr_output(player_ocr, CatalogResolver(hidden_brain_catalog))

    assert result.resolution.found
    assert result.resolution.podcast_title == "Hidden Brain"
    assert result.resolution.episode_title == "Why We Do The Things We Do (Part 1)"
    assert result.timestamp == "11:03"
    assert [c.text for c in result.candidates] == ["Why We Do the Things We Do w", "Hidden Brain"]
    assert result.raw_text == player_ocr.full_text


def test_process_screenshot(hidden_brain_catalog, player_ocr):
    seen = []

    def ocr(data):
        seen.append(data)
        return player_ocr

    result = process_screenshot(b"png-bytes", CatalogResolver(hidden_brain_catalog), ocr=ocr)
    assert seen == [b"png-bytes"]
    assert result.resolution.method == "spatial_pair_podcast_below"


def test_process_screenshot_ocr_failure(hidden_brain_catalog):
    def ocr(data):
        raise OcrError("OCR provider error: boom")

    with pytest.raises(OcrError):
        process_screenshot(b"png-bytes", CatalogResolver(hidden_brain_catalog), ocr=ocr)
    assert hidden_brain_catalog.calls == []


def test_process_screenshots(hidden_brain_catalog, player_ocr):
    def ocr(data):
        if data == b"blank":
            raise NoTextDetectedError("No text detected in image")
        return player_ocr

    results = process_screenshots(
        {"player.png": b"player", "blank.png": b"blank", "again.png": b"player"},
        CatalogResolver(hidden_brain_catalog),
        ocr=ocr,
        max_workers=2,
    )

    assert [name for name, _ in results] == ["player.png", "blank.png", "again.png"]
    assert results[0][1].resolution.found
    assert isinstance(results[1][1], NoTextDetectedError)
    assert results[2][1].timestamp == "11:03"
