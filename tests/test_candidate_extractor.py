import pytest

from podresolve.candidate_extractor import (
    extract_candidates,
    filter_by_position,
    group_words_into_lines,
    is_potentially_truncated,
    is_valid_candidate,
    score_candidate,
)
from podresolve.config import ExtractorConfig
from podresolve.models import WordBox


def test_group_words_into_lines(words):
    boxes = words("Brain", 300, 104) + words("Hidden", 40, 100) + words("Why We Do", 40, 150)
    lines = group_words_into_lines(boxes)

    assert [l.text for l in lines] == ["Hidden Brain", "Why We Do"]
    first = lines[0]
    assert first.center_y == pytest.approx((100 + 144) / 2)
    assert first.left == 40
    assert first.right == 390
    assert first.box_area == 3600
    assert first.word_count == 2


def test_group_words_respects_tolerance(words):
    boxes = words("Hidden", 40, 100) + words("Brain", 300, 112)
    assert len(group_words_into_lines(boxes, tolerance=10)) == 2
    assert len(group_words_into_lines(boxes, tolerance=15)) == 1


def test_group_words_skips_blank_words(words):
    boxes = words("Hidden Brain", 40, 100)
    blank = WordBox(text="  ", vertices=boxes[0].vertices)
    assert [l.text for l in group_words_into_lines(boxes + [blank])] == ["Hidden Brain"]


def test_filter_by_position_primary_band(line):
    lines = [
        line("Status Bar Text", 0),
        line("Episode Title Here", 500),
        line("Podcast Name Here", 600),
        line("Huge Album Art", 700, area=9000),
        line("Bottom Tab Bar", 1000),
    ]
    kept = filter_by_position(lines)
    assert [l.center_y for l in kept] == [500, 600]


def test_filter_by_position_upper_band(line):
    lines = [line("Top", 0), line("Title A", 300), line("Title B", 400), line("Bottom", 1000)]
    assert [l.center_y for l in filter_by_position(lines)] == [300, 400]


def test_filter_by_position_lenient_fallback(line):
    lines = [line("Top", 0), line("Only Title", 300), line("Bottom", 1000)]
    assert [l.center_y for l in filter_by_position(lines)] == [300]


def test_filter_by_position_uses_accept_predicate(line):
    lines = [line("Top", 0), line("12:30", 550), line("Hidden Brain", 600), line("Bottom", 1000)]
    kept = filter_by_position(lines, accept=lambda l: ':' not in l.text)
    assert [l.text for l in kept] == ["Hidden Brain"]


def test_filter_by_position_empty():
    assert filter_by_position([]) == []


@pytest.mark.parametrize("text", [
    "Hidden Brain",
    "The Daily",
    "Why We Do the Things We Do w",
    "Where Should We Begin? with Esther Perel",
])
def test_is_valid_candidate_accepts_titles(line, text):
    assert is_valid_candidate(line(text, 500))


@pytest.mark.parametrize("text", [
    "Brain",
    "ab",
    "11:03",
    "12345678",
    "Battery 80%",
    "12/05/2024",
    "Tuesday, 5 March",
    "11:03 -35:12",
    "LIBRARY",
    "and then",
    "Charging scheduled for later",
    "Now Playing on Air",
    "Ep 12 of 40",
    "▶ Hidden Brain Show",
    "Hid...",
    "x" * 81,
])
def test_is_valid_candidate_rejects_system_text(line, text):
    assert not is_valid_candidate(line(text, 500))


def test_is_valid_candidate_rejects_tiny_font(line):
    assert not is_valid_candidate(line("Hidden Brain", 500, area=200))


def test_is_valid_candidate_respects_config(line):
    config = ExtractorConfig(min_candidate_length=15)
    assert not is_valid_candidate(line("Hidden Brain", 500), config)


def test_is_potentially_truncated():
    assert is_potentially_truncated("Why We Do the Things We Do w")
    assert is_potentially_truncated("the things we do")
    assert is_potentially_truncated("Hidden Brain…")
    assert not is_potentially_truncated("Hidden Brain")


def test_score_candidate_prefers_title_like_text(line):
    title = score_candidate(line("Hidden Brain Weekly Show", 500))
    metadata = score_candidate(line("Hidden Brain 45 minutes", 500))
    assert title.score == pytest.approx(2.0 + 2 + 2 + 1.5)
    assert metadata.score == pytest.approx(title.score - 2)


def test_score_candidate_penalises_truncation(line):
    candidate = score_candidate(line("Why We Do the Things We Do w", 500, area=3600))
    assert candidate.is_truncated
    assert candidate.score == pytest.approx((3.6 + 2 + 2 + 2 + 1.5) * 0.7)


def test_score_candidate_never_negative(line):
    assert score_candidate(line("Listened 5 min ago", 500, area=100)).score == 0.0


def test_score_candidate_keeps_geometry(line):
    candidate = score_candidate(line("Hidden Brain", 520, area=3000, left=40, right=230))
    assert candidate.center_y == 520
    assert candidate.left == 40
    assert candidate.right == 230
    assert candidate.word_count == 2


def test_extract_candidates_from_player(player_screenshot):
    _, boxes = player_screenshot
    candidates = extract_candidates(boxes)

    assert [c.text for c in candidates] == ["Why We Do the Things We Do w", "Hidden Brain"]
    assert candidates[0].score == pytest.approx(7.77)
    assert candidates[1].score == pytest.approx(7.1)
    assert candidates[0].is_truncated


def test_extract_candidates_limit(player_screenshot):
    _, boxes = player_screenshot
    candidates = extract_candidates(boxes, ExtractorConfig(max_candidates=1))
    assert [c.text for c in candidates] == ["Why We Do the Things We Do w"]


def test_extract_candidates_empty():
    assert extract_candidates([]) == []


def test_filter_by_position_drops_huge_status_bar_text(line):
    lines = [
        line("Top", 0),
        line("Lock Clock", 180, area=9000, left=0, right=100),
        line("Only Title", 300),
        line("Bottom", 1000),
    ]
    assert [l.text for l in filter_by_position(lines)] == ["Only Title"]


def test_filter_by_position_keeps_large_font_in_content_band(line):
    lines = [
        line("Top", 0),
        line("Big Title Font", 600, area=9000, left=0, right=100),
        line("Podcast Name Here", 700),
        line("Bottom", 1000),
    ]
    assert [l.text for l in filter_by_position(lines)] == ["Big Title Font", "Podcast Name Here"]


def test_extract_candidates_high_resolution_title(words):
    boxes = (
        words("9:41", 40, 20)
        + words("Why We Do the Things We Do w", 40, 1440)
        + words("Hidden Brain", 40, 1500, width=170, height=50, spacing=190)
        + words("Library", 40, 1980)
        + words("Search", 700, 1980)
    )
    candidates = extract_candidates(boxes)

    assert [c.text for c in candidates] == ["Hidden Brain", "Why We Do the Things We Do w"]
    assert candidates[0].box_area == 8500
