import pytest

from podresolve.exceptions import CatalogError
from podresolve.models import CatalogEpisode, CatalogPodcast, TextCandidate, TextLine, WordBox
from podresolve.similarity import normalize_text


class FakeCatalogClient:
    """In-memory catalog that records every call."""

    def __init__(self, podcasts=None, episodes=None, episode_search=None, fail_podcast_search=False):
        self.podcasts = {normalize_text(k): v for k, v in (podcasts or {}).items()}
        self.episodes = episodes or {}
        self.episode_search = {normalize_text(k): v for k, v in (episode_search or {}).items()}
        self.fail_podcast_search = fail_podcast_search
        self.calls = []

    def count(self, name):
        return sum(1 for call, _ in self.calls if call == name)

    def search_podcasts(self, term):
        self.calls.append(('search_podcasts', term))
        if self.fail_podcast_search:
            raise CatalogError("Catalog request timed out")
        return list(self.podcasts.get(normalize_text(term), []))

    def lookup_episodes(self, podcast_id):
        self.calls.append(('lookup_episodes', podcast_id))
        return list(self.episodes.get(podcast_id, []))

    def search_episodes(self, term):
        self.calls.append(('search_episodes', term))
        return list(self.episode_search.get(normalize_text(term), []))


HIDDEN_BRAIN = CatalogPodcast(id=1, title="Hidden Brain", artist_name="Hidden Brain Media")
THINGS_WE_DO = CatalogEpisode(id=101, title="Why We Do The Things We Do (Part 1)", podcast_id=1, podcast_title="Hidden Brain")
HABITS = CatalogEpisode(id=102, title="The Power of Habits", podcast_id=1, podcast_title="Hidden Brain")


@pytest.fixture
def hidden_brain_catalog():
    return FakeCatalogClient(
        podcasts={"Hidden Brain": [HIDDEN_BRAIN]},
        episodes={1: [HABITS, THINGS_WE_DO]},
    )


def make_candidate(text, y, score=5.0, area=3000, left=0.0, right=0.0):
    return TextCandidate(
        text=text,
        center_y=y,
        center_x=(left + right) / 2,
        box_area=area,
        word_count=len(text.split()),
        score=score,
        left=left,
        right=right,
    )


def make_line(text, y, area=2000, left=100.0, right=400.0):
    return TextLine(
        text=text,
        center_y=y,
        center_x=(left + right) / 2,
        left=left,
        right=right,
        box_area=area,
        word_count=len(text.split()),
    )


def make_words(text, x, y, width=90, height=40, spacing=100):
    """One WordBox per word, laid out left to right on the same baseline."""
    boxes = []
    for i, word in enumerate(text.split()):
        left = x + i * spacing
        boxes.append(WordBox(
            text=word,
            vertices=((left, y), (left + width, y), (left + width, y + height), (left, y + height)),
        ))
    return boxes


@pytest.fixture
def candidate():
    return make_candidate


@pytest.fixture
def line():
    return make_line


@pytest.fixture
def words():
    return make_words


@pytest.fixture
def player_screenshot():
    """Word boxes of a typical now-playing screen, top to bottom."""
    rows = [
        ("9:41", 40, 20),
        ("Charging scheduled for 3:47 p.m.", 40, 70),
        ("Why We Do the Things We Do w", 40, 1440),
        ("Hidden Brain", 40, 1500),
        ("11:03", 40, 1700),
        ("-35:12", 700, 1700),
        ("Library", 40, 1980),
        ("Search", 700, 1980),
    ]
    boxes = []
    for text, x, y in rows:
        boxes.extend(make_words(text, x, y))
    full_text = "\n".join([
        "9:41",
        "Charging scheduled for 3:47 p.m.",
        "Why We Do the Things We Do w",
        "Hidden Brain",
        "11:03 -35:12",
        "Library Search",
    ])
    return full_text, boxes
