from unittest.mock import MagicMock

import pytest
import requests

from podresolve.catalog_client import ITunesCatalogClient, to_episode, to_podcast
from podresolve.config import CatalogConfig
from podresolve.exceptions import CatalogError

PODCAST_RECORD = {
    "wrapperType": "track",
    "kind": "podcast",
    "collectionId": 1028908750,
    "trackId": 1028908750,
    "collectionName": "Hidden Brain",
    "trackName": "Hidden Brain",
    "artistName": "Hidden Brain, Shankar Vedantam",
    "feedUrl": "https://feeds.example.com/hiddenbrain",
    "artworkUrl100": "https://img.example.com/100.jpg",
    "artworkUrl600": "https://img.example.com/600.jpg",
}

EPISODE_RECORD = {
    "wrapperType": "podcastEpisode",
    "kind": "podcast-episode",
    "trackId": 1000650000001,
    "trackName": "Why We Do The Things We Do (Part 1)",
    "collectionId": 1028908750,
    "collectionName": "Hidden Brain",
    "trackTimeMillis": 3000000,
    "releaseDate": "2024-03-04T08:00:00Z",
    "artworkUrl160": "https://img.example.com/160.jpg",
}


def _session(payload=None):
    session = MagicMock()
    session.headers = {}
    response = MagicMock()
    response.json.return_value = payload if payload is not None else {"results": []}
    session.get.return_value = response
    return session


def test_to_podcast():
    podcast = to_podcast(PODCAST_RECORD)
    assert podcast.id == 1028908750
    assert podcast.title == "Hidden Brain"
    assert podcast.feed_url == "https://feeds.example.com/hiddenbrain"
    assert podcast.artwork_url == "https://img.example.com/600.jpg"
    assert to_podcast({"collectionName": "No Id"}) is None


def test_to_episode():
    episode = to_episode(EPISODE_RECORD)
    assert episode.id == 1000650000001
    assert episode.title == "Why We Do The Things We Do (Part 1)"
    assert episode.duration_ms == 3000000
    assert episode.podcast_id == 1028908750
    assert episode.podcast_title == "Hidden Brain"
    assert episode.artwork_url == "https://img.example.com/160.jpg"


def test_to_episode_skips_podcast_record():
    assert to_episode(PODCAST_RECORD) is None


def test_search_podcasts():
    session = _session({"results": [PODCAST_RECORD, {"trackName": "broken"}]})
    client = ITunesCatalogClient(CatalogConfig(timeout=5.0, country="GB"), session=session)

    podcasts = client.search_podcasts("Hidden Brain")

    assert [p.title for p in podcasts] == ["Hidden Brain"]
    args, kwargs = session.get.call_args
    assert args[0] == "https://itunes.apple.com/search"
    assert kwargs["timeout"] == 5.0
    assert kwargs["params"]["entity"] == "podcast"
    assert kwargs["params"]["term"] == "Hidden Brain"
    assert kwargs["params"]["country"] == "GB"
    assert session.headers["accept"] == "application/json"


def test_search_podcasts_blank_term():
    session = _session()
    assert ITunesCatalogClient(session=session).search_podcasts("  ") == []
    session.get.assert_not_called()


def test_lookup_episodes_drops_podcast_record():
    session = _session({"results": [PODCAST_RECORD, EPISODE_RECORD]})
    episodes = ITunesCatalogClient(session=session).lookup_episodes(1028908750)

    assert [e.id for e in episodes] == [1000650000001]
    _, kwargs = session.get.call_args
    assert kwargs["params"]["id"] == 1028908750
    assert kwargs["params"]["entity"] == "podcastEpisode"
    assert kwargs["params"]["limit"] == 200


def test_search_episodes():
    session = _session({"results": [EPISODE_RECORD]})
    episodes = ITunesCatalogClient(session=session).search_episodes("Things We Do")

    assert episodes[0].podcast_title == "Hidden Brain"
    _, kwargs = session.get.call_args
    assert kwargs["params"]["entity"] == "podcastEpisode"


def test_http_error_raises_catalog_error():
    session = _session()
    error = requests.exceptions.HTTPError(response=MagicMock(status_code=503))
    session.get.return_value.raise_for_status.side_effect = error

    with pytest.raises(CatalogError) as excinfo:
        ITunesCatalogClient(session=session).search_podcasts("Hidden Brain")
    assert excinfo.value.status_code == 503


def test_timeout_raises_catalog_error():
    session = _session()
    session.get.side_effect = requests.exceptions.Timeout()

    with pytest.raises(CatalogError, match="timed out"):
        ITunesCatalogClient(session=session).lookup_episodes(1)


def test_connection_error_raises_catalog_error():
    session = _session()
    session.get.side_effect = requests.exceptions.ConnectionError("refused")

    with pytest.raises(CatalogError) as excinfo:
        ITunesCatalogClient(session=session).search_episodes("Hidden Brain")
    assert excinfo.value.status_code is None


def test_invalid_json_raises_catalog_error():
    session = _session()
    session.get.return_value.json.side_effect = ValueError("Expecting value")

    with pytest.raises(CatalogError, match="invalid JSON"):
        ITunesCatalogClient(session=session).search_podcasts("Hidden Brain")
