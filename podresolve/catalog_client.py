"""iTunes Search API client for podcast and episode lookups.

Records are normalised here into CatalogPodcast / CatalogEpisode so nothing
downstream needs to know about collectionName vs trackName or which artwork
size the API happened to return.
"""

import logging
from typing import Dict, List, Optional

import requests

from podresolve.config import CatalogConfig
from podresolve.exceptions import CatalogError
from podresolve.models import CatalogEpisode, CatalogPodcast

logger = logging.getLogger(__name__)

ARTWORK_KEYS = ('artworkUrl600', 'artworkUrl160', 'artworkUrl100', 'artworkUrl60', 'artworkUrl30')


def _artwork_url(record: Dict) -> Optional[str]:
    for key in ARTWORK_KEYS:
        if record.get(key):
            return record[key]
    return None


def to_podcast(record: Dict) -> Optional[CatalogPodcast]:
    """Normalise a podcast record; returns None if it has no id or title."""
    podcast_id = record.get('collectionId') or record.get('trackId')
    title = record.get('collectionName') or record.get('trackName')
    if not podcast_id or not title:
        return None
    return CatalogPodcast(
        id=int(podcast_id),
        title=title,
        artist_name=record.get('artistName', ''),
        feed_url=record.get('feedUrl'),
        artwork_url=_artwork_url(record),
    )


def to_episode(record: Dict) -> Optional[CatalogEpisode]:
    """Normalise an episode record; returns None for non-episode records."""
    if record.get('kind') not in (None, 'podcast-episode') or record.get('wrapperType') == 'track':
        return None
    episode_id = record.get('trackId')
    title = record.get('trackName')
    if not episode_id or not title:
        return None
    return CatalogEpisode(
        id=int(episode_id),
        title=title,
        duration_ms=record.get('trackTimeMillis'),
        artwork_url=_artwork_url(record),
        release_date=record.get('releaseDate'),
        podcast_id=record.get('collectionId'),
        podcast_title=record.get('collectionName'),
    )


class ITunesCatalogClient:
    """Thin query layer over the iTunes Search API."""

    def __init__(self, config: Optional[CatalogConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or CatalogConfig()
        self.session = session or requests.Session()
        self.session.headers.update({
            'accept': 'application/json',
        })

    def _get(self, path: str, params: Dict) -> List[Dict]:
        url = f"{self.config.base_url}/{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.config.timeout)
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise CatalogError(f"Catalog HTTP error {status} for {path}", status_code=status) from e
        except requests.exceptions.Timeout as e:
            raise CatalogError(f"Catalog request timed out after {self.config.timeout}s ({path})") from e
        except requests.exceptions.RequestException as e:
            raise CatalogError(f"Catalog request failed ({path}): {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise CatalogError(f"Catalog returned invalid JSON ({path})") from e
        return data.get('results', [])

    def search_podcasts(self, term: str) -> List[CatalogPodcast]:
        """Search podcasts by free-text term."""
        if not term or not term.strip():
            return []
        results = self._get('search', {
            'term': term,
            'media': 'podcast',
            'entity': 'podcast',
            'limit': self.config.search_limit,
            'country': self.config.country,
        })
        podcasts = [p for p in (to_podcast(r) for r in results) if p is not None]
        logger.debug(f"Podcast search \"{term}\" returned {len(podcasts)} results")
        return podcasts

    def lookup_episodes(self, podcast_id: int) -> List[CatalogEpisode]:
        """Fetch the most recent episodes of a podcast."""
        results = self._get('lookup', {
            'id': podcast_id,
            'media': 'podcast',
            'entity': 'podcastEpisode',
            'limit': self.config.episode_limit,
            'country': self.config.country,
        })
        # The first record describes the podcast itself
        episodes = [e for e in (to_episode(r) for r in results) if e is not None]
        logger.debug(f"Episode lookup for {podcast_id} returned {len(episodes)} episodes")
        return episodes

    def search_episodes(self, term: str) -> List[CatalogEpisode]:
        """Search episodes across all podcasts."""
        if not term or not term.strip():
            return []
        results = self._get('search', {
            'term': term,
            'media': 'podcast',
            'entity': 'podcastEpisode',
            'limit': 50,
            'country': self.config.country,
        })
        episodes = [e for e in (to_episode(r) for r in results) if e is not None]
        logger.debug(f"Episode search \"{term}\" returned {len(episodes)} results")
        return episodes
