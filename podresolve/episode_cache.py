"""Episode-list cache scoped to a single resolution."""

from typing import Dict, List, Optional

from podresolve.models import CatalogEpisode


class EpisodeCache:
    """
    Maps podcast id -> episode list for the lifetime of one resolve() call.

    The resolver clears it when the call returns; never share an instance
    between concurrent resolutions.
    """

    def __init__(self):
        self._episodes: Dict[int, List[CatalogEpisode]] = {}

    def get(self, podcast_id: int) -> Optional[List[CatalogEpisode]]:
        return self._episodes.get(podcast_id)

    def put(self, podcast_id: int, episodes: List[CatalogEpisode]) -> None:
        self._episodes[podcast_id] = list(episodes)

    def clear(self) -> None:
        self._episodes.clear()

    def __contains__(self, podcast_id: int) -> bool:
        return podcast_id in self._episodes

    def __len__(self) -> int:
        return len(self._episodes)
