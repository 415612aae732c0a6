"""Resolve OCR candidates to a catalog (podcast, episode) pair.

Resolution runs an ordered list of phases, each a callable
``(candidates, context) -> ResolutionResult | None``. The first phase that
produces a validated result ends the run; later phases are cheaper to skip
than to run. A CatalogError inside a phase counts as a miss for that phase
only.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from podresolve.config import ResolverConfig
from podresolve.episode_cache import EpisodeCache
from podresolve.exceptions import CatalogError
from podresolve.models import (
    NOT_FOUND,
    CatalogEpisode,
    CatalogPodcast,
    ResolutionResult,
    SpatialPair,
    TextCandidate,
)
from podresolve.similarity import (
    extract_keywords,
    find_best_match,
    keyword_coverage,
    normalize_text,
    similarity,
)
from podresolve.spatial_pairing import find_spatial_pairs

logger = logging.getLogger(__name__)

KEYWORD_BASE_CONFIDENCE = 0.6
KEYWORD_CONFIDENCE_RANGE = 0.2

_TRAILING_FRAGMENT_RE = re.compile(r'\s+\w{1,3}$')
_ELLIPSIS_RE = re.compile(r'\s*(\.{3,}|…)\s*')


@dataclass
class ResolutionContext:
    """State for one resolve() call. Never shared between resolutions."""
    candidates: List[TextCandidate]
    pairs: List[SpatialPair]
    cache: EpisodeCache = field(default_factory=EpisodeCache)
    podcast_hits: Dict[int, CatalogPodcast] = field(default_factory=dict)
    searches: Dict[str, List[CatalogPodcast]] = field(default_factory=dict)
    best_effort: Optional[ResolutionResult] = None

    def consider(self, result: ResolutionResult) -> None:
        """Remember the strongest attempt seen so far."""
        if self.best_effort is None or result.confidence > self.best_effort.confidence:
            self.best_effort = result


def query_variants(text: str) -> List[str]:
    """
    Cleaned-up search terms for text OCR may have truncated at either end.

    Returns variants in the order they should be tried, without the
    original text itself.
    """
    variants = []
    cleaned = _ELLIPSIS_RE.sub(' ', text).strip()
    words = cleaned.split()
    if len(words) >= 3:
        cleaned = _TRAILING_FRAGMENT_RE.sub('', cleaned)
    variants.append(normalize_text(cleaned))

    normalized = normalize_text(cleaned)
    if normalized.startswith('the '):
        variants.append(normalized[4:])
    for suffix in (' podcast', ' show'):
        if normalized.endswith(suffix):
            variants.append(normalized[:-len(suffix)])

    words = normalized.split()
    if len(words) >= 3:
        variants.append(' '.join(words[1:-1]))
        variants.append(' '.join(words[1:]))
        variants.append(' '.join(words[:-1]))

    original = normalize_text(text)
    unique = []
    for variant in variants:
        if len(variant) >= 4 and variant != original and variant not in unique:
            unique.append(variant)
    return unique


class CatalogResolver:
    """
    Multi-phase resolver over a catalog client.

    The client needs search_podcasts(term), lookup_episodes(podcast_id) and
    search_episodes(term); see ITunesCatalogClient.
    """

    def __init__(self, client, config: Optional[ResolverConfig] = None):
        self.client = client
        self.config = config or ResolverConfig()
        self.phases: List[Tuple[str, Callable[[List[TextCandidate], ResolutionContext], Optional[ResolutionResult]]]] = [
            ("spatial_pair", self._phase_spatial_pairs),
            ("individual_candidate", self._phase_individual_candidates),
            ("fuzzy_podcast_search", self._phase_fuzzy_podcast_search),
            ("keyword_fallback", self._phase_keyword_fallback),
            ("broad_episode_search", self._phase_broad_episode_search),
        ]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve(
        self,
        candidates: Sequence[TextCandidate],
        spatial_pairs: Optional[Sequence[SpatialPair]] = None,
        cache: Optional[EpisodeCache] = None
    ) -> ResolutionResult:
        """
        Resolve candidates to a podcast and episode.

        Args:
            candidates: Scored candidates, best first
            spatial_pairs: Ranked pairs (computed from candidates if omitted)
            cache: Episode cache to use; cleared before returning

        Returns:
            A validated ResolutionResult, or NOT_FOUND
        """
        if spatial_pairs is None:
            spatial_pairs = find_spatial_pairs(candidates, self.config)
        context = ResolutionContext(
            candidates=list(candidates),
            pairs=list(spatial_pairs),
            cache=cache if cache is not None else EpisodeCache(),
        )
        return self.run(context)

    def run(self, context: ResolutionContext) -> ResolutionResult:
        """Run all phases against a prepared context, clearing its cache afterwards."""
        try:
            if not context.candidates:
                logger.info("No candidates to resolve")
                return NOT_FOUND

            for name, phase in self.phases:
                logger.debug(f"Running phase {name}")
                try:
                    result = phase(context.candidates, context)
                except CatalogError as e:
                    logger.warning(f"Phase {name} failed: {e}")
                    continue

                if result is not None and result.validated:
                    logger.info(
                        f"Resolved via {result.method}: \"{result.podcast_title}\" / "
                        f"\"{result.episode_title}\" (confidence: {result.confidence:.3f})"
                    )
                    return result

            if context.best_effort is not None:
                logger.info(
                    f"Best unvalidated guess: \"{context.best_effort.podcast_title}\" / "
                    f"\"{context.best_effort.episode_title}\" (confidence: {context.best_effort.confidence:.3f})"
                )
            logger.info("No phase reached the confidence threshold")
            return NOT_FOUND
        finally:
            context.cache.clear()

    def validate_podcast_info(self, podcast_text: str, episode_text: Optional[str] = None) -> ResolutionResult:
        """
        Validate a podcast title, and optionally an episode title, against the catalog.

        Runs with its own episode cache, which is cleared before returning.
        Catalog failures propagate as CatalogError.
        """
        context = ResolutionContext(candidates=[], pairs=[])
        try:
            podcast = self._search_podcast(podcast_text, context)
            if podcast is None or podcast.match_confidence <= self.config.podcast_accept_similarity:
                return NOT_FOUND

            if not episode_text:
                return self._podcast_only_result(podcast)

            episode = self._match_episode(
                podcast, episode_text, context, self.config.catalog_episode_min_similarity
            )
            if episode is None:
                return NOT_FOUND
            return self._result(podcast, episode, "podcast_info")
        finally:
            context.cache.clear()

    # ------------------------------------------------------------------
    # Catalog helpers
    # ------------------------------------------------------------------

    def _search_podcast(self, term: str, context: ResolutionContext) -> Optional[CatalogPodcast]:
        """Search the catalog and return the closest podcast annotated with its similarity."""
        key = normalize_text(term)
        if not key:
            return None
        if key not in context.searches:
            context.searches[key] = self.client.search_podcasts(term)

        best = find_best_match(term, context.searches[key], key=lambda p: p.title)
        if best is None:
            return None

        podcast = replace(best[0], match_confidence=best[1])
        logger.debug(f"Best podcast for \"{term}\": \"{podcast.title}\" ({podcast.match_confidence:.3f})")

        if podcast.match_confidence > self.config.podcast_accept_similarity:
            known = context.podcast_hits.get(podcast.id)
            if known is None or known.match_confidence < podcast.match_confidence:
                context.podcast_hits[podcast.id] = podcast
        return podcast

    def _episodes(self, podcast: CatalogPodcast, context: ResolutionContext) -> List[CatalogEpisode]:
        episodes = context.cache.get(podcast.id)
        if episodes is None:
            episodes = self.client.lookup_episodes(podcast.id)
            context.cache.put(podcast.id, episodes)
        return episodes

    def _keyword_episode(self, episodes: Sequence[CatalogEpisode], text: str) -> Optional[CatalogEpisode]:
        """Pick the episode whose title covers the largest share of keywords from text."""
        keywords = extract_keywords(text)
        if not keywords:
            return None

        best_episode = None
        best_coverage = 0.0
        for episode in episodes:
            coverage = keyword_coverage(keywords, episode.title)
            if coverage > best_coverage:
                best_episode = episode
                best_coverage = coverage

        if best_episode is None or best_coverage < self.config.keyword_min_coverage:
            return None

        logger.debug(f"Keyword match \"{best_episode.title}\" (coverage: {best_coverage:.2f}, keywords: {keywords})")
        confidence = KEYWORD_BASE_CONFIDENCE + best_coverage * KEYWORD_CONFIDENCE_RANGE
        return replace(best_episode, match_confidence=confidence)

    def _match_episode(
        self,
        podcast: CatalogPodcast,
        text: str,
        context: ResolutionContext,
        min_similarity: float
    ) -> Optional[CatalogEpisode]:
        """Match episode text against a podcast's episodes: title similarity first, then keywords."""
        episodes = self._episodes(podcast, context)
        if not episodes:
            return None

        best = find_best_match(text, episodes, key=lambda e: e.title)
        if best is not None and best[1] > min_similarity:
            return replace(best[0], match_confidence=best[1])

        return self._keyword_episode(episodes, text)

    def _result(self, podcast: CatalogPodcast, episode: CatalogEpisode, method: str) -> ResolutionResult:
        confidence = min(1.0, max(0.0, podcast.match_confidence * episode.match_confidence))
        return ResolutionResult(
            podcast_title=podcast.title,
            episode_title=episode.title,
            confidence=confidence,
            method=method,
            validated=confidence >= self.config.min_confidence,
            podcast_id=podcast.id,
            episode_id=episode.id,
        )

    def _podcast_only_result(self, podcast: CatalogPodcast) -> ResolutionResult:
        return ResolutionResult(
            podcast_title=podcast.title,
            episode_title=None,
            confidence=podcast.match_confidence,
            method="podcast_info",
            validated=podcast.match_confidence >= self.config.min_confidence,
            podcast_id=podcast.id,
        )

    def _attempt(
        self,
        podcast_text: str,
        episode_text: str,
        context: ResolutionContext,
        min_episode_similarity: float,
        method: str
    ) -> Optional[ResolutionResult]:
        podcast = self._search_podcast(podcast_text, context)
        if podcast is None or podcast.match_confidence <= self.config.podcast_accept_similarity:
            return None

        episode = self._match_episode(podcast, episode_text, context, min_episode_similarity)
        if episode is None:
            logger.debug(f"No episode \"{episode_text}\" in \"{podcast.title}\"")
            return None

        result = self._result(podcast, episode, method)
        context.consider(result)
        return result

    def _find_podcast_fuzzy(self, text: str, context: ResolutionContext) -> Optional[CatalogPodcast]:
        """Exact search first, then cleaned and trimmed variants of the text."""
        podcast = self._search_podcast(text, context)
        if podcast is not None and podcast.match_confidence >= self.config.strong_podcast_similarity:
            return podcast

        for variant in query_variants(text):
            podcast = self._search_podcast(variant, context)
            if podcast is not None and podcast.match_confidence >= self.config.strong_podcast_similarity:
                logger.debug(f"Variant \"{variant}\" matched \"{podcast.title}\"")
                return podcast
        return None

    @staticmethod
    def _nearest_other(candidate: TextCandidate, candidates: Sequence[TextCandidate]) -> Optional[TextCandidate]:
        others = [c for c in candidates if c.text != candidate.text]
        if not others:
            return None
        return min(others, key=lambda c: abs(c.center_y - candidate.center_y))

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _phase_spatial_pairs(self, candidates, context: ResolutionContext) -> Optional[ResolutionResult]:
        for pair in context.pairs:
            logger.debug(f"Testing pair top=\"{pair.top.text}\" bottom=\"{pair.bottom.text}\"")
            orientations = (
                (pair.bottom, pair.top, "spatial_pair_podcast_below"),
                (pair.top, pair.bottom, "spatial_pair_podcast_above"),
            )
            for podcast_candidate, episode_candidate, method in orientations:
                result = self._attempt(
                    podcast_candidate.text,
                    episode_candidate.text,
                    context,
                    self.config.pair_episode_min_similarity,
                    method,
                )
                if result is not None and result.validated:
                    return result
        return None

    def _phase_individual_candidates(self, candidates, context: ResolutionContext) -> Optional[ResolutionResult]:
        for candidate in candidates:
            nearest = self._nearest_other(candidate, candidates)
            if nearest is None:
                continue
            result = self._attempt(
                candidate.text,
                nearest.text,
                context,
                self.config.adjacent_episode_min_similarity,
                "individual_candidate",
            )
            if result is not None and result.validated:
                return result
        return None

    def _phase_fuzzy_podcast_search(self, candidates, context: ResolutionContext) -> Optional[ResolutionResult]:
        for candidate in candidates:
            nearest = self._nearest_other(candidate, candidates)
            if nearest is None:
                continue
            podcast = self._find_podcast_fuzzy(candidate.text, context)
            if podcast is None:
                continue
            episode = self._match_episode(
                podcast, nearest.text, context, self.config.adjacent_episode_min_similarity
            )
            if episode is None:
                continue
            result = self._result(podcast, episode, "fuzzy_podcast_search")
            context.consider(result)
            if result.validated:
                return result
        return None

    def _phase_keyword_fallback(self, candidates, context: ResolutionContext) -> Optional[ResolutionResult]:
        strong = sorted(
            (p for p in context.podcast_hits.values()
             if p.match_confidence >= self.config.strong_podcast_similarity),
            key=lambda p: p.match_confidence,
            reverse=True,
        )
        best = None
        for podcast in strong:
            episodes = self._episodes(podcast, context)
            for candidate in candidates:
                # Skip the line that named the podcast itself
                if similarity(candidate.text, podcast.title) > self.config.max_pair_similarity:
                    continue
                episode = self._keyword_episode(episodes, candidate.text)
                if episode is None:
                    continue
                result = self._result(podcast, episode, "keyword_fallback")
                context.consider(result)
                if result.validated and (best is None or result.confidence > best.confidence):
                    best = result
        return best

    def _phase_broad_episode_search(self, candidates, context: ResolutionContext) -> Optional[ResolutionResult]:
        for candidate in candidates:
            episodes = [e for e in self.client.search_episodes(candidate.text) if e.podcast_title]
            best = find_best_match(candidate.text, episodes, key=lambda e: e.title)
            if best is None or best[1] < self.config.broad_episode_min_similarity:
                continue

            episode, score = best
            confidence = score * self.config.broad_search_penalty
            result = ResolutionResult(
                podcast_title=episode.podcast_title,
                episode_title=episode.title,
                confidence=confidence,
                method="broad_episode_search",
                validated=confidence >= self.config.min_confidence,
                podcast_id=episode.podcast_id,
                episode_id=episode.id,
            )
            context.consider(result)
            if result.validated:
                return result
        return None
