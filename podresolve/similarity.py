"""String similarity scoring for OCR text against catalog titles.

Rules are applied in priority order and the first one that fires decides the
score band:

1. exact match after normalisation            -> 1.0
2. substring containment                      -> 0.8 + 0.2 * coverage
3. consecutive phrase match (word prefixes)   -> 0.96 + 0.04 * coverage
4. word-level exact/partial overlap           -> capped below the phrase band

Containment and phrase rules are defined on the shorter/longer string, never
on argument position, so similarity(a, b) == similarity(b, a).
"""

import re
from collections import Counter
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar

from rapidfuzz import fuzz

from podresolve.config import STOPWORDS

T = TypeVar('T')

PARTIAL_WORD_WEIGHT = 0.6
MIXED_MATCH_BOOST = 0.15
PARTIAL_ONLY_BOOST = 0.1
WORD_SCORE_CAP = 0.95
OCR_WORD_RATIO = 0.85

_PUNCT_RE = re.compile(r'[^\w\s]')
_SPACE_RE = re.compile(r'\s+')


def normalize_text(text: Optional[str]) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""
    if not text:
        return ""
    text = _PUNCT_RE.sub('', text.lower().strip())
    return _SPACE_RE.sub(' ', text).strip()


def _shorter_longer(s1: str, s2: str) -> Tuple[str, str]:
    # Ties on length are broken lexically so argument order never matters
    if (len(s1), s1) <= (len(s2), s2):
        return s1, s2
    return s2, s1


def _words_match(a: str, b: str) -> bool:
    """Exact word match, or one word is a prefix/suffix of the other."""
    if a == b:
        return True
    if len(a) < 2 or len(b) < 2:
        return False
    return a.startswith(b) or b.startswith(a) or a.endswith(b) or b.endswith(a)


def _is_partial_word(a: str, b: str) -> bool:
    if len(a) >= 2 and len(b) >= 2 and (a.startswith(b) or b.startswith(a)):
        return True
    # OCR misreads a letter or two ("Brian" for "Brain")
    if len(a) >= 4 and len(b) >= 4 and len(b) * 0.8 <= len(a) <= len(b) * 1.2:
        return fuzz.ratio(a, b) / 100.0 >= OCR_WORD_RATIO
    return False


def _phrase_score(shorter_words: List[str], longer_words: List[str]) -> Optional[float]:
    """Score a contiguous run of longer_words matching every shorter word, if any."""
    if len(shorter_words) < 2 or len(shorter_words) > len(longer_words):
        return None

    span = len(shorter_words)
    for start in range(len(longer_words) - span + 1):
        window = longer_words[start:start + span]
        if all(_words_match(s, w) for s, w in zip(shorter_words, window)):
            coverage = span / len(longer_words)
            return 0.96 + 0.04 * coverage
    return None


def _word_score(words1: List[str], words2: List[str]) -> float:
    counts1 = Counter(words1)
    counts2 = Counter(words2)
    exact = sum((counts1 & counts2).values())

    rest1 = sorted((counts1 - counts2).elements())
    rest2 = sorted((counts2 - counts1).elements())
    if (len(rest1), rest1) > (len(rest2), rest2):
        rest1, rest2 = rest2, rest1

    # Each leftover word may pair with at most one word on the other side
    partial = 0.0
    available = list(rest2)
    for word in rest1:
        for other in available:
            if _is_partial_word(word, other):
                partial += PARTIAL_WORD_WEIGHT
                available.remove(other)
                break

    total = max(len(words1), len(words2))
    if total == 0:
        return 0.0

    score = (exact + partial) / total
    if exact > 0 and partial > 0:
        score += MIXED_MATCH_BOOST
    elif partial > 0 and partial >= 0.5 * min(len(words1), len(words2)):
        score += PARTIAL_ONLY_BOOST

    return min(WORD_SCORE_CAP, score)


def similarity(a: Optional[str], b: Optional[str]) -> float:
    """
    Compute a normalised similarity score between two titles.

    Args:
        a: First string (typically OCR text)
        b: Second string (typically a catalog title)

    Returns:
        Score in [0.0, 1.0]; 0.0 when either input is empty or only one
        side has any words left after normalisation
    """
    if not a or not b:
        return 0.0

    s1 = normalize_text(a)
    s2 = normalize_text(b)
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0

    shorter, longer = _shorter_longer(s1, s2)

    # Truncated OCR text is usually a substring of the real title
    if shorter in longer:
        coverage = len(shorter) / len(longer)
        return 0.8 + 0.2 * coverage

    phrase = _phrase_score(shorter.split(' '), longer.split(' '))
    if phrase is not None:
        return phrase

    return _word_score(s1.split(' '), s2.split(' '))


def extract_keywords(text: Optional[str]) -> List[str]:
    """Return unique lowercase keywords (length >= 2, stopwords removed) in order."""
    if not text:
        return []
    words = _SPACE_RE.split(_PUNCT_RE.sub(' ', text.lower()))
    keywords = []
    for word in words:
        if len(word) >= 2 and word not in STOPWORDS and word not in keywords:
            keywords.append(word)
    return keywords


def keyword_coverage(keywords: Sequence[str], title: str) -> float:
    """
    Fraction of keywords found in a title.

    A keyword found as a substring of the normalised title counts 1.0; one that
    only shares a prefix with a title word counts 0.5.
    """
    if not keywords:
        return 0.0

    normalized = _SPACE_RE.sub(' ', _PUNCT_RE.sub(' ', title.lower())).strip()
    title_words = normalized.split(' ')

    matched = 0.0
    for keyword in keywords:
        if keyword in normalized:
            matched += 1.0
        elif any(len(w) >= 2 and (w.startswith(keyword) or keyword.startswith(w)) for w in title_words):
            matched += 0.5
    return matched / len(keywords)


def find_best_match(
    query: str,
    items: Iterable[T],
    key: Callable[[T], str]
) -> Optional[Tuple[T, float]]:
    """
    Find the item whose title is most similar to query.

    Returns:
        (item, score) for the best item, or None if items is empty. The first
        item wins ties, so catalog ranking breaks equal scores.
    """
    best = None
    best_score = -1.0
    for item in items:
        score = similarity(query, key(item))
        if score > best_score:
            best = item
            best_score = score
    if best is None:
        return None
    return best, best_score
