"""Fuzzy matching of free-text purchase descriptions against the catalog.

Product names in uploads differ from the catalog by word order, extra size or
duration qualifiers, spacing ("cap cut" vs "capcut") and trailing noise such
as a customer name, far more than by character typos. Scoring is therefore a
token-set Jaccard similarity with two small bonuses, not an edit distance.

Public API:
    - :func:`find_best_match`
    - :func:`similarity` and :func:`normalize_text` (exposed for tests and
      for callers that rank candidates themselves)
    - :class:`MatchVocabulary` / :data:`DEFAULT_VOCABULARY`

Everything here is pure: the catalog is a read-only snapshot per call.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from .logging_setup import get_logger
from .models import CatalogEntry, MatchResult, as_catalog_entry
from .text import sanitize

_logger = get_logger("bulk_ingest.matching")

MATCH_THRESHOLD: float = 0.68
SUBSET_BONUS: float = 0.10
CONTAINS_BONUS: float = 0.05

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True, slots=True)
class MatchVocabulary:
    """Static word lists used by the matcher.

    ``durations`` end the meaningful part of a query. ``noise_tokens`` are
    dropped before comparison unless the candidate's own name contains them.
    ``synonyms`` are ``(spelling, canonical)`` pairs where the spelling may
    contain spaces, e.g. ``("cap cut", "capcut")``.
    """

    durations: frozenset[str]
    noise_tokens: frozenset[str]
    synonyms: tuple[tuple[str, str], ...] = ()


_DURATIONS = frozenset(
    {"bulan", "minggu", "hari", "bln", "hr", "mo", "month", "mth", "day", "week"}
)
# Quantities and seat counts.
_QUANTITIES = frozenset({"1", "2", "3", "4", "6", "12", "24", "4u", "8u", "4user", "8user"})
_PLAN_QUALIFIERS = frozenset({"antilimit", "sharing", "private"})

DEFAULT_VOCABULARY = MatchVocabulary(
    durations=_DURATIONS,
    noise_tokens=_DURATIONS | _QUANTITIES | _PLAN_QUALIFIERS,
    synonyms=(
        ("cap cut", "capcut"),
        ("net flix", "netflix"),
        ("go pay", "gopay"),
    ),
)


@lru_cache(maxsize=32)
def _synonym_patterns(synonyms: tuple[tuple[str, str], ...]) -> tuple[tuple[re.Pattern[str], str], ...]:
    compiled = []
    for spelling, canonical in synonyms:
        words = [re.escape(w) for w in spelling.lower().split()]
        compiled.append((re.compile(r"\b" + r"\s*".join(words) + r"\b"), canonical))
    return tuple(compiled)


def normalize_text(text: str, vocabulary: MatchVocabulary = DEFAULT_VOCABULARY) -> str:
    """Lowercase ASCII form of ``text`` with single spaces and unified synonyms."""

    s = sanitize(text.lower())
    s = _NON_ALNUM_RE.sub(" ", s).strip()
    for pattern, canonical in _synonym_patterns(vocabulary.synonyms):
        s = pattern.sub(canonical, s)
    return s


def tokenize(text: str) -> list[str]:
    return text.split()


def truncate_query(tokens: Sequence[str], vocabulary: MatchVocabulary = DEFAULT_VOCABULARY) -> list[str]:
    """Cut ``tokens`` after the first duration word (inclusive).

    ``capcut private 1 bulan andika`` becomes ``capcut private 1 bulan``; a
    query without a duration word is returned whole.
    """

    for i, token in enumerate(tokens):
        if token in vocabulary.durations:
            return list(tokens[: i + 1])
    return list(tokens)


def _drop_noise(tokens: Iterable[str], noise: frozenset[str], keep: set[str]) -> list[str]:
    return [t for t in tokens if t in keep or t not in noise]


def similarity(query: str, name: str, vocabulary: MatchVocabulary = DEFAULT_VOCABULARY) -> float:
    """Score ``query`` against one catalog ``name`` in ``[0, 1]``."""

    q_tokens0 = tokenize(normalize_text(query, vocabulary))
    p_tokens0 = tokenize(normalize_text(name, vocabulary))

    # Words in this product's own name are never noise for this comparison.
    keep = set(p_tokens0)
    p_tokens = _drop_noise(p_tokens0, vocabulary.noise_tokens, keep)
    q_tokens = _drop_noise(q_tokens0, vocabulary.noise_tokens, keep)

    p_set = set(p_tokens)
    q_set = set(q_tokens)
    union = len(p_set | q_set) or 1
    score = len(p_set & q_set) / union
    if p_set <= q_set:
        score += SUBSET_BONUS
    if " ".join(p_tokens) in " ".join(q_tokens):
        score += CONTAINS_BONUS

    return min(1.0, max(0.0, score))


def find_best_match(
    query: str,
    catalog: Sequence[CatalogEntry | Mapping[str, Any]],
    *,
    vocabulary: MatchVocabulary = DEFAULT_VOCABULARY,
    threshold: float = MATCH_THRESHOLD,
) -> MatchResult | None:
    """Return the best catalog match for ``query`` or ``None``.

    Candidates are scored in catalog order and only a strictly higher score
    replaces the current best, so the first of several equal scores wins. The
    best candidate is returned only when its score reaches ``threshold``.
    """

    if not query or not catalog:
        return None

    core = " ".join(truncate_query(tokenize(normalize_text(query, vocabulary)), vocabulary))

    best: CatalogEntry | None = None
    best_score = 0.0
    for item in catalog:
        entry = as_catalog_entry(item)
        score = similarity(core, entry.name, vocabulary)
        if score > best_score:
            best, best_score = entry, score

    if best is None or best_score < threshold:
        _logger.debug("no match for %r (best=%.3f)", query, best_score)
        return None

    _logger.debug("matched %r -> %r (%.3f)", query, best.name, best_score)
    return MatchResult(id=best.id, name=best.name, price=best.price, similarity=best_score)


__all__ = [
    "DEFAULT_VOCABULARY",
    "MATCH_THRESHOLD",
    "MatchVocabulary",
    "find_best_match",
    "normalize_text",
    "similarity",
    "truncate_query",
]
