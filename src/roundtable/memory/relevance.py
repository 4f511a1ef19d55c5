"""Keyword relevance scoring for stored facts.

score = keyword/content overlap × max(0.5, weight) × time decay, where the
decay stays at 1.0 for a week and then loses 0.05 per day down to 0.3.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from roundtable.memory.tokenizer import Tokenizer
from roundtable.memory.types import MemoryEntry, now_ms

QUERY_KEYWORDS = 10
MIN_SCORE = 0.1
MIN_WEIGHT = 0.5

_DAY_MS = 24 * 60 * 60 * 1000
_FRESH_DAYS = 7
_DECAY_PER_DAY = 0.05
_DECAY_FLOOR = 0.3


@dataclass
class ScoredEntry:
    entry: MemoryEntry
    score: float


class Relevance:
    """Ranks memory entries against a free-text query."""

    def __init__(self, tokenizer: Tokenizer, clock: Callable[[], int] = now_ms) -> None:
        self.tokenizer = tokenizer
        self._clock = clock

    def find_relevant(self, facts: list[MemoryEntry], query: str, limit: int) -> list[MemoryEntry]:
        """Return up to ``limit`` facts scoring above MIN_SCORE, best first."""
        if not facts or limit <= 0:
            return []

        keywords = self.query_keywords(query)
        if not keywords:
            return []

        scored = [ScoredEntry(fact, self.score(keywords, fact)) for fact in facts]
        scored = [s for s in scored if s.score > MIN_SCORE]
        # sorted() is stable, so ties keep their stored order
        scored = sorted(scored, key=lambda s: s.score, reverse=True)
        return [s.entry for s in scored[:limit]]

    def query_keywords(self, query: str) -> list[str]:
        keywords = self.tokenizer.extract_keywords(query, QUERY_KEYWORDS)
        if not keywords:
            keywords = self.tokenizer.segment(query)
        return keywords

    def score(self, query_keywords: list[str], entry: MemoryEntry) -> float:
        if not query_keywords:
            return 0.0

        matches = 0
        for qk in query_keywords:
            # At most one hit from the keyword list, one from the content
            if any(qk in fk or fk in qk for fk in entry.keywords):
                matches += 1
            if qk in entry.content:
                matches += 1

        score = matches / (len(query_keywords) * 2)
        score *= max(MIN_WEIGHT, entry.weight)
        score *= self.time_decay(entry.timestamp)
        return score

    def time_decay(self, timestamp: int) -> float:
        days = (self._clock() - timestamp) / _DAY_MS
        if days <= _FRESH_DAYS:
            return 1.0
        return max(_DECAY_FLOOR, 1.0 - _DECAY_PER_DAY * (days - _FRESH_DAYS))
