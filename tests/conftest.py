"""Shared fakes for memory tests."""

from __future__ import annotations

import pytest

from roundtable.errors import ExtractionError, SummarizationError
from roundtable.memory.types import DiscussionInput, MemoryEntry, RoundMemory, new_entry_id


class FakeTokenizer:
    """Whitespace tokenizer; keywords are the first top_k tokens."""

    def __init__(self) -> None:
        self.close_calls = 0

    def segment(self, text: str) -> list[str]:
        return [w for w in text.split() if len(w) >= 2]

    def extract_keywords(self, text: str, top_k: int) -> list[str]:
        return self.segment(text)[:top_k]

    def close(self) -> None:
        self.close_calls += 1


class FakeSummarizer:
    """Records calls; set ``fail`` to make every call raise."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.summarized: list[list[RoundMemory]] = []

    def summarize_rounds(self, rounds: list[RoundMemory]) -> str:
        if self.fail:
            raise SummarizationError("model unavailable")
        self.summarized.append(list(rounds))
        return "summary of " + ",".join(str(r.round) for r in rounds)

    def extract_facts(self, content: str, source: str) -> list[MemoryEntry]:
        if self.fail:
            raise ExtractionError("model unavailable")
        return [
            MemoryEntry(id=new_entry_id(), type="fact", content=content, source=source, keywords=content.split())
        ]

    def extract_key_points(self, discussions: list[DiscussionInput]) -> list[str]:
        if self.fail:
            raise ExtractionError("model unavailable")
        return [f"{d.agent_name}!" for d in discussions]


@pytest.fixture
def tokenizer() -> FakeTokenizer:
    return FakeTokenizer()
