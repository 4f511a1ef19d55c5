"""Memory lifecycle: context assembly, round ingestion and compression.

Every operation that needs a summarizer has an explicit fallback:

    compress               without summarizer → drop old rounds, keep summary
    extract_key_points     without summarizer → "agent: first 80 chars..."
    extract_and_add_facts  without summarizer → SummarizerUnavailable
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from roundtable.config import MemoryConfig, RoundtableConfig
from roundtable.errors import RecordNotFound, StorageError, SummarizerUnavailable
from roundtable.memory.relevance import Relevance
from roundtable.memory.storage import FileStorage, Storage
from roundtable.memory.summarizer import LLMSummarizer, Summarizer
from roundtable.memory.tokenizer import JiebaTokenizer, Tokenizer
from roundtable.memory.types import (
    DiscussionInput,
    MemoryEntry,
    RoundMemory,
    StockMemory,
    now_ms,
)

logger = logging.getLogger(__name__)

CONTEXT_FACT_LIMIT = 5
KEY_POINT_PREVIEW = 80
SUMMARY_SEPARATOR = "\n"


def _format_ms(timestamp: int, fmt: str) -> str:
    return datetime.fromtimestamp(timestamp / 1000).strftime(fmt)


class MemoryManager:
    """Owns the load-mutate-save cycle for subject memory records."""

    def __init__(
        self,
        data_dir: Path,
        config: MemoryConfig | None = None,
        *,
        storage: Storage | None = None,
        tokenizer: Tokenizer | None = None,
        summarizer: Summarizer | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.config = config or MemoryConfig()
        self.data_dir = Path(data_dir)
        self.storage: Storage = storage if storage is not None else FileStorage(self.data_dir)
        self.tokenizer: Tokenizer = tokenizer if tokenizer is not None else JiebaTokenizer()
        self.relevance = Relevance(self.tokenizer, clock=clock)
        self.summarizer = summarizer
        self._clock = clock
        self._closed = False

    def set_summarizer(self, summarizer: Summarizer | None) -> None:
        """Enable (or with None, disable) summarization."""
        self.summarizer = summarizer

    # ── Records ──────────────────────────────────────────────

    def get_or_create(self, code: str, name: str) -> StockMemory:
        """Load the subject's record, or start a fresh one if it cannot be read.

        Never raises. An invalid code also yields a fresh record; saving it
        later raises ValueError.
        """
        try:
            return self.storage.load(code)
        except (StorageError, ValueError) as e:
            # Unreadable records are replaced too; the warning is the only trace
            level = logging.DEBUG if isinstance(e, RecordNotFound) else logging.WARNING
            logger.log(level, "Starting new memory for %s: %s", code, e)
        now = self._clock()
        return StockMemory(code=code, name=name, created_at=now, updated_at=now)

    def save(self, mem: StockMemory) -> None:
        mem.updated_at = self._clock()
        self.storage.save(mem)

    def delete_memory(self, code: str) -> None:
        self.storage.delete(code)

    def list_memories(self) -> list[str]:
        return self.storage.list()

    # ── Context assembly ─────────────────────────────────────

    def build_context(self, mem: StockMemory, query: str) -> str:
        """Summary, then facts relevant to ``query``, then recent rounds verbatim."""
        parts: list[str] = []

        if mem.summary:
            parts.append(f"【历史讨论摘要】\n{mem.summary}\n\n")

        facts = self.relevance.find_relevant(mem.key_facts, query, CONTEXT_FACT_LIMIT)
        if facts:
            parts.append("【相关历史信息】\n")
            for fact in facts:
                parts.append(f"- [{_format_ms(fact.timestamp, '%Y-%m-%d')}] {fact.content}\n")
            parts.append("\n")

        if mem.recent_rounds:
            parts.append("【近期讨论】\n")
            for r in mem.recent_rounds:
                parts.append(f"[{_format_ms(r.timestamp, '%Y-%m-%d %H:%M')}] 问题: {r.query}\n")
                parts.append(f"结论: {r.consensus}\n\n")

        return "".join(parts)

    # ── Rounds & compression ─────────────────────────────────

    def add_round(
        self,
        mem: StockMemory,
        query: str,
        consensus: str,
        key_points: list[str] | None = None,
    ) -> RoundMemory:
        """Record a finished round, compress if due, and save.

        Only a failed save raises; a failed compression is logged and the
        extra rounds stay until a later compression succeeds.
        """
        mem.total_rounds += 1
        round_memory = RoundMemory(
            round=mem.total_rounds,
            query=query,
            consensus=consensus,
            key_points=list(key_points or []),
            timestamp=self._clock(),
        )
        mem.recent_rounds.append(round_memory)

        if len(mem.recent_rounds) >= self.config.compress_threshold:
            try:
                self.compress(mem)
            except Exception as e:
                logger.warning("Compress memory %s failed: %s", mem.code, e)

        self.save(mem)
        return round_memory

    def compress(self, mem: StockMemory) -> None:
        """Fold all but the newest ``max_recent_rounds`` rounds into the summary.

        All-or-nothing: if summarizing fails the record is left untouched.
        """
        keep = self.config.max_recent_rounds
        if len(mem.recent_rounds) <= keep:
            return

        to_compress = mem.recent_rounds[:-keep]
        to_keep = mem.recent_rounds[-keep:]

        if self.summarizer is None:
            mem.recent_rounds = to_keep
            logger.info("Dropped %d old rounds of %s (no summarizer)", len(to_compress), mem.code)
            return

        new_summary = self.summarizer.summarize_rounds(to_compress)
        mem.summary = self.merge_summaries(mem.summary, new_summary)
        mem.recent_rounds = to_keep
        logger.info("Compressed %d rounds of %s into summary", len(to_compress), mem.code)

    def merge_summaries(self, old: str, new: str) -> str:
        """Append ``new`` to ``old``, keeping only the newest 2×max_summary_length chars."""
        if not old:
            return new
        if not new:
            return old
        merged = old + SUMMARY_SEPARATOR + new
        max_len = self.config.max_summary_length * 2
        if len(merged) > max_len:
            merged = merged[-max_len:]
        return merged

    # ── Facts & key points ───────────────────────────────────

    def add_facts(self, mem: StockMemory, facts: list[MemoryEntry]) -> None:
        """Append facts; the oldest are dropped past ``max_key_facts``."""
        mem.key_facts.extend(facts)
        if len(mem.key_facts) > self.config.max_key_facts:
            mem.key_facts = mem.key_facts[-self.config.max_key_facts :]

    def extract_and_add_facts(self, mem: StockMemory, content: str, source: str) -> list[MemoryEntry]:
        if self.summarizer is None:
            raise SummarizerUnavailable("fact extraction requires a summarizer")
        facts = self.summarizer.extract_facts(content, source)
        self.add_facts(mem, facts)
        return facts

    def extract_key_points(self, discussions: list[DiscussionInput]) -> list[str]:
        if self.summarizer is not None:
            return self.summarizer.extract_key_points(discussions)
        return self._fallback_key_points(discussions)

    def _fallback_key_points(self, discussions: list[DiscussionInput]) -> list[str]:
        points = []
        for d in discussions:
            content = d.content
            if len(content) > KEY_POINT_PREVIEW:
                content = content[:KEY_POINT_PREVIEW] + "..."
            points.append(f"{d.agent_name}: {content}")
        return points

    # ── Lifecycle ─────────────────────────────────────────────

    def close(self) -> None:
        """Release the tokenizer. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self.tokenizer.close()

    def __enter__(self) -> MemoryManager:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def build_manager(config: RoundtableConfig) -> MemoryManager:
    """Wire storage, tokenizer and (if configured) the LLM summarizer."""
    engine_name = (config.engine.name or "none").lower()
    if engine_name not in ("none", "anthropic_api"):
        raise ValueError(f"Unknown engine: {config.engine.name}")

    manager = MemoryManager(config.data_dir, config.memory)
    if engine_name == "anthropic_api":
        from roundtable.engines.anthropic_api import AnthropicAPIEngine

        kwargs: dict = {"max_tokens": config.engine.max_tokens, "timeout": config.engine.timeout}
        if config.engine.model:
            kwargs["model"] = config.engine.model
        engine = AnthropicAPIEngine(**kwargs)
        manager.set_summarizer(
            LLMSummarizer(engine, manager.tokenizer, max_summary_length=config.memory.max_summary_length)
        )
        logger.info("Summarization enabled via %s", engine.name)
    return manager
