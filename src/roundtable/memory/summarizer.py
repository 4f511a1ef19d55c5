"""Summarizer protocol and the LLM-backed implementation.

The summarizer condenses compressed rounds into summary text, pulls
structured facts out of agent output, and distills discussions into key
points. It is optional: the memory manager degrades without one.
"""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from roundtable.errors import EngineError, ExtractionError, SummarizationError
from roundtable.memory.types import (
    ENTRY_TYPES,
    DiscussionInput,
    MemoryEntry,
    RoundMemory,
    new_entry_id,
    now_ms,
)

if TYPE_CHECKING:
    from roundtable.engines.base import Engine
    from roundtable.memory.tokenizer import Tokenizer

logger = logging.getLogger(__name__)

FACT_KEYWORDS = 5

SYSTEM_PROMPT = "你是多智能体讨论的记忆整理助手，只输出要求的内容，不要寒暄。"

SUMMARIZE_PROMPT_TEMPLATE = """\
请将以下几轮讨论压缩为一段连贯的摘要，保留关键结论、重要数据和分歧点。
要求：不超过 {max_length} 字，不使用列表，不重复细枝末节。

{rounds}

摘要："""

EXTRACT_FACTS_PROMPT_TEMPLATE = """\
从下面 {source} 的发言中提取值得长期记住的信息。

每条信息输出一行 JSON：
  - type: fact（客观事实）| opinion（观点判断）| decision（决策结论）
  - content: 一句话描述，包含必要的数字和时间
  - weight: 0-1 之间的重要性

无值得记忆的内容则输出 SKIP。

发言内容：
{content}
"""

KEY_POINTS_PROMPT_TEMPLATE = """\
请从以下各方发言中提炼讨论要点，每行一条，格式为“发言者: 要点”，
每条不超过 50 字，最多 {max_points} 条。

{discussions}
"""

_BULLET = re.compile(r"^\s*(?:[-*•·]\s*|\d+(?:[.)]\s+|、))")


@runtime_checkable
class Summarizer(Protocol):
    """Protocol for summarization backends."""

    def summarize_rounds(self, rounds: list[RoundMemory]) -> str:
        """Condense rounds into summary text. Raises SummarizationError."""
        ...

    def extract_facts(self, content: str, source: str) -> list[MemoryEntry]:
        """Extract memorable entries from content. Raises ExtractionError."""
        ...

    def extract_key_points(self, discussions: list[DiscussionInput]) -> list[str]:
        """Distill discussions into key points. Raises ExtractionError."""
        ...


def format_rounds(rounds: list[RoundMemory]) -> str:
    parts = []
    for r in rounds:
        lines = [f"第{r.round}轮", f"问题: {r.query}", f"结论: {r.consensus}"]
        if r.key_points:
            lines.append("要点: " + "；".join(r.key_points))
        parts.append("\n".join(lines))
    return "\n\n".join(parts)


def parse_fact_lines(response_text: str) -> list[dict]:
    """Parse a JSON-lines model response, tolerating chatter around each object."""
    if response_text.strip().upper() == "SKIP":
        return []

    items: list[dict] = []
    for line in response_text.strip().splitlines():
        line = line.strip()
        if not line or line.upper() == "SKIP":
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            match = re.search(r"\{.*\}", line)
            if not match:
                continue
            try:
                data = json.loads(match.group())
            except json.JSONDecodeError:
                logger.warning("Failed to parse fact line: %s", line)
                continue
        if isinstance(data, dict) and data.get("content"):
            items.append(data)
    return items


def parse_key_points(response_text: str) -> list[str]:
    points = []
    for line in response_text.strip().splitlines():
        point = _BULLET.sub("", line).strip()
        if point:
            points.append(point)
    return points


def _clamp_weight(value: object) -> float:
    try:
        weight = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.5
    return min(1.0, max(0.0, weight))


class LLMSummarizer:
    """Summarizer that delegates to a language-model engine."""

    def __init__(
        self,
        engine: Engine,
        tokenizer: Tokenizer,
        max_summary_length: int = 300,
        max_key_points: int = 8,
    ) -> None:
        self.engine = engine
        self.tokenizer = tokenizer
        self.max_summary_length = max_summary_length
        self.max_key_points = max_key_points

    def _ask(self, prompt: str) -> str:
        response = self.engine.complete(prompt, system_prompt=SYSTEM_PROMPT)
        if response.cost_usd is not None:
            logger.debug("%s call cost $%.6f (%s)", self.engine.name, response.cost_usd, response.model)
        return response.text.strip()

    def summarize_rounds(self, rounds: list[RoundMemory]) -> str:
        if not rounds:
            return ""
        prompt = SUMMARIZE_PROMPT_TEMPLATE.format(
            max_length=self.max_summary_length,
            rounds=format_rounds(rounds),
        )
        try:
            summary = self._ask(prompt)
        except EngineError as e:
            raise SummarizationError(f"summarizing {len(rounds)} rounds failed: {e}") from e
        if not summary:
            raise SummarizationError("engine returned an empty summary")
        return summary

    def extract_facts(self, content: str, source: str) -> list[MemoryEntry]:
        if not content.strip():
            return []
        prompt = EXTRACT_FACTS_PROMPT_TEMPLATE.format(source=source or "未知来源", content=content)
        try:
            text = self._ask(prompt)
        except EngineError as e:
            raise ExtractionError(f"fact extraction failed: {e}") from e
        if not text:
            raise ExtractionError("engine returned an empty response")

        facts = []
        for item in parse_fact_lines(text):
            fact_content = str(item["content"]).strip()
            entry_type = item.get("type")
            facts.append(
                MemoryEntry(
                    id=new_entry_id(),
                    type=entry_type if entry_type in ENTRY_TYPES else "fact",
                    content=fact_content,
                    source=source,
                    keywords=self.tokenizer.extract_keywords(fact_content, FACT_KEYWORDS),
                    timestamp=now_ms(),
                    weight=_clamp_weight(item.get("weight", 0.5)),
                )
            )
        logger.debug("Extracted %d facts from %s", len(facts), source)
        return facts

    def extract_key_points(self, discussions: list[DiscussionInput]) -> list[str]:
        if not discussions:
            return []
        prompt = KEY_POINTS_PROMPT_TEMPLATE.format(
            max_points=self.max_key_points,
            discussions="\n\n".join(f"{d.agent_name}:\n{d.content}" for d in discussions),
        )
        try:
            text = self._ask(prompt)
        except EngineError as e:
            raise ExtractionError(f"key point extraction failed: {e}") from e
        points = parse_key_points(text)
        if not points:
            raise ExtractionError("engine returned no key points")
        return points[: self.max_key_points]
