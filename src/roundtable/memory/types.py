"""Memory data model: facts, discussion rounds and the per-subject record."""

from __future__ import annotations

import time
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Literal

EntryType = Literal["fact", "opinion", "decision"]
ENTRY_TYPES: tuple[str, ...] = ("fact", "opinion", "decision")


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def new_entry_id() -> str:
    return f"mem_{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class MemoryEntry:
    """A single remembered fact, opinion or decision."""

    id: str
    type: EntryType
    content: str
    source: str  # originating agent
    keywords: list[str] = field(default_factory=list)
    timestamp: int = field(default_factory=now_ms)
    weight: float = 0.5  # importance in [0, 1]

    def __post_init__(self) -> None:
        if self.type not in ENTRY_TYPES:
            raise ValueError(f"unknown entry type {self.type!r}, expected one of {ENTRY_TYPES}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MemoryEntry:
        return cls(
            id=str(data["id"]),
            type=data.get("type", "fact"),
            content=str(data.get("content", "")),
            source=str(data.get("source", "")),
            keywords=[str(k) for k in data.get("keywords") or []],
            timestamp=int(data.get("timestamp", 0)),
            weight=float(data.get("weight", 0.5)),
        )


@dataclass(frozen=True)
class RoundMemory:
    """One completed discussion round."""

    round: int
    query: str
    consensus: str
    key_points: list[str] = field(default_factory=list)
    timestamp: int = field(default_factory=now_ms)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RoundMemory:
        return cls(
            round=int(data["round"]),
            query=str(data.get("query", "")),
            consensus=str(data.get("consensus", "")),
            key_points=[str(p) for p in data.get("key_points") or []],
            timestamp=int(data.get("timestamp", 0)),
        )


@dataclass
class DiscussionInput:
    """One agent's contribution to a discussion, input for key-point extraction."""

    agent_name: str
    content: str


@dataclass
class StockMemory:
    """Conversation memory for a single subject, isolated by code.

    ``total_rounds`` counts every round ever ingested and never decreases,
    while ``recent_rounds`` only holds what survived compression.
    """

    code: str
    name: str
    summary: str = ""
    key_facts: list[MemoryEntry] = field(default_factory=list)
    recent_rounds: list[RoundMemory] = field(default_factory=list)
    total_rounds: int = 0
    created_at: int = field(default_factory=now_ms)
    updated_at: int = 0

    def __post_init__(self) -> None:
        if not self.updated_at:
            self.updated_at = self.created_at

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StockMemory:
        return cls(
            code=str(data["code"]),
            name=str(data.get("name", "")),
            summary=str(data.get("summary") or ""),
            key_facts=[MemoryEntry.from_dict(f) for f in data.get("key_facts") or []],
            recent_rounds=[RoundMemory.from_dict(r) for r in data.get("recent_rounds") or []],
            total_rounds=int(data.get("total_rounds", 0)),
            created_at=int(data.get("created_at", 0)),
            updated_at=int(data.get("updated_at", 0)),
        )
