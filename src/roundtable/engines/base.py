"""Engine protocol and shared types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass
class AgentResponse:
    """Response from a language-model engine."""

    text: str
    cost_usd: float | None = None
    model: str | None = None


@runtime_checkable
class Engine(Protocol):
    """Protocol that all engine backends must implement."""

    @property
    def name(self) -> str: ...

    def complete(self, prompt: str, *, system_prompt: str | None = None) -> AgentResponse:
        """Send a single prompt and return the model's reply.

        Raises EngineError when the backend cannot produce a reply.
        """
        ...
