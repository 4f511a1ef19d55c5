"""Anthropic API engine — plain completions, no tool use."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from roundtable.engines.base import AgentResponse
from roundtable.errors import EngineError

logger = logging.getLogger(__name__)


@dataclass
class AnthropicAPIEngine:
    """Direct Anthropic API via the `anthropic` SDK."""

    model: str = "claude-sonnet-4-5-20250929"
    max_tokens: int = 1024
    timeout: int = 120

    def __post_init__(self) -> None:
        try:
            import anthropic
        except ImportError:
            raise EngineError(
                "anthropic package required. Install with: pip install 'roundtable[api]'"
            ) from None
        self._client = anthropic.Anthropic(timeout=self.timeout)

    @property
    def name(self) -> str:
        return "anthropic_api"

    def complete(self, prompt: str, *, system_prompt: str | None = None) -> AgentResponse:
        kwargs: dict = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            kwargs["system"] = system_prompt

        try:
            response = self._client.messages.create(**kwargs)
        except Exception as e:
            logger.error("Anthropic API error: %s", e)
            raise EngineError(f"Anthropic API error: {e}") from e

        text = response.content[0].text if response.content else ""
        cost = None
        if response.usage:
            # Approximate cost (Sonnet pricing)
            cost = (response.usage.input_tokens * 3 + response.usage.output_tokens * 15) / 1e6

        return AgentResponse(text=text, cost_usd=cost, model=response.model)
