"""Abstract base for LLM models.

Every model must implement a single ``chat()`` method that accepts a
system prompt, user prompt, and optional TokenTracker. Failures are not
raised: they come back on ``LLMResponse.error`` together with an
``error_type`` so callers can decide whether to fall back to the next
model or give up.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

# Error classes carried on LLMResponse.error_type
MODEL_UNAVAILABLE = "model_unavailable"
AUTH_FAILED = "auth"
BUDGET_EXHAUSTED = "budget"
OTHER_ERROR = "other"


# ── Shared data classes ──────────────────────────────────────────


@dataclass
class LLMResponse:
    """Response from a single LLM call."""

    content: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""
    provider: str = ""
    error: str | None = None
    error_type: str | None = None


@dataclass
class TokenTracker:
    """Accumulates token usage across multiple calls within a request."""

    budget: int = 0
    total_input: int = 0
    total_output: int = 0
    calls: int = 0
    errors: int = 0
    history: list[dict[str, Any]] = field(default_factory=list)

    @property
    def total_tokens(self) -> int:
        return self.total_input + self.total_output

    @property
    def remaining(self) -> int:
        return max(0, self.budget - self.total_tokens)

    def record(self, resp: LLMResponse) -> None:
        self.calls += 1
        self.total_input += resp.input_tokens
        self.total_output += resp.output_tokens
        if resp.error:
            self.errors += 1
        self.history.append(
            {
                "call": self.calls,
                "input_tokens": resp.input_tokens,
                "output_tokens": resp.output_tokens,
                "model": resp.model,
                "provider": resp.provider,
                "error": resp.error,
            }
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "budget": self.budget,
            "total_input_tokens": self.total_input,
            "total_output_tokens": self.total_output,
            "total_tokens": self.total_tokens,
            "remaining": self.remaining,
            "calls": self.calls,
            "errors": self.errors,
        }


def classify_error(exc: Exception) -> str:
    """Map an SDK exception onto one of the error classes above.

    The OpenAI, Anthropic and Ollama SDKs all expose ``status_code`` on
    their HTTP errors; a 404 means the model id is unknown to the backend.
    """
    status = getattr(exc, "status_code", None)
    msg = str(exc).lower()
    if status == 404 or "model_not_found" in msg or ("model" in msg and "not found" in msg):
        return MODEL_UNAVAILABLE
    if status in (401, 403) or "api key" in msg or "api_key" in msg:
        return AUTH_FAILED
    return OTHER_ERROR


# Abstract model


class LLMModel(ABC):
    """Interface every LLM model must implement."""

    @abstractmethod
    def name(self) -> str:
        """Identifier used in LLM_FALLBACK_MODELS, e.g. ``"gpt-4o-mini"``."""

    @abstractmethod
    def is_configured(self) -> bool:
        """Return True if the required API key / env vars are set."""

    @abstractmethod
    def chat(
        self,
        system: str,
        user: str,
        tracker: TokenTracker | None = None,
    ) -> LLMResponse:
        """Send a chat completion request and return the response."""

    def _budget_exhausted(self, tracker: TokenTracker | None, provider: str, model: str) -> LLMResponse | None:
        if tracker and tracker.budget and tracker.remaining <= 0:
            return LLMResponse(
                content="",
                provider=provider,
                model=model,
                error=f"Token budget exhausted ({tracker.budget} tokens used)",
                error_type=BUDGET_EXHAUSTED,
            )
        return None
