"""Ollama local LLM model.

Uses the ``ollama`` Python SDK (lazy import, won't break if not installed).

Env vars:
  - OLLAMA_BASE_URL  (default: http://localhost:11434)
  - OLLAMA_MODEL     (default: llama3.1:8b)
"""

from __future__ import annotations

import logging

import httpx

from vibesec.core.config import settings
from vibesec.llm.base import MODEL_UNAVAILABLE, LLMModel, LLMResponse, TokenTracker, classify_error

logger = logging.getLogger(__name__)


class OllamaModel(LLMModel):
    """Local Ollama chat model."""

    def __init__(self, model_id: str | None = None, display_name: str | None = None) -> None:
        self._model_id = model_id or settings.OLLAMA_MODEL
        self._display_name = display_name or f"ollama/{self._model_id}"

    def name(self) -> str:
        return self._display_name

    def is_configured(self) -> bool:
        """Configured only if OLLAMA_BASE_URL is set and the server answers."""
        base_url = settings.OLLAMA_BASE_URL
        if not base_url:
            return False

        # /api/tags is lightweight
        try:
            with httpx.Client(timeout=2.0) as client:
                r = client.get(f"{base_url.rstrip('/')}/api/tags")
                return r.status_code == 200
        except httpx.HTTPError:
            return False

    def chat(
        self,
        system: str,
        user: str,
        tracker: TokenTracker | None = None,
    ) -> LLMResponse:
        if not self.is_configured():
            return LLMResponse(
                content="",
                provider="ollama",
                model=self._model_id,
                error="Ollama server not reachable at OLLAMA_BASE_URL",
                error_type=MODEL_UNAVAILABLE,
            )

        exhausted = self._budget_exhausted(tracker, "ollama", self._model_id)
        if exhausted:
            return exhausted

        try:
            import ollama

            client = ollama.Client(host=settings.OLLAMA_BASE_URL)
            response = client.chat(
                model=self._model_id,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                format="json",
                options={"temperature": 0.1},
            )

            resp = LLMResponse(
                content=response.get("message", {}).get("content", ""),
                input_tokens=response.get("prompt_eval_count", 0) or 0,
                output_tokens=response.get("eval_count", 0) or 0,
                model=self._model_id,
                provider="ollama",
            )

        except Exception as e:
            logger.error("Ollama API error [%s]: %s", self._model_id, e)
            resp = LLMResponse(
                content="",
                provider="ollama",
                model=self._model_id,
                error=str(e),
                error_type=classify_error(e),
            )

        if tracker:
            tracker.record(resp)

        return resp
