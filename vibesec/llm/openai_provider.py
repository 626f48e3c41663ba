"""OpenAI LLM models.

Registers as individual models (gpt-4o-mini, gpt-5-mini, etc.).
Each instance knows its own API quirks:
  - gpt-5 family: uses max_completion_tokens, no temperature
  - gpt-4o family: uses max_tokens

Env vars:
  - OPENAI_API_KEY  (required)
"""

from __future__ import annotations

import logging

from vibesec.core.config import settings
from vibesec.llm.base import MODEL_UNAVAILABLE, LLMModel, LLMResponse, TokenTracker, classify_error

logger = logging.getLogger(__name__)


class OpenAIModel(LLMModel):
    """One OpenAI chat model.

    Parameters
    ----------
    model_id : str
        OpenAI model name (e.g. "gpt-4o-mini", "gpt-5-mini").
    display_name : str | None
        Registry name. Defaults to *model_id*.
    json_mode : bool
        If True, ask for a JSON object response (``response_format``).
    """

    def __init__(
        self,
        model_id: str = "gpt-4o-mini",
        display_name: str | None = None,
        json_mode: bool = True,
    ) -> None:
        self._model_id = model_id
        self._display_name = display_name or model_id
        self._json_mode = json_mode
        self._is_gpt5 = model_id.startswith("gpt-5")

    def name(self) -> str:
        return self._display_name

    def is_configured(self) -> bool:
        return bool(settings.OPENAI_API_KEY)

    def chat(
        self,
        system: str,
        user: str,
        tracker: TokenTracker | None = None,
    ) -> LLMResponse:
        if not self.is_configured():
            return LLMResponse(
                content="",
                provider="openai",
                model=self._model_id,
                error="OPENAI_API_KEY not configured",
                error_type=MODEL_UNAVAILABLE,
            )

        exhausted = self._budget_exhausted(tracker, "openai", self._model_id)
        if exhausted:
            return exhausted

        try:
            import openai

            client = openai.OpenAI(api_key=settings.OPENAI_API_KEY)

            kwargs: dict = {
                "model": self._model_id,
                "messages": [
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
            }

            # GPT-5 family: no temperature support, uses max_completion_tokens
            if self._is_gpt5:
                kwargs["max_completion_tokens"] = 4096
            else:
                kwargs["temperature"] = 0.1
                kwargs["max_tokens"] = 4096

            if self._json_mode:
                kwargs["response_format"] = {"type": "json_object"}

            logger.debug(
                "OpenAI call model=%s, prompt_len=%d, json_mode=%s",
                self._model_id,
                len(user),
                self._json_mode,
            )

            response = client.chat.completions.create(**kwargs)

            choice = response.choices[0]
            usage = response.usage

            resp = LLMResponse(
                content=choice.message.content or "",
                input_tokens=usage.prompt_tokens if usage else 0,
                output_tokens=usage.completion_tokens if usage else 0,
                model=response.model,
                provider="openai",
            )

        except Exception as e:
            logger.error("OpenAI API error [%s]: %s", self._model_id, e)
            resp = LLMResponse(
                content="",
                provider="openai",
                model=self._model_id,
                error=str(e),
                error_type=classify_error(e),
            )

        if tracker:
            tracker.record(resp)

        return resp
