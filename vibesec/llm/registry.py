"""LLM model registry: mirrors the detector registry pattern.

Usage::

    registry = LLMModelRegistry()
    registry.register(OpenAIModel(model_id="gpt-4o-mini"))
    registry.register(AnthropicModel())

    model = registry.get("gpt-4o-mini")      # None if unknown
    names = registry.list()                  # registration order
    available = registry.list_configured()   # only those with API keys set
"""

from __future__ import annotations

from vibesec.llm.base import LLMModel


class LLMModelRegistry:
    """Registry of available LLM models, keyed by ``name()``."""

    def __init__(self) -> None:
        self._models: dict[str, LLMModel] = {}

    def register(self, model: LLMModel) -> None:
        self._models[model.name()] = model

    def get(self, name: str) -> LLMModel | None:
        return self._models.get(name)

    def list(self) -> list[str]:
        """All registered model names."""
        return list(self._models.keys())

    def list_configured(self) -> list[str]:
        """Only models whose API keys are set."""
        return [n for n, m in self._models.items() if m.is_configured()]
