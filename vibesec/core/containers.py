from __future__ import annotations

from dataclasses import dataclass

from vibesec.detectors.bandit import BanditDetector
from vibesec.detectors.env_files import EnvFileDetector
from vibesec.detectors.registry import DetectorRegistry
from vibesec.detectors.trufflehog import TruffleHogDetector
from vibesec.llm.anthropic_provider import AnthropicModel
from vibesec.llm.ollama_provider import OllamaModel
from vibesec.llm.openai_provider import OpenAIModel
from vibesec.llm.registry import LLMModelRegistry
from vibesec.repair.fix_generator import FixGenerator
from vibesec.repair.patch_applier import PatchApplier
from vibesec.scm.access import GitHubAccessGate
from vibesec.scm.github import GitHubProvider
from vibesec.services.pipeline_service import ScanPipeline
from vibesec.services.progress_service import ProgressChannel
from vibesec.services.scheduler_service import JobScheduler
from vibesec.services.store_service import StoreService


def build_detector_registry() -> DetectorRegistry:
    return DetectorRegistry([EnvFileDetector(), TruffleHogDetector(), BanditDetector()])


def build_llm_registry() -> LLMModelRegistry:
    """Register all available LLM models.

    ``LLM_FALLBACK_MODELS`` picks from these names, in order.

    To add a new model:
    1. Create or reuse a provider class in ``vibesec/llm/``
    2. ``registry.register(MyModel(...))`` here
    3. Add env vars to ``.env.example``
    """
    registry = LLMModelRegistry()

    registry.register(OpenAIModel(model_id="gpt-5-mini"))
    registry.register(OpenAIModel(model_id="gpt-4o-mini"))

    # Anthropic Claude:
    registry.register(AnthropicModel())

    # Ollama local (lazy import: safe if SDK not installed)
    registry.register(OllamaModel())

    return registry


@dataclass
class Services:
    """Process-wide singletons shared by the routes."""

    store: StoreService
    progress: ProgressChannel
    scheduler: JobScheduler
    models: LLMModelRegistry


def build_services() -> Services:
    store = StoreService()
    progress = ProgressChannel()
    # scans clone with the server-side token; per-request tokens only
    # apply to fix generation and application
    pipeline = ScanPipeline(store, GitHubProvider(), build_detector_registry(), progress)
    scheduler = JobScheduler(store, pipeline, progress)
    return Services(store=store, progress=progress, scheduler=scheduler, models=build_llm_registry())


def build_fix_generator(services: Services, github_token: str | None) -> FixGenerator:
    return FixGenerator(services.store, services.models, GitHubProvider(token=github_token))


def build_patch_applier(services: Services, github_token: str | None) -> PatchApplier:
    scm = GitHubProvider(token=github_token)
    return PatchApplier(services.store, scm, GitHubAccessGate(scm))
