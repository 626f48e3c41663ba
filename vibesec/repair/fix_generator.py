"""Versioned, cached fix generation for a single finding.

Each generated patch is stored as a FixAttempt numbered 1, 2, 3 ... per
finding. ``get_or_create`` returns the latest stored attempt without
calling a model; ``force_regenerate`` always calls one.

Model fallback walks ``LLM_FALLBACK_MODELS`` in order. Only the
``model_unavailable`` error class moves on to the next model; any other
failure is raised immediately.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from vibesec.core.config import settings
from vibesec.core.errors import (
    GenerationError,
    NotFoundError,
    ProviderExhaustedError,
)
from vibesec.domain.models import Finding, FixAttempt
from vibesec.domain.schemas import Patch
from vibesec.llm.base import MODEL_UNAVAILABLE, TokenTracker
from vibesec.llm.registry import LLMModelRegistry
from vibesec.repair.patch_codec import parse_patch
from vibesec.repair.prompt_builder import SYSTEM_PROMPT, build_fix_prompt, relevant_paths
from vibesec.scm.base import SourceControlProvider
from vibesec.scm.repo_ref import RepoRef
from vibesec.services.store_service import StoreService

logger = logging.getLogger(__name__)


@dataclass
class FixResult:
    patch: dict[str, Any]
    attempt_number: int
    cached: bool
    model: str = ""
    tokens: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "patch": self.patch,
            "attemptNumber": self.attempt_number,
            "cached": self.cached,
            "model": self.model,
            "tokens": self.tokens,
        }


class FixGenerator:
    def __init__(
        self,
        store: StoreService,
        models: LLMModelRegistry,
        scm: SourceControlProvider,
        fallback_models: list[str] | None = None,
        token_budget: int | None = None,
        llm_timeout: float | None = None,
    ) -> None:
        self._store = store
        self._models = models
        self._scm = scm
        self._fallback = fallback_models if fallback_models is not None else list(settings.LLM_FALLBACK_MODELS)
        self._budget = settings.TOKEN_BUDGET if token_budget is None else token_budget
        self._timeout = llm_timeout or settings.LLM_TIMEOUT

    # ── public operations ────────────────────────────────────────

    async def generate_fix(
        self,
        finding_id: str,
        tech_stack: list[str],
        repo_ref: str,
        caller: str = "anonymous",
        use_existing: bool = True,
        attempt_number: int | None = None,
    ) -> FixResult:
        if use_existing:
            return await self.get_or_create(finding_id, tech_stack, repo_ref, caller)
        return await self.force_regenerate(finding_id, tech_stack, repo_ref, caller, attempt_number)

    async def get_or_create(self, finding_id: str, tech_stack: list[str], repo_ref: str, caller: str) -> FixResult:
        latest = self._store.latest_fix_attempt(finding_id)
        if latest is not None:
            logger.info("Returning cached fix", extra={"finding_id": finding_id, "attempt": latest.attempt_number})
            return FixResult(
                patch=latest.patch,
                attempt_number=latest.attempt_number,
                cached=True,
                model=latest.model,
            )
        return await self.force_regenerate(finding_id, tech_stack, repo_ref, caller)

    async def force_regenerate(
        self,
        finding_id: str,
        tech_stack: list[str],
        repo_ref: str,
        caller: str,
        attempt_number: int | None = None,
    ) -> FixResult:
        repo = RepoRef.parse(repo_ref)
        finding = self._require_finding(finding_id)

        tracker = TokenTracker(budget=self._budget)
        patch, model_name = await self._generate(finding, tech_stack, repo, tracker)
        wire = patch.to_wire()

        if attempt_number is not None:
            attempt = self._store.put_fix_attempt(
                FixAttempt(
                    finding_id=finding_id,
                    attempt_number=attempt_number,
                    patch=wire,
                    repository_url=repo.url,
                    owner_id=caller,
                    model=model_name,
                )
            )
        else:
            attempt = self._store.append_fix_attempt(
                finding_id, wire, repository_url=repo.url, owner_id=caller, model=model_name
            )

        logger.info(
            "Stored fix from %s (%d tokens)",
            model_name,
            tracker.total_tokens,
            extra={"finding_id": finding_id, "attempt": attempt.attempt_number},
        )
        return FixResult(
            patch=wire,
            attempt_number=attempt.attempt_number,
            cached=False,
            model=model_name,
            tokens=tracker.to_dict(),
        )

    # ── internals ────────────────────────────────────────────────

    def _require_finding(self, finding_id: str) -> Finding:
        finding = self._store.get_finding(finding_id)
        if finding is None:
            raise NotFoundError(f"Finding {finding_id} not found")
        return finding

    async def _gather_files(self, finding: Finding, repo: RepoRef) -> dict[str, str]:
        files: dict[str, str] = {}
        for path in relevant_paths(finding):
            got = await self._scm.read_file(repo, path)
            if got is not None:
                files[path] = got[0]
        return files

    async def _generate(
        self,
        finding: Finding,
        tech_stack: list[str],
        repo: RepoRef,
        tracker: TokenTracker,
    ) -> tuple[Patch, str]:
        files = await self._gather_files(finding, repo)
        prompt = build_fix_prompt(finding, tech_stack, files)

        tried: list[str] = []
        for name in self._fallback:
            tried.append(name)
            model = self._models.get(name)
            if model is None:
                logger.warning("Model %s is not registered, trying next", name)
                continue

            try:
                resp = await asyncio.wait_for(
                    asyncio.to_thread(model.chat, SYSTEM_PROMPT, prompt, tracker),
                    timeout=self._timeout,
                )
            except asyncio.TimeoutError as e:
                raise GenerationError(f"Model {name} timed out after {self._timeout}s") from e

            if resp.error:
                if resp.error_type == MODEL_UNAVAILABLE:
                    logger.warning("Model %s unavailable, trying next: %s", name, resp.error)
                    continue
                raise GenerationError(f"Model {name} failed ({resp.error_type}): {resp.error}")

            logger.info("Generated fix with model %s", name, extra={"finding_id": finding.id})
            return parse_patch(resp.content), name

        raise ProviderExhaustedError(f"No generation model available (tried: {', '.join(tried) or 'none'})")
