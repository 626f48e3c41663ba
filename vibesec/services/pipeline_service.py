from __future__ import annotations

import asyncio
import logging
import tempfile
from pathlib import Path
from typing import Callable, Iterable

from vibesec.core.config import settings
from vibesec.core.errors import TransientInfraError, VibeSecError
from vibesec.detectors.registry import DetectorRegistry
from vibesec.detectors.stack import detect_tech_stack
from vibesec.domain.models import Finding, ScanResult, by_severity, utcnow
from vibesec.scm.base import SourceControlProvider
from vibesec.scm.repo_ref import RepoRef
from vibesec.services.progress_service import ProgressChannel, complete_event, log_event
from vibesec.services.store_service import StoreService

logger = logging.getLogger(__name__)

SEVERITY_WEIGHTS = {"Critical": 25, "High": 15, "Medium": 5, "Low": 2}

DETECTORS_START = 35
DETECTORS_END = 95


def compute_score(findings: Iterable[Finding]) -> int:
    """100 minus a per-severity penalty for every finding, floored at 0."""
    penalty = sum(SEVERITY_WEIGHTS.get(f.severity, 0) for f in findings)
    return max(0, 100 - penalty)


class ScanPipeline:
    """Runs one scan attempt end to end: clone, stack, detectors, score, persist.

    Status transitions other than ``completed`` belong to the scheduler.
    """

    def __init__(
        self,
        store: StoreService,
        scm: SourceControlProvider,
        detectors: DetectorRegistry,
        progress: ProgressChannel,
        stack_detector: Callable[[Path], list[str]] = detect_tech_stack,
    ) -> None:
        self._store = store
        self._scm = scm
        self._detectors = detectors
        self._progress = progress
        self._stack_detector = stack_detector

    def _report(self, job_id: str, progress: int, message: str) -> None:
        # best effort: a failed progress write never fails the scan
        try:
            # a retried attempt reports the stored high-water mark, not its stage value
            progress = self._store.update_job(job_id, progress=progress).progress
        except (OSError, VibeSecError) as e:
            logger.warning("Progress write failed: %s", e, extra={"job_id": job_id})
        self._progress.publish(job_id, log_event(progress, message))
        logger.info(message, extra={"job_id": job_id})

    @staticmethod
    async def _in_thread(fn: Callable, *args, timeout: float, what: str):
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise TransientInfraError(f"{what} timed out after {timeout}s") from e

    async def run(self, job_id: str, repository_url: str) -> ScanResult:
        repo = RepoRef.parse(repository_url)

        with tempfile.TemporaryDirectory(prefix=f"vibesec-{job_id[:8]}-", ignore_cleanup_errors=True) as tmp:
            work = Path(tmp) / "repo"

            self._report(job_id, 10, f"Cloning repository {repo.full_name}...")
            await self._scm.clone(repo, work)
            self._report(job_id, 15, "Repository cloned")

            self._report(job_id, 20, "Detecting tech stack...")
            tech_stack = await self._in_thread(
                self._stack_detector, work, timeout=settings.DETECTOR_TIMEOUT, what="Tech stack detection"
            )
            self._report(job_id, 30, f"Detected stack: {', '.join(tech_stack) or 'unknown'}")

            findings: list[Finding] = []
            detectors = self._detectors.ordered()
            span = DETECTORS_END - DETECTORS_START
            for i, det in enumerate(detectors):
                self._report(job_id, DETECTORS_START + span * i // len(detectors), f"Running {det.name()}...")
                found = await self._in_thread(
                    det.run, work, timeout=settings.DETECTOR_TIMEOUT, what=f"Detector {det.name()}"
                )
                logger.info("%s: %d finding(s)", det.name(), len(found), extra={"job_id": job_id})
                findings.extend(found)
            self._report(job_id, DETECTORS_END, f"Detectors finished: {len(findings)} finding(s)")

        self._report(job_id, 98, "Finalizing results...")
        score = compute_score(findings)

        # findings must be durable before anyone can observe "completed"
        stored = self._store.save_findings(job_id, findings)
        completed_at = utcnow()
        job = self._store.update_job(
            job_id,
            status="completed",
            progress=100,
            score=score,
            tech_stack=tech_stack,
            completed_at=completed_at,
            error=None,
        )

        result = ScanResult(
            job_id=job_id,
            repository_url=job.repository_url,
            status="completed",
            score=score,
            tech_stack=tech_stack,
            findings=by_severity(stored),
            completed_at=completed_at,
        )
        self._progress.publish(job_id, log_event(100, "Scan completed", status="complete"))
        self._progress.publish(job_id, complete_event(result.to_dict()))
        logger.info("Scan completed score=%d findings=%d", score, len(stored), extra={"job_id": job_id})
        return result
