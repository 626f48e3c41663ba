from __future__ import annotations

import json
import os
import re
import threading
import uuid
from pathlib import Path
from typing import Any

from vibesec.core.config import settings
from vibesec.core.errors import NotFoundError, ValidationError
from vibesec.domain.models import Finding, FixAttempt, ScanJob, utcnow

# ids become path segments: no dots, no separators
_SAFE_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,127}$")


def check_id(value: str, what: str = "id") -> str:
    if not isinstance(value, str) or not _SAFE_ID.match(value):
        raise ValidationError(f"Invalid {what}: {value!r}")
    return value


class StoreService:
    """
    Owns the data directory layout and persistence of jobs, findings and
    fix attempts::

        DATA_DIR/jobs/<job_id>/job.json
        DATA_DIR/jobs/<job_id>/findings.json
        DATA_DIR/findings/<finding_id>.json
        DATA_DIR/fixes/<finding_id>/attempt_<n>.json

    Every write goes to a temp file and is renamed into place, so readers
    never see a half-written record.
    """

    def __init__(self, base_dir: Path | str | None = None) -> None:
        self._base_dir = base_dir
        self._lock = threading.Lock()

    # ── layout ───────────────────────────────────────────────────

    @property
    def _base(self) -> Path:
        # resolved per call so DATA_DIR can be changed after construction
        return Path(self._base_dir if self._base_dir is not None else settings.DATA_DIR)

    def job_dir(self, job_id: str) -> Path:
        return self._base / "jobs" / check_id(job_id, "job id")

    def _job_path(self, job_id: str) -> Path:
        return self.job_dir(job_id) / "job.json"

    def _findings_path(self, job_id: str) -> Path:
        return self.job_dir(job_id) / "findings.json"

    def _finding_path(self, finding_id: str) -> Path:
        return self._base / "findings" / f"{check_id(finding_id, 'finding id')}.json"

    def _fix_dir(self, finding_id: str) -> Path:
        return self._base / "fixes" / check_id(finding_id, "finding id")

    # ── io helpers ───────────────────────────────────────────────

    @staticmethod
    def _write_json(path: Path, payload: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + f".{uuid.uuid4().hex}.tmp")
        tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.replace(tmp, path)

    @staticmethod
    def _read_json(path: Path) -> Any | None:
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    @staticmethod
    def _decode(record_type: type, d: Any, what: str):
        """Build a record, treating a malformed file like a missing one."""
        try:
            return record_type.from_dict(d)
        except (TypeError, KeyError, AttributeError) as e:
            raise NotFoundError(f"{what} record is malformed") from e

    # ── jobs ─────────────────────────────────────────────────────

    def create_job(self, job: ScanJob) -> ScanJob:
        with self._lock:
            self._write_json(self._job_path(job.id), job.to_dict())
        return job

    def get_job(self, job_id: str) -> ScanJob | None:
        d = self._read_json(self._job_path(job_id))
        return self._decode(ScanJob, d, f"Scan job {job_id}") if d else None

    def update_job(self, job_id: str, **fields: Any) -> ScanJob:
        """Read-modify-write a job record. Progress never goes down."""
        with self._lock:
            d = self._read_json(self._job_path(job_id))
            if not isinstance(d, dict):
                raise NotFoundError(f"Scan job {job_id} not found")
            if "progress" in fields:
                fields["progress"] = max(int(d.get("progress") or 0), min(100, int(fields["progress"])))
            d.update(fields)
            self._write_json(self._job_path(job_id), d)
            return self._decode(ScanJob, d, f"Scan job {job_id}")

    def list_jobs(self, owner_id: str | None = None, limit: int = 50) -> list[ScanJob]:
        jobs_root = self._base / "jobs"
        if not jobs_root.exists():
            return []

        jobs: list[ScanJob] = []
        for p in jobs_root.glob("*/job.json"):
            d = self._read_json(p)
            if not isinstance(d, dict) or not d:
                continue
            if owner_id is not None and d.get("owner_id") != owner_id:
                continue
            jobs.append(self._decode(ScanJob, d, f"Scan job {p.parent.name}"))

        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return jobs[:limit]

    # ── findings ─────────────────────────────────────────────────

    def save_findings(self, job_id: str, findings: list[Finding]) -> list[Finding]:
        """Assign ids and persist all findings of a job in one go."""
        stored: list[Finding] = []
        for f in findings:
            f.id = f.id or str(uuid.uuid4())
            f.job_id = job_id
            stored.append(f)

        with self._lock:
            for f in stored:
                self._write_json(self._finding_path(f.id), f.to_dict())
            self._write_json(self._findings_path(job_id), [f.to_dict() for f in stored])
        return stored

    def get_findings(self, job_id: str) -> list[Finding]:
        data = self._read_json(self._findings_path(job_id)) or []
        return [self._decode(Finding, d, f"Finding of job {job_id}") for d in data]

    def get_finding(self, finding_id: str) -> Finding | None:
        d = self._read_json(self._finding_path(finding_id))
        return self._decode(Finding, d, f"Finding {finding_id}") if d else None

    # ── fix attempts ─────────────────────────────────────────────

    def _attempt_numbers(self, finding_id: str) -> list[int]:
        d = self._fix_dir(finding_id)
        if not d.exists():
            return []
        nums = []
        for p in d.glob("attempt_*.json"):
            try:
                nums.append(int(p.stem.split("_", 1)[1]))
            except ValueError:
                continue
        return sorted(nums)

    def get_fix_attempt(self, finding_id: str, attempt_number: int) -> FixAttempt | None:
        d = self._read_json(self._fix_dir(finding_id) / f"attempt_{attempt_number}.json")
        return self._decode(FixAttempt, d, f"Fix attempt {attempt_number} of {finding_id}") if d else None

    def latest_fix_attempt(self, finding_id: str) -> FixAttempt | None:
        nums = self._attempt_numbers(finding_id)
        if not nums:
            return None
        return self.get_fix_attempt(finding_id, nums[-1])

    def list_fix_attempts(self, finding_id: str) -> list[FixAttempt]:
        out = []
        for n in self._attempt_numbers(finding_id):
            a = self.get_fix_attempt(finding_id, n)
            if a:
                out.append(a)
        return out

    def append_fix_attempt(
        self,
        finding_id: str,
        patch: dict,
        repository_url: str = "",
        owner_id: str = "",
        model: str = "",
    ) -> FixAttempt:
        """Store a new attempt numbered ``max + 1``. Numbering is atomic."""
        with self._lock:
            nums = self._attempt_numbers(finding_id)
            attempt = FixAttempt(
                finding_id=finding_id,
                attempt_number=(nums[-1] + 1) if nums else 1,
                patch=patch,
                repository_url=repository_url,
                owner_id=owner_id,
                model=model,
            )
            self._write_json(self._fix_dir(finding_id) / f"attempt_{attempt.attempt_number}.json", attempt.to_dict())
        return attempt

    def put_fix_attempt(self, attempt: FixAttempt) -> FixAttempt:
        """Overwrite a specific attempt number, keeping its creation time."""
        with self._lock:
            path = self._fix_dir(attempt.finding_id) / f"attempt_{attempt.attempt_number}.json"
            existing = self._read_json(path)
            if existing:
                attempt.created_at = existing.get("created_at", attempt.created_at)
            attempt.updated_at = utcnow()
            self._write_json(path, attempt.to_dict())
        return attempt
