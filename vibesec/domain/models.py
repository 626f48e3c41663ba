from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

Severity = Literal["Critical", "High", "Medium", "Low"]
JobStatus = Literal["pending", "scanning", "completed", "failed"]

SEVERITIES: tuple[str, ...] = ("Critical", "High", "Medium", "Low")
TERMINAL_STATUSES = frozenset({"completed", "failed"})


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def by_severity(findings: list[Finding]) -> list[Finding]:
    """Critical first, then High, Medium, Low. Stable within a severity."""
    rank = {s: i for i, s in enumerate(SEVERITIES)}
    return sorted(findings, key=lambda f: rank.get(f.severity, len(SEVERITIES)))


@dataclass
class Finding:
    title: str
    severity: Severity
    description: str
    location: str
    file_path: str | None = None
    line_number: int | None = None
    detector: str = ""
    id: str = ""
    job_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Finding:
        return cls(**{k: d[k] for k in cls.__dataclass_fields__ if k in d})


@dataclass
class ScanJob:
    id: str
    repository_url: str
    owner_id: str
    status: JobStatus = "pending"
    progress: int = 0
    tech_stack: list[str] = field(default_factory=list)
    score: int | None = None
    error: str | None = None
    attempts: int = 0
    created_at: str = field(default_factory=utcnow)
    started_at: str | None = None
    completed_at: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ScanJob:
        return cls(**{k: d[k] for k in cls.__dataclass_fields__ if k in d})


@dataclass
class FixAttempt:
    finding_id: str
    attempt_number: int
    patch: dict[str, Any]
    repository_url: str = ""
    owner_id: str = ""
    model: str = ""
    created_at: str = field(default_factory=utcnow)
    updated_at: str = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> FixAttempt:
        return cls(**{k: d[k] for k in cls.__dataclass_fields__ if k in d})


@dataclass
class ScanResult:
    job_id: str
    repository_url: str
    status: JobStatus
    score: int
    tech_stack: list[str]
    findings: list[Finding]
    completed_at: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.job_id,
            "url": self.repository_url,
            "status": self.status,
            "score": self.score,
            "timestamp": self.completed_at,
            "techStack": self.tech_stack,
            "findings": [f.to_dict() for f in self.findings],
            "error": self.error,
        }


@dataclass
class ApplyResult:
    branch_name: str
    branch_url: str
    merge_request_url: str
    merge_request_number: int
    files: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "branchName": self.branch_name,
            "branchUrl": self.branch_url,
            "mergeRequestUrl": self.merge_request_url,
            "mergeRequestNumber": self.merge_request_number,
            "files": self.files,
        }
