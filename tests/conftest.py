from __future__ import annotations

import time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from vibesec.core.config import settings
from vibesec.core.errors import TransientInfraError
from vibesec.detectors.base import Detector
from vibesec.domain.models import Finding
from vibesec.llm.base import LLMModel, LLMResponse
from vibesec.main import app
from vibesec.scm.base import PullRequest, RepoPermissions, SourceControlProvider
from vibesec.services.store_service import StoreService

REPO_URL = "https://github.com/acme/shop"


@pytest.fixture(autouse=True)
def _use_tmp_data(tmp_path, monkeypatch):
    """Redirect all job data to a temp directory so tests never touch real data."""
    monkeypatch.setattr(settings, "DATA_DIR", str(tmp_path / "data"))


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def store(tmp_path) -> StoreService:
    return StoreService(tmp_path / "store")


# ── Fakes ─────────────────────────────────────────────────────────


class FakeSCM(SourceControlProvider):
    """In-memory code host. Records every call in ``calls``."""

    MUTATIONS = ("create_branch", "write_file", "open_pull_request")

    def __init__(
        self,
        files: dict[str, str] | None = None,
        clone_files: dict[str, str] | None = None,
        can_write: bool = True,
        fail_write_on: set[str] | None = None,
        clone_errors: list[Exception] | None = None,
    ) -> None:
        self.files = dict(files or {})
        self.clone_files = dict(clone_files or {})
        self.can_write = can_write
        self.fail_write_on = set(fail_write_on or ())
        self.clone_errors = list(clone_errors or [])
        self.calls: list[tuple] = []
        self.written: dict[str, tuple[str, str | None]] = {}
        self.pr_args: dict | None = None
        self.clone_dests: list[Path] = []

    @property
    def mutations(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in self.MUTATIONS]

    async def clone(self, repo, dest: Path) -> None:
        self.calls.append(("clone", repo.full_name))
        self.clone_dests.append(dest)
        if self.clone_errors:
            raise self.clone_errors.pop(0)
        dest.mkdir(parents=True, exist_ok=True)
        for rel, content in self.clone_files.items():
            p = dest / rel
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(content, encoding="utf-8")

    async def get_default_branch(self, repo) -> tuple[str, str]:
        self.calls.append(("get_default_branch", repo.full_name))
        return "main", "base-sha"

    async def create_branch(self, repo, branch: str, from_sha: str) -> None:
        self.calls.append(("create_branch", branch, from_sha))

    async def read_file(self, repo, path: str, ref: str | None = None):
        self.calls.append(("read_file", path, ref))
        if path not in self.files:
            return None
        return self.files[path], f"sha-{path}"

    async def write_file(self, repo, path, content, message, branch, sha=None) -> None:
        if path in self.fail_write_on:
            raise TransientInfraError(f"Write {path}: HTTP 409 sha mismatch")
        self.calls.append(("write_file", path, sha))
        self.written[path] = (content, sha)

    async def open_pull_request(self, repo, title, body, head, base) -> PullRequest:
        self.calls.append(("open_pull_request", head, base))
        self.pr_args = {"title": title, "body": body, "head": head, "base": base}
        return PullRequest(number=7, url=f"{repo.url}/pull/7")

    async def get_permissions(self, repo) -> RepoPermissions:
        self.calls.append(("get_permissions", repo.full_name))
        return RepoPermissions(login="alice", is_owner=False, push=self.can_write, admin=False)


class StaticDetector(Detector):
    def __init__(self, name: str, findings: list[Finding] | None = None, delay: float = 0.0, error=None):
        self._name = name
        self._findings = findings or []
        self._delay = delay
        self._error = error
        self.seen_dirs: list[Path] = []

    def name(self) -> str:
        return self._name

    def run(self, working_dir: Path) -> list[Finding]:
        self.seen_dirs.append(working_dir)
        if self._delay:
            time.sleep(self._delay)
        if self._error:
            raise self._error
        return [
            Finding(
                title=f.title,
                severity=f.severity,
                description=f.description,
                location=f.location,
                file_path=f.file_path,
                line_number=f.line_number,
                detector=self._name,
            )
            for f in self._findings
        ]


class ScriptedModel(LLMModel):
    def __init__(self, name: str, content: str = "", error: str | None = None, error_type: str | None = None):
        self._name = name
        self._content = content
        self._error = error
        self._error_type = error_type
        self.calls = 0
        self.last_user: str | None = None

    def name(self) -> str:
        return self._name

    def is_configured(self) -> bool:
        return True

    def chat(self, system, user, tracker=None) -> LLMResponse:
        self.calls += 1
        self.last_user = user
        resp = LLMResponse(
            content="" if self._error else self._content,
            input_tokens=10,
            output_tokens=5,
            model=self._name,
            provider="scripted",
            error=self._error,
            error_type=self._error_type,
        )
        if tracker:
            tracker.record(resp)
        return resp


def make_finding(title="Hardcoded Password String", severity="High", file_path="app.py", line=2) -> Finding:
    return Finding(
        title=title,
        severity=severity,
        description="Possible hardcoded password",
        location=f"{file_path}:{line}",
        file_path=file_path,
        line_number=line,
    )


@pytest.fixture
def fake_scm_factory():
    return FakeSCM


@pytest.fixture
def detector_factory():
    return StaticDetector


@pytest.fixture
def model_factory():
    return ScriptedModel


@pytest.fixture
def finding_factory():
    return make_finding


@pytest.fixture
def repo_url() -> str:
    return REPO_URL
