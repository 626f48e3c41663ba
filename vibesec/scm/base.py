"""Abstract source-control provider.

Everything the pipeline, fix generator and patch applier need from a code
host goes through this interface, so tests can swap in an in-memory fake.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from vibesec.scm.repo_ref import RepoRef


@dataclass
class RepoPermissions:
    login: str | None
    is_owner: bool
    push: bool
    admin: bool

    @property
    def can_write(self) -> bool:
        return self.is_owner or self.push or self.admin

    @property
    def level(self) -> str:
        if self.admin:
            return "admin"
        if self.push:
            return "write"
        return "read"


@dataclass
class PullRequest:
    number: int
    url: str


class SourceControlProvider(ABC):
    @abstractmethod
    async def clone(self, repo: RepoRef, dest: Path) -> None:
        """Shallow-clone *repo* into *dest*."""

    @abstractmethod
    async def get_default_branch(self, repo: RepoRef) -> tuple[str, str]:
        """Return ``(branch_name, head_sha)`` of the default branch."""

    @abstractmethod
    async def create_branch(self, repo: RepoRef, branch: str, from_sha: str) -> None: ...

    @abstractmethod
    async def read_file(self, repo: RepoRef, path: str, ref: str | None = None) -> tuple[str, str] | None:
        """Return ``(content, revision_sha)`` or None if the file does not exist."""

    @abstractmethod
    async def write_file(
        self,
        repo: RepoRef,
        path: str,
        content: str,
        message: str,
        branch: str,
        sha: str | None = None,
    ) -> None: ...

    @abstractmethod
    async def open_pull_request(self, repo: RepoRef, title: str, body: str, head: str, base: str) -> PullRequest: ...

    @abstractmethod
    async def get_permissions(self, repo: RepoRef) -> RepoPermissions: ...
