from __future__ import annotations

import re
from dataclasses import dataclass

from vibesec.core.errors import ValidationError

_VALID_URL = re.compile(
    r"^https?://(www\.)?github\.com/[a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?/[a-zA-Z0-9._-]+/?$"
)
_OWNER_REPO = re.compile(r"github\.com[/:]([^/]+)/([^/]+?)(?:\.git)?/?$")


def normalize_git_url(url: str) -> str:
    """
    Support both HTTPS and SSH-ish GitHub URLs.
    In containers, SSH keys are often missing, so prefer HTTPS.
    """
    u = url.strip()

    # git@github.com:Owner/Repo.git -> https://github.com/Owner/Repo
    m = re.match(r"^git@github\.com:(.+)$", u)
    if m:
        u = f"https://github.com/{m.group(1)}"

    if u.endswith(".git"):
        u = u[: -len(".git")]
    return u


@dataclass(frozen=True)
class RepoRef:
    owner: str
    repo: str

    @property
    def url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}"

    @property
    def clone_url(self) -> str:
        return f"{self.url}.git"

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @classmethod
    def parse(cls, url: str | None) -> RepoRef:
        if not url or not isinstance(url, str):
            raise ValidationError("Repository URL is required")

        u = normalize_git_url(url)
        if not _VALID_URL.match(u):
            raise ValidationError(f"Invalid GitHub repository URL: {url!r}")

        m = _OWNER_REPO.search(u)
        if not m:
            raise ValidationError(f"Invalid GitHub repository URL: {url!r}")
        return cls(owner=m.group(1), repo=m.group(2))
