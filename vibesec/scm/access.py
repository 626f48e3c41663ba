"""Access gate: may this caller mutate this repository?

Consulted before any branch/write/pull-request call.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from vibesec.scm.base import SourceControlProvider
from vibesec.scm.repo_ref import RepoRef

logger = logging.getLogger(__name__)


class AccessGate(ABC):
    @abstractmethod
    async def check_write_access(self, caller: str, repo: RepoRef) -> bool: ...

    async def describe(self, caller: str, repo: RepoRef) -> dict:
        allowed = await self.check_write_access(caller, repo)
        return {"hasAccess": allowed, "permission": "write" if allowed else "read", "isOwner": False}


class GitHubAccessGate(AccessGate):
    """Grants write access to the repo owner or anyone with push/admin rights
    for the token the provider authenticates with."""

    def __init__(self, provider: SourceControlProvider) -> None:
        self._provider = provider

    async def check_write_access(self, caller: str, repo: RepoRef) -> bool:
        perms = await self._provider.get_permissions(repo)
        allowed = perms.can_write
        logger.info(
            "Access check caller=%s repo=%s login=%s allowed=%s",
            caller,
            repo.full_name,
            perms.login,
            allowed,
        )
        return allowed

    async def describe(self, caller: str, repo: RepoRef) -> dict:
        perms = await self._provider.get_permissions(repo)
        return {
            "hasAccess": perms.can_write,
            "permission": perms.level,
            "isOwner": perms.is_owner,
        }
