"""Apply a stored structured patch to the remote repository.

Flow: access gate, resolve the fix attempt, branch off the default branch
head, write every file change on that branch, open a pull request.

Writes are not transactional. The first failing write stops the sequence
and raises PartialApplyError naming what was and was not written; the
branch is left in place and no pull request is opened. File revision
shas are fetched once per file and not re-checked before the write.
"""

from __future__ import annotations

import logging
import time
from typing import Iterable

from vibesec.core.config import settings
from vibesec.core.errors import NotFoundError, PartialApplyError, PermissionDeniedError, VibeSecError
from vibesec.domain.models import ApplyResult, Finding, FixAttempt
from vibesec.domain.schemas import FileChange, LineEdit, Patch
from vibesec.scm.access import AccessGate
from vibesec.scm.base import SourceControlProvider
from vibesec.scm.repo_ref import RepoRef
from vibesec.services.store_service import StoreService

logger = logging.getLogger(__name__)


def apply_line_edits(content: str, edits: Iterable[LineEdit]) -> str:
    """Apply edits bottom-up so earlier line numbers stay valid.

    The sort is stable: edits sharing a line number run in patch order, so
    ``remove 10`` followed by ``add 10`` replaces line 10.
    """
    lines = content.split("\n")
    for e in sorted(edits, key=lambda e: e.line_number, reverse=True):
        i = e.line_number - 1
        if e.op == "add":
            lines.insert(min(i, len(lines)), e.content)
        elif i >= len(lines):
            logger.warning("Skipping %s at line %d: file has %d lines", e.op, e.line_number, len(lines))
        elif e.op == "remove":
            del lines[i]
        else:
            lines[i] = e.content
    return "\n".join(lines)


def branch_name_for(finding_id: str, now_ms: int | None = None) -> str:
    ts = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{settings.BRANCH_PREFIX}-{finding_id[:8]}-{ts}"


def pull_request_title(finding_title: str) -> str:
    return f"Fix: {finding_title.split(':')[0].strip()}"


def pull_request_body(finding: Finding | None, patch: Patch) -> str:
    title = finding.title if finding else "Security issue"
    files = "\n".join(
        f"- `{fc.file_path}` {'(new file)' if fc.is_new_file else '(modified)'}" for fc in patch.files
    )
    return "\n".join(
        [
            f"## Security Fix: {title}",
            "",
            f"**Severity:** {finding.severity if finding else 'Unknown'}",
            "",
            "### Issue Description",
            finding.description if finding else "",
            "",
            "### Changes Made",
            patch.summary or "AI-generated security fix applied to address the vulnerability.",
            "",
            "### Files Modified",
            files,
            "",
            "### Next Steps",
            "Please review the changes and merge this pull request to apply the security fix.",
            "",
            "---",
            "*This fix was automatically generated by the VibeSec security scanner.*",
        ]
    )


class PatchApplier:
    def __init__(self, store: StoreService, scm: SourceControlProvider, gate: AccessGate) -> None:
        self._store = store
        self._scm = scm
        self._gate = gate

    async def check_access(self, repo_ref: str, caller: str) -> dict:
        repo = RepoRef.parse(repo_ref)
        return await self._gate.describe(caller, repo)

    def _resolve_attempt(self, finding_id: str, attempt_number: int | None) -> FixAttempt:
        if attempt_number is not None:
            attempt = self._store.get_fix_attempt(finding_id, attempt_number)
        else:
            attempt = self._store.latest_fix_attempt(finding_id)
        if attempt is None:
            raise NotFoundError(f"No fix found for finding {finding_id}")
        return attempt

    async def apply_fix(
        self,
        finding_id: str,
        repo_ref: str,
        caller: str,
        attempt_number: int | None = None,
    ) -> ApplyResult:
        repo = RepoRef.parse(repo_ref)

        if not await self._gate.check_write_access(caller, repo):
            raise PermissionDeniedError(f"{caller} may not push to {repo.full_name}")

        attempt = self._resolve_attempt(finding_id, attempt_number)
        patch = Patch.model_validate(attempt.patch)
        finding = self._store.get_finding(finding_id)
        title = finding.title if finding else "Security issue"

        base_branch, base_sha = await self._scm.get_default_branch(repo)
        branch = branch_name_for(finding_id)
        await self._scm.create_branch(repo, branch, base_sha)

        applied: list[str] = []
        for idx, fc in enumerate(patch.files):
            try:
                await self._apply_file(repo, branch, fc, title)
            except VibeSecError as e:
                failed = [f.file_path for f in patch.files[idx:]]
                logger.error(
                    "Write of %s failed, stopping: %s",
                    fc.file_path,
                    e,
                    extra={"finding_id": finding_id},
                )
                raise PartialApplyError(branch, applied, failed, str(e)) from e
            applied.append(fc.file_path)

        pr = await self._scm.open_pull_request(
            repo,
            title=pull_request_title(title),
            body=pull_request_body(finding, patch),
            head=branch,
            base=base_branch,
        )
        logger.info(
            "Opened pull request #%d on %s from %s",
            pr.number,
            repo.full_name,
            branch,
            extra={"finding_id": finding_id, "attempt": attempt.attempt_number},
        )
        return ApplyResult(
            branch_name=branch,
            branch_url=f"{repo.url}/tree/{branch}",
            merge_request_url=pr.url,
            merge_request_number=pr.number,
            files=applied,
        )

    async def _apply_file(self, repo: RepoRef, branch: str, fc: FileChange, title: str) -> None:
        if fc.is_new_file:
            await self._scm.write_file(
                repo, fc.file_path, fc.full_content or "", f"Fix: {title} - Add {fc.file_path}", branch
            )
            return

        current = await self._scm.read_file(repo, fc.file_path, ref=branch)
        if current is None:
            added = [e.content for e in fc.changes if e.op == "add"]
            if not added:
                raise NotFoundError(f"{fc.file_path} does not exist and the change adds no lines")
            # missing file: the added lines become its content
            await self._scm.write_file(
                repo, fc.file_path, "\n".join(added), f"Fix: {title} - Add {fc.file_path}", branch
            )
            return

        content, sha = current
        await self._scm.write_file(
            repo,
            fc.file_path,
            apply_line_edits(content, fc.changes),
            f"Fix: {title} - Update {fc.file_path}",
            branch,
            sha=sha,
        )
