import pytest

from vibesec.core.errors import NotFoundError, PartialApplyError, PermissionDeniedError
from vibesec.domain.schemas import LineEdit
from vibesec.repair.patch_applier import (
    PatchApplier,
    apply_line_edits,
    branch_name_for,
    pull_request_title,
)
from vibesec.scm.access import GitHubAccessGate


def _edit(line, op, content=""):
    return LineEdit(lineNumber=line, type=op, content=content)


def _lines(n: int) -> str:
    return "\n".join(f"line{i}" for i in range(1, n + 1))


# ── apply_line_edits ──────────────────────────────────────────────


def test_remove_then_add_on_same_line_replaces_it():
    out = apply_line_edits(_lines(12), [_edit(10, "remove", "a"), _edit(10, "add", "b")])
    lines = out.split("\n")
    assert lines[9] == "b"
    assert len(lines) == 12
    assert "line10" not in lines


def test_edits_apply_bottom_up():
    out = apply_line_edits(_lines(5), [_edit(1, "remove"), _edit(4, "modify", "four")])
    assert out.split("\n") == ["line2", "line3", "four", "line5"]


def test_add_inserts_before_line():
    out = apply_line_edits("a\nb", [_edit(2, "add", "x")])
    assert out == "a\nx\nb"


def test_add_past_end_appends():
    assert apply_line_edits("a", [_edit(5, "added", "z")]) == "a\nz"


def test_out_of_range_remove_and_modify_are_skipped():
    assert apply_line_edits("a\nb", [_edit(9, "remove"), _edit(7, "modify", "q")]) == "a\nb"


def test_trailing_newline_is_preserved():
    assert apply_line_edits("a\nb\n", [_edit(1, "modify", "A")]) == "A\nb\n"


def test_branch_name_and_title():
    assert branch_name_for("0123456789abcdef", now_ms=1700000000000) == "vibesec-fix-01234567-1700000000000"
    assert pull_request_title("Hardcoded Password: B105") == "Fix: Hardcoded Password"


# ── PatchApplier ──────────────────────────────────────────────────

PATCH = {
    "summary": "Move secrets to env",
    "files": [
        {"filePath": "config/.env.example", "isNewFile": True, "fullContent": "API_KEY=\n"},
        {
            "filePath": "app.py",
            "isNewFile": False,
            "changes": [
                {"lineNumber": 2, "type": "removed", "content": 'password = "secret123"'},
                {"lineNumber": 2, "type": "added", "content": 'password = os.environ["PASSWORD"]'},
            ],
        },
        {
            "filePath": "util.py",
            "isNewFile": False,
            "changes": [{"lineNumber": 1, "type": "modified", "content": "import os"}],
        },
    ],
}

APP_PY = 'import os\npassword = "secret123"\nprint(password)\n'


@pytest.fixture
def seeded(store, finding_factory, repo_url):
    finding = store.save_findings("job-1", [finding_factory()])[0]
    store.append_fix_attempt(finding.id, PATCH, repository_url=repo_url)
    return finding


def _applier(store, scm):
    return PatchApplier(store, scm, GitHubAccessGate(scm))


@pytest.mark.asyncio
async def test_access_denied_makes_no_mutations(store, seeded, fake_scm_factory, repo_url):
    scm = fake_scm_factory(files={"app.py": APP_PY}, can_write=False)
    with pytest.raises(PermissionDeniedError):
        await _applier(store, scm).apply_fix(seeded.id, repo_url, "mallory")
    assert scm.mutations == []


@pytest.mark.asyncio
async def test_apply_writes_files_and_opens_pull_request(store, seeded, fake_scm_factory, repo_url):
    scm = fake_scm_factory(files={"app.py": APP_PY, "util.py": "import sys\n"})
    result = await _applier(store, scm).apply_fix(seeded.id, repo_url, "alice")

    assert result.branch_name.startswith(f"vibesec-fix-{seeded.id[:8]}-")
    assert result.branch_url == f"{repo_url}/tree/{result.branch_name}"
    assert result.merge_request_number == 7
    assert result.files == ["config/.env.example", "app.py", "util.py"]

    assert ("create_branch", result.branch_name, "base-sha") in scm.calls
    assert scm.written["config/.env.example"] == ("API_KEY=\n", None)
    content, sha = scm.written["app.py"]
    assert content == 'import os\npassword = os.environ["PASSWORD"]\nprint(password)\n'
    assert sha == "sha-app.py"
    assert scm.written["util.py"][0] == "import os\n"

    assert scm.pr_args["title"] == "Fix: Hardcoded Password String"
    assert scm.pr_args["base"] == "main"
    assert "**Severity:** High" in scm.pr_args["body"]
    assert "`config/.env.example` (new file)" in scm.pr_args["body"]


@pytest.mark.asyncio
async def test_failed_write_stops_and_reports_partial_apply(store, seeded, fake_scm_factory, repo_url):
    scm = fake_scm_factory(files={"app.py": APP_PY, "util.py": "x"}, fail_write_on={"app.py"})
    with pytest.raises(PartialApplyError) as info:
        await _applier(store, scm).apply_fix(seeded.id, repo_url, "alice")

    err = info.value
    assert err.applied == ["config/.env.example"]
    assert err.failed == ["app.py", "util.py"]
    assert err.branch_name.startswith("vibesec-fix-")
    assert err.to_dict()["failed"] == ["app.py", "util.py"]
    assert not any(c[0] == "open_pull_request" for c in scm.calls)
    assert "util.py" not in scm.written


@pytest.mark.asyncio
async def test_missing_file_with_added_lines_becomes_new_file(store, seeded, fake_scm_factory, repo_url):
    scm = fake_scm_factory(files={"util.py": "x"})
    await _applier(store, scm).apply_fix(seeded.id, repo_url, "alice")
    assert scm.written["app.py"] == ('password = os.environ["PASSWORD"]', None)


@pytest.mark.asyncio
async def test_missing_file_without_added_lines_is_a_failed_write(store, seeded, fake_scm_factory, repo_url):
    scm = fake_scm_factory(files={"app.py": APP_PY})
    with pytest.raises(PartialApplyError) as info:
        await _applier(store, scm).apply_fix(seeded.id, repo_url, "alice")
    assert info.value.failed == ["util.py"]


@pytest.mark.asyncio
async def test_explicit_attempt_number_is_used(store, seeded, fake_scm_factory, repo_url):
    second = {"summary": "v2", "files": [{"filePath": "v2.txt", "isNewFile": True, "fullContent": "2"}]}
    store.append_fix_attempt(seeded.id, second)

    scm = fake_scm_factory()
    latest = await _applier(store, scm).apply_fix(seeded.id, repo_url, "alice")
    assert latest.files == ["v2.txt"]

    scm = fake_scm_factory(files={"app.py": APP_PY, "util.py": "x"})
    first = await _applier(store, scm).apply_fix(seeded.id, repo_url, "alice", attempt_number=1)
    assert "app.py" in first.files


@pytest.mark.asyncio
async def test_unknown_fix_is_not_found(store, fake_scm_factory, repo_url):
    scm = fake_scm_factory()
    with pytest.raises(NotFoundError):
        await _applier(store, scm).apply_fix("no-such-finding", repo_url, "alice")
    assert scm.mutations == []


@pytest.mark.asyncio
async def test_check_access_describes_permissions(store, fake_scm_factory, repo_url):
    info = await _applier(store, fake_scm_factory(can_write=True)).check_access(repo_url, "alice")
    assert info == {"hasAccess": True, "permission": "write", "isOwner": False}
