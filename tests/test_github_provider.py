import base64
import json

import httpx
import pytest

from vibesec.core.errors import NotFoundError, PermissionDeniedError, TransientInfraError, ValidationError
from vibesec.scm.github import GitHubProvider
from vibesec.scm.repo_ref import RepoRef

REPO = RepoRef("acme", "shop")


def _provider(handler, token="ghp_test"):
    return GitHubProvider(token=token, api_base="https://api.github.test", timeout=5, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_read_file_decodes_content():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["ref"] = request.url.params.get("ref")
        seen["auth"] = request.headers.get("authorization")
        encoded = base64.b64encode(b"print('hi')\n").decode()
        return httpx.Response(200, json={"type": "file", "content": encoded, "sha": "abc123"})

    got = await _provider(handler).read_file(REPO, "src/app.py", ref="main")

    assert got == ("print('hi')\n", "abc123")
    assert seen == {"path": "/repos/acme/shop/contents/src/app.py", "ref": "main", "auth": "Bearer ghp_test"}


@pytest.mark.asyncio
async def test_read_missing_file_or_directory_is_none():
    def missing(request):
        return httpx.Response(404, json={"message": "Not Found"})

    def directory(request):
        return httpx.Response(200, json=[{"name": "a.py"}])

    assert await _provider(missing).read_file(REPO, "nope.py") is None
    assert await _provider(directory).read_file(REPO, "src") is None


@pytest.mark.asyncio
async def test_write_file_sends_base64_and_sha():
    captured = {}

    def handler(request):
        captured["method"] = request.method
        captured["body"] = json.loads(request.content)
        return httpx.Response(201, json={"content": {"sha": "new"}})

    await _provider(handler).write_file(REPO, "app.py", "x = 1\n", "Fix app.py", "vibesec-fix-1", sha="old")

    assert captured["method"] == "PUT"
    body = captured["body"]
    assert base64.b64decode(body["content"]).decode() == "x = 1\n"
    assert body["sha"] == "old"
    assert body["branch"] == "vibesec-fix-1"


@pytest.mark.asyncio
async def test_new_file_write_omits_sha():
    captured = {}

    def handler(request):
        captured["body"] = json.loads(request.content)
        return httpx.Response(201, json={})

    await _provider(handler).write_file(REPO, "new.txt", "hi", "Add", "b")
    assert "sha" not in captured["body"]


@pytest.mark.asyncio
async def test_default_branch_and_pull_request():
    def handler(request):
        path = request.url.path
        if path == "/repos/acme/shop":
            return httpx.Response(200, json={"default_branch": "develop"})
        if path == "/repos/acme/shop/git/ref/heads/develop":
            return httpx.Response(200, json={"object": {"sha": "base-sha"}})
        if path == "/repos/acme/shop/pulls":
            body = json.loads(request.content)
            assert body["head"] == "vibesec-fix-1" and body["base"] == "develop"
            return httpx.Response(201, json={"number": 12, "html_url": "https://github.com/acme/shop/pull/12"})
        return httpx.Response(500)

    provider = _provider(handler)
    assert await provider.get_default_branch(REPO) == ("develop", "base-sha")
    pr = await provider.open_pull_request(REPO, "Fix: X", "body", "vibesec-fix-1", "develop")
    assert (pr.number, pr.url) == (12, "https://github.com/acme/shop/pull/12")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, exc",
    [
        (401, PermissionDeniedError),
        (403, PermissionDeniedError),
        (404, NotFoundError),
        (409, ValidationError),
        (422, ValidationError),
        (429, TransientInfraError),
        (502, TransientInfraError),
    ],
)
async def test_error_status_mapping(status, exc):
    def handler(request):
        return httpx.Response(status, json={"message": "nope"})

    with pytest.raises(exc, match="nope"):
        await _provider(handler).create_branch(REPO, "b", "sha")


@pytest.mark.asyncio
async def test_network_error_is_transient():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransientInfraError):
        await _provider(handler).get_default_branch(REPO)


@pytest.mark.asyncio
async def test_permissions():
    def handler(request):
        if request.url.path == "/user":
            return httpx.Response(200, json={"login": "acme"})
        return httpx.Response(
            200, json={"owner": {"login": "acme"}, "permissions": {"push": True, "admin": False}}
        )

    perms = await _provider(handler).get_permissions(REPO)
    assert perms.login == "acme"
    assert perms.is_owner
    assert perms.can_write
    assert perms.level == "write"


@pytest.mark.asyncio
async def test_permissions_without_token():
    def handler(request):
        raise AssertionError("no request expected")

    perms = await _provider(handler, token="").get_permissions(REPO)
    assert not perms.can_write
