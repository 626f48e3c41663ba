import pytest

from vibesec.core.errors import ValidationError
from vibesec.scm.repo_ref import RepoRef, normalize_git_url


def test_parse_https_url():
    ref = RepoRef.parse("https://github.com/acme/shop")
    assert (ref.owner, ref.repo) == ("acme", "shop")
    assert ref.url == "https://github.com/acme/shop"
    assert ref.full_name == "acme/shop"


@pytest.mark.parametrize(
    "url",
    [
        "https://github.com/acme/shop/",
        "https://www.github.com/acme/shop",
        "https://github.com/acme/shop.git",
        "git@github.com:acme/shop.git",
        "  https://github.com/acme/shop  ",
    ],
)
def test_parse_accepted_forms(url):
    assert RepoRef.parse(url).full_name == "acme/shop"


@pytest.mark.parametrize(
    "url",
    [
        "",
        None,
        "not a url",
        "https://gitlab.com/acme/shop",
        "https://github.com/acme",
        "https://github.com/acme/shop/tree/main",
        "https://github.com/-acme/shop",
        "ftp://github.com/acme/shop",
    ],
)
def test_parse_rejects_malformed(url):
    with pytest.raises(ValidationError):
        RepoRef.parse(url)


def test_normalize_ssh_to_https():
    assert normalize_git_url("git@github.com:Owner/Repo.git") == "https://github.com/Owner/Repo"


def test_clone_url_has_git_suffix():
    assert RepoRef("acme", "shop").clone_url == "https://github.com/acme/shop.git"
