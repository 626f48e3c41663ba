"""Request-scoped dependencies: caller identity, GitHub token, services."""

from __future__ import annotations

from fastapi import Depends, Header
from starlette.requests import HTTPConnection

from vibesec.core.config import settings
from vibesec.core.containers import Services, build_fix_generator, build_patch_applier
from vibesec.repair.fix_generator import FixGenerator
from vibesec.repair.patch_applier import PatchApplier


def get_services(conn: HTTPConnection) -> Services:
    return conn.app.state.services


def get_caller(x_caller_id: str | None = Header(None)) -> str:
    return (x_caller_id or "").strip() or "anonymous"


def get_github_token(x_github_token: str | None = Header(None)) -> str | None:
    return x_github_token or settings.GITHUB_TOKEN


def get_fix_generator(
    services: Services = Depends(get_services),
    token: str | None = Depends(get_github_token),
) -> FixGenerator:
    return build_fix_generator(services, token)


def get_patch_applier(
    services: Services = Depends(get_services),
    token: str | None = Depends(get_github_token),
) -> PatchApplier:
    return build_patch_applier(services, token)
