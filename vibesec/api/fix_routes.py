from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from vibesec.api.deps import get_caller, get_fix_generator, get_patch_applier
from vibesec.repair.fix_generator import FixGenerator
from vibesec.repair.patch_applier import PatchApplier

router = APIRouter(prefix="/api/ai", tags=["fixes"])


# ── Request / Response schemas ────────────────────────────────────
class GenerateFixRequest(BaseModel):
    """Request body for generating (or fetching the cached) fix of a finding."""

    model_config = ConfigDict(populate_by_name=True)

    finding_id: str = Field(..., alias="findingId")
    tech_stack: list[str] = Field(default_factory=list, alias="techStack")
    repository_url: str = Field(..., alias="repositoryUrl")
    use_existing: bool = Field(
        True,
        alias="useExisting",
        description="Return the latest stored attempt if any. False forces a new attempt.",
    )
    attempt_number: int | None = Field(
        None,
        alias="attemptNumber",
        ge=1,
        description="With useExisting=false, overwrite this attempt instead of appending a new one.",
    )


class GenerateFixResponse(BaseModel):
    patch: dict[str, Any]
    attemptNumber: int
    cached: bool
    model: str = ""
    tokens: dict[str, Any] = Field(default_factory=dict)


class ApplyFixRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    finding_id: str = Field(..., alias="findingId")
    repository_url: str = Field(..., alias="repositoryUrl")
    attempt_number: int | None = Field(None, alias="attemptNumber", ge=1)


class ApplyFixResponse(BaseModel):
    branchName: str
    branchUrl: str
    mergeRequestUrl: str
    mergeRequestNumber: int
    files: list[str]


# ── Endpoints ─────────────────────────────────────────────────────
@router.post("/generate-fix", response_model=GenerateFixResponse, summary="Generate a structured fix")
async def generate_fix(
    req: GenerateFixRequest,
    caller: str = Depends(get_caller),
    generator: FixGenerator = Depends(get_fix_generator),
) -> dict[str, Any]:
    """Ask the configured models, in fallback order, for a structured patch.

    Attempts are numbered per finding; the cached latest attempt is returned
    unless `useExisting` is false.
    """
    result = await generator.generate_fix(
        req.finding_id,
        req.tech_stack,
        req.repository_url,
        caller=caller,
        use_existing=req.use_existing,
        attempt_number=req.attempt_number,
    )
    return result.to_dict()


@router.post("/apply-fix", response_model=ApplyFixResponse, summary="Apply a fix as a pull request")
async def apply_fix(
    req: ApplyFixRequest,
    caller: str = Depends(get_caller),
    applier: PatchApplier = Depends(get_patch_applier),
) -> dict[str, Any]:
    """Branch off the default branch, write every file change, open a pull request.

    A failed write stops the sequence with 409 and lists the files that were
    and were not written.
    """
    result = await applier.apply_fix(req.finding_id, req.repository_url, caller, req.attempt_number)
    return result.to_dict()
