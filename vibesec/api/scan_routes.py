from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ConfigDict, Field
from starlette.websockets import WebSocketState

from vibesec.api.deps import get_caller, get_patch_applier, get_services
from vibesec.core.containers import Services
from vibesec.core.errors import VibeSecError
from vibesec.repair.patch_applier import PatchApplier
from vibesec.services.progress_service import complete_event, connected_event, error_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/scans", tags=["scans"])
ws_router = APIRouter(tags=["scans"])


# ── Request / Response schemas ────────────────────────────────────
class ScanRequest(BaseModel):
    """Request body for submitting a scan."""

    model_config = ConfigDict(populate_by_name=True)

    repository_url: str = Field(
        ...,
        alias="repositoryUrl",
        description="HTTPS (or git@ SSH) GitHub URL of the repository to scan.",
        json_schema_extra={"examples": ["https://github.com/owner/repo"]},
    )


class ScanSubmitted(BaseModel):
    jobId: str = Field(..., description="UUID of the queued scan job.")


class ScanStatus(BaseModel):
    status: str = Field(..., description="pending, scanning, completed or failed.")
    progress: int = Field(..., ge=0, le=100)


class AccessInfo(BaseModel):
    hasAccess: bool
    permission: str
    isOwner: bool


# ── Endpoints ─────────────────────────────────────────────────────
@router.post("", response_model=ScanSubmitted, status_code=202, summary="Submit a repository scan")
async def submit_scan(
    req: ScanRequest,
    caller: str = Depends(get_caller),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Validate the repository URL, persist a pending job and queue it.

    Progress is streamed on `/ws/scan/{jobId}`; the status endpoint is the
    polling fallback.
    """
    job_id = services.scheduler.submit(req.repository_url, caller)
    return {"jobId": job_id}


@router.get("", summary="List the caller's scans")
def list_scans(
    limit: int = Query(50, ge=1, le=500),
    caller: str = Depends(get_caller),
    services: Services = Depends(get_services),
) -> list[dict[str, Any]]:
    """Most recent first."""
    return [j.to_dict() for j in services.scheduler.list_jobs(caller, limit=limit)]


@router.post("/check-access", response_model=AccessInfo, summary="Check write access to a repository")
async def check_access(
    req: ScanRequest,
    caller: str = Depends(get_caller),
    applier: PatchApplier = Depends(get_patch_applier),
) -> dict[str, Any]:
    """Whether a fix could be applied: the caller owns the repo or has push/admin rights."""
    return await applier.check_access(req.repository_url, caller)


@router.get("/{job_id}/status", response_model=ScanStatus, summary="Get scan status")
def get_scan_status(
    job_id: str,
    caller: str = Depends(get_caller),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """404 for unknown jobs and for jobs submitted by another caller."""
    return services.scheduler.get_status(job_id, owner_id=caller)


@router.get("/{job_id}", summary="Get scan result")
def get_scan_result(
    job_id: str,
    caller: str = Depends(get_caller),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Score, findings and tech stack. 404 until the scan has finished."""
    return services.scheduler.get_result(job_id, owner_id=caller).to_dict()


# ── Progress stream ───────────────────────────────────────────────
async def send_json(ws: WebSocket, data: dict[str, Any]) -> None:
    """Send JSON data to WebSocket if connected."""
    if ws.client_state == WebSocketState.CONNECTED:
        await ws.send_json(data)


async def _stream_progress(websocket: WebSocket, job_id: str, caller: str, services: Services) -> None:
    await websocket.accept()

    sub = None
    try:
        await send_json(websocket, connected_event(job_id))

        job = services.store.get_job(job_id)
        if job is None or job.owner_id != caller:
            await send_json(websocket, error_event(f"Scan job {job_id} not found"))
            return

        # subscribe before re-reading state so no event falls in between
        sub = services.progress.subscribe(job_id)
        job = services.store.get_job(job_id)
        if job.is_terminal:
            result = services.scheduler.get_result(job_id, owner_id=caller)
            if job.status == "completed":
                await send_json(websocket, complete_event(result.to_dict()))
            else:
                await send_json(websocket, error_event(job.error or "Scan failed"))
            return

        async for event in sub.events():
            await send_json(websocket, event)
    except VibeSecError as e:
        await send_json(websocket, error_event(str(e)))
    except WebSocketDisconnect:
        logger.info("Progress client disconnected", extra={"job_id": job_id})
    finally:
        if sub is not None:
            services.progress.unsubscribe(job_id, sub)
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()


@ws_router.websocket("/ws/scan/{job_id}")
async def scan_progress(
    websocket: WebSocket,
    job_id: str,
    caller: str = Depends(get_caller),
    services: Services = Depends(get_services),
):
    await _stream_progress(websocket, job_id, caller, services)


@ws_router.websocket("/ws/scan")
async def scan_progress_query(
    websocket: WebSocket,
    job_id: str | None = Query(None, alias="jobId"),
    scan_id: str | None = Query(None, alias="scanId"),
    caller: str = Depends(get_caller),
    services: Services = Depends(get_services),
):
    """Query-string form; accepts ``jobId`` or the older ``scanId`` name."""
    await _stream_progress(websocket, job_id or scan_id or "", caller, services)
