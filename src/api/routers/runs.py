"""Generation run routes: start, inspect, export and stream runs."""

import asyncio
import logging
from datetime import date
from typing import Optional

from api.dependencies import get_orchestrator, get_quota_service
from api.schemas import AssetTypeInfo, QuotaResponse, RunCreatedResponse, RunRequest
from api.websocket_manager import WebSocketManager
from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import Response
from models.asset import AssetKind, GeneratedAsset, GenerationRun, RunStatus
from services.asset_exporter import export_asset
from services.generation_orchestrator import GENERIC_FAILURE_MESSAGE

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Generation Runs"])

QUOTA_EXHAUSTED_MESSAGE = "Daily generation limit reached. Try again tomorrow."

# Run storage (in-memory, one process)
runs: dict[str, GenerationRun] = {}

# WebSocket manager for run updates
ws_manager = WebSocketManager()

# Keep references to background tasks to prevent garbage collection
_background_tasks: set = set()


def get_active_run() -> Optional[GenerationRun]:
    for run in runs.values():
        if run.is_active:
            return run
    return None


def final_message(run: GenerationRun) -> dict:
    """Terminal WebSocket message for a finished run."""
    if run.status == RunStatus.FAILED:
        return {
            "type": "error",
            "message": run.error_message,
            "error_kind": run.terminal_error.value if run.terminal_error else None,
            "completed_count": len(run.completed_assets),
        }
    return {
        "type": "complete",
        "status": run.status.value,
        "completed_count": len(run.completed_assets),
        "requested_count": run.request.count,
    }


async def run_generation_task(run_id: str) -> None:
    """Execute a run in the background and stream its progress.

    Args:
        run_id: Run ID
    """
    if run_id not in runs:
        logger.error(f"Run {run_id} not found")
        return

    run = runs[run_id]
    orchestrator = get_orchestrator()

    async def on_progress(current: GenerationRun, asset: Optional[GeneratedAsset]) -> None:
        if asset is not None:
            await ws_manager.broadcast(run_id, {"type": "asset", "asset": asset.to_dict()})
        await ws_manager.broadcast(run_id, {
            "type": "progress",
            "status": current.status.value,
            "progress": current.progress_percent,
            "completed_count": len(current.completed_assets),
        })

    try:
        await orchestrator.execute(run, on_progress=on_progress)
    except Exception as e:
        logger.exception(f"Run {run_id} crashed: {e}")
        run.status = RunStatus.FAILED
        run.error_message = GENERIC_FAILURE_MESSAGE

    await ws_manager.broadcast(run_id, final_message(run))


@router.post(
    "/api/runs",
    status_code=202,
    response_model=RunCreatedResponse,
    summary="Start a generation run",
    description="Expands the theme into variations and forges one asset per variation. Track progress via WebSocket.",
    responses={
        400: {"description": "Missing or invalid prompt/type"},
        409: {"description": "A run is already in progress"},
        429: {"description": "Daily generation limit reached"},
    },
)
async def start_run(request: RunRequest) -> dict:
    """Start a generation run.

    Args:
        request: Theme prompt, asset type and variation count

    Returns:
        Run ID and initial status
    """
    if not request.prompt or not request.prompt.strip():
        raise HTTPException(status_code=400, detail="Missing prompt")
    if not request.type:
        raise HTTPException(status_code=400, detail="Missing type")

    try:
        kind = AssetKind(request.type)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown type '{request.type}'")

    active = get_active_run()
    if active is not None:
        raise HTTPException(status_code=409, detail=f"Run {active.run_id} is already in progress")

    # Registered before the first await so a concurrent start sees it as active
    run = get_orchestrator().create_run(request.prompt, kind, request.count)
    runs[run.run_id] = run

    quota = get_quota_service()
    try:
        allowed = await quota.check_and_consume(date.today())
    except Exception:
        runs.pop(run.run_id, None)
        raise
    if not allowed:
        runs.pop(run.run_id, None)
        raise HTTPException(status_code=429, detail=QUOTA_EXHAUSTED_MESSAGE)

    logger.info(f"Run {run.run_id} queued: {kind.value} x{request.count}")

    task = asyncio.create_task(run_generation_task(run.run_id))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    return {"run_id": run.run_id, "status": run.status.value}


@router.get("/api/runs/{run_id}", summary="Get run status", responses={404: {"description": "Run not found"}})
async def get_run(run_id: str) -> dict:
    """Get run status and the assets produced so far."""
    if run_id not in runs:
        raise HTTPException(status_code=404, detail="Run not found")

    return runs[run_id].to_dict()


@router.get(
    "/api/runs/{run_id}/assets/{asset_id}/export",
    summary="Download one asset",
    description="Converts a static asset to PNG, JPEG or WebP. Motion assets download as MP4.",
    responses={404: {"description": "Run or asset not found"}, 400: {"description": "Unsupported format"}},
)
async def export_run_asset(run_id: str, asset_id: str, format: str = "png") -> Response:
    if run_id not in runs:
        raise HTTPException(status_code=404, detail="Run not found")

    asset = runs[run_id].find_asset(asset_id)
    if asset is None:
        raise HTTPException(status_code=404, detail="Asset not found")

    try:
        exported = await asyncio.to_thread(export_asset, asset, format)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return Response(
        content=exported.data,
        media_type=exported.media_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )


@router.get("/api/quota", response_model=QuotaResponse, summary="Daily quota usage")
async def get_quota() -> dict:
    quota = get_quota_service()
    today = date.today()
    used = await quota.usage(today)
    return {
        "used": used,
        "limit": quota.limit,
        "remaining": max(0, quota.limit - used),
        "date": today.isoformat(),
    }


@router.get("/api/asset-types", response_model=list[AssetTypeInfo], summary="List asset types")
async def list_asset_types() -> list[dict]:
    return [
        {
            "name": kind.value,
            "slug": kind.slug,
            "is_motion": kind.is_motion,
            "transparent": kind.needs_transparency,
        }
        for kind in AssetKind
    ]


@router.websocket("/ws/runs/{run_id}")
async def websocket_run(websocket: WebSocket, run_id: str) -> None:
    """WebSocket endpoint for real-time run updates.

    Args:
        websocket: WebSocket connection
        run_id: Run ID to monitor
    """
    if run_id not in runs:
        await websocket.accept()
        await websocket.send_json({"type": "error", "message": "Run not found"})
        await websocket.close()
        return

    await ws_manager.connect(run_id, websocket)

    try:
        run = runs[run_id]

        # Send current snapshot immediately (late joiners get every asset so far)
        await websocket.send_json({"type": "status", **run.to_dict()})

        if not run.is_active:
            await websocket.send_json(final_message(run))

        # Keep connection alive
        while True:
            try:
                data = await websocket.receive_text()
                if data == "ping":
                    await websocket.send_text("pong")
            except WebSocketDisconnect:
                break

    except Exception as e:
        logger.error(f"WebSocket error for run {run_id}: {e}")
    finally:
        ws_manager.disconnect(run_id, websocket)
