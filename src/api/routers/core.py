"""Root and health probes for the Forge API."""

from api.schemas import HealthResponse, RootResponse
from fastapi import APIRouter
from utils.config import load_config, validate_config

API_NAME = "Forge API"
API_VERSION = "1.0.0"

router = APIRouter(tags=["Core"])


@router.get("/", response_model=RootResponse, summary="API root")
async def root() -> dict[str, str]:
    return {"message": API_NAME, "version": API_VERSION}


@router.get(
    "/api/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Reports the configured models and any configuration problems.",
)
async def health() -> dict:
    """Health probe.

    The server answers even when misconfigured so the problems are visible;
    status is ``degraded`` while any remain.
    """
    config = load_config()
    problems = validate_config(config)
    return {
        "status": "degraded" if problems else "healthy",
        "models": {
            "text": config["text_model"],
            "image": config["image_model"],
            "video": config["video_model"],
        },
        "config_problems": problems,
    }
