"""Pydantic request/response models for the Forge API."""

from typing import Optional

from pydantic import BaseModel, Field

# =============================================================================
# Response Models
# =============================================================================


class RootResponse(BaseModel):
    """Root endpoint response."""

    message: str
    version: str

    model_config = {"json_schema_extra": {"examples": [{"message": "Forge API", "version": "1.0.0"}]}}


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    models: dict[str, str]
    config_problems: list[str] = []

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "status": "healthy",
                    "models": {
                        "text": "gemini-3-flash-preview",
                        "image": "gemini-2.5-flash-image",
                        "video": "veo-3.1-fast-generate-preview",
                    },
                    "config_problems": [],
                }
            ]
        }
    }


class VariationsResponse(BaseModel):
    """Response for the variations pass-through."""

    variations: list[str]


class ImageResponse(BaseModel):
    """Response for the single-image pass-through."""

    image: str = Field(description="Data URI of the generated image")


class RunCreatedResponse(BaseModel):
    """Response for starting a generation run."""

    run_id: str
    status: str


class QuotaResponse(BaseModel):
    """Daily quota usage."""

    used: int
    limit: int
    remaining: int
    date: str

    model_config = {
        "json_schema_extra": {
            "examples": [{"used": 1, "limit": 3, "remaining": 2, "date": "2026-10-18"}]
        }
    }


class AssetTypeInfo(BaseModel):
    """One selectable asset category."""

    name: str
    slug: str
    is_motion: bool
    transparent: bool


# =============================================================================
# Request Models
# =============================================================================


class VariationsRequest(BaseModel):
    """Request body for the variations pass-through."""

    prompt: Optional[str] = None
    count: int = 10


class GenerateRequest(BaseModel):
    """Request body for the single-image pass-through."""

    prompt: Optional[str] = None
    type: Optional[str] = None


class RunRequest(BaseModel):
    """Request body for starting a generation run."""

    prompt: Optional[str] = None
    type: Optional[str] = None
    count: int = Field(default=20, ge=1, le=100)

    model_config = {
        "json_schema_extra": {
            "examples": [{"prompt": "red balloon", "type": "Sticker", "count": 20}]
        }
    }
