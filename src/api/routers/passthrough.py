"""Single-call routes: variation list and one untemplated image."""

import logging

from api.dependencies import get_gemini_client
from api.schemas import GenerateRequest, ImageResponse, VariationsRequest, VariationsResponse
from fastapi import APIRouter, HTTPException
from models.asset import AssetKind
from services.prompts import SHORT_VARIATION_GENERATOR, parse_string_array
from utils.retry import NoOutputError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Pass-through"])


@router.post(
    "/variations",
    response_model=VariationsResponse,
    summary="Generate prompt variations",
    description="Returns short visual prompt variations of a theme.",
    responses={400: {"description": "Missing prompt"}, 500: {"description": "Variation generation failed"}},
)
async def generate_variations(request: VariationsRequest) -> dict:
    """Generate short prompt variations.

    Args:
        request: Theme prompt and how many variations to ask for

    Returns:
        The parsed variation list
    """
    if not request.prompt:
        raise HTTPException(status_code=400, detail="Missing prompt")

    gemini = get_gemini_client()
    try:
        text = await gemini.generate_string_list(
            SHORT_VARIATION_GENERATOR.format(count=request.count, prompt=request.prompt)
        )
        variations = parse_string_array(text or "[]")
    except Exception as e:
        logger.error(f"Variation generation failed: {e}")
        raise HTTPException(status_code=500, detail="Variation generation failed")

    return {"variations": variations}


@router.post(
    "/generate",
    response_model=ImageResponse,
    summary="Generate one image",
    description="Sends the prompt to the image model as-is and returns a data URI.",
    responses={400: {"description": "Missing prompt or type"}, 500: {"description": "Generation failed"}},
)
async def generate_image(request: GenerateRequest) -> dict:
    """Generate a single image from an untemplated prompt."""
    if not request.prompt or not request.type:
        raise HTTPException(status_code=400, detail="Missing prompt or type")

    try:
        AssetKind(request.type)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown type '{request.type}'")

    gemini = get_gemini_client()
    try:
        content = await gemini.generate_image(request.prompt, aspect_ratio=None)
    except NoOutputError:
        raise HTTPException(status_code=500, detail="No image generated")
    except Exception as e:
        logger.error(f"Image generation failed: {e}")
        raise HTTPException(status_code=500, detail="Generation failed")

    return {"image": content.to_data_uri()}
