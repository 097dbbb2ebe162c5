# saikaki/routers/images.py
from __future__ import annotations
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from ..deps import get_vision_service
from ..services.fallback import AllProvidersFailed
from ..services.vision_service import VisionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/images", tags=["images"])


# ------- Local request/response shapes -------
class GenerateImageRequest(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=1000, description="What to draw")

class GenerateImageResponse(BaseModel):
    url: str = Field(..., description="Image URL or data URL")
    provider: str

class AnalyzeImageRequest(BaseModel):
    image: str = Field(..., min_length=1, description="Base64 image or data URL")

class AnalyzeImageResponse(BaseModel):
    description: str
    provider: str


# ------- Routes -------
@router.post("/generate", response_model=GenerateImageResponse, summary="Generate an image from a prompt")
async def generate_image(
    payload: GenerateImageRequest,
    vision: VisionService = Depends(get_vision_service),
):
    try:
        result = await vision.generate_image(payload.prompt)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except AllProvidersFailed as e:
        logger.error(f"Image generation failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Image generation failed")
    return GenerateImageResponse(url=result.value.url, provider=result.provider_name)


@router.post("/analyze", response_model=AnalyzeImageResponse, summary="Describe an uploaded image")
async def analyze_image(
    payload: AnalyzeImageRequest,
    vision: VisionService = Depends(get_vision_service),
):
    try:
        result = await vision.analyze_image(payload.image)
    except AllProvidersFailed as e:
        logger.error(f"Image analysis failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Image analysis failed")
    return AnalyzeImageResponse(description=result.value, provider=result.provider_name)
