"""Bookmark classification endpoint."""
from fastapi import APIRouter, Depends
from openai import AsyncOpenAI

from api.dependencies import get_classifier_client, get_current_user, get_settings
from core.config import Settings
from models.user import User
from schemas.metadata import AnalyzeRequest, AnalyzeResponse
from services.classifier import classify_bookmark

router = APIRouter(tags=["analyze"])


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze_bookmark(
    data: AnalyzeRequest,
    _current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    llm_client: AsyncOpenAI | None = Depends(get_classifier_client),
) -> AnalyzeResponse:
    """Suggest a category and up to five tags. Falls back to keyword rules when the LLM is unavailable."""
    result = await classify_bookmark(
        llm_client, data.url, data.title, data.description, settings.openai_model,
    )
    return AnalyzeResponse(category=result.category, tags=result.tags)
