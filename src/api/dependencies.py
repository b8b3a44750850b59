"""FastAPI dependencies for injection."""
from fastapi import Depends
from openai import AsyncOpenAI

from core.auth import get_current_user
from core.config import Settings, get_settings
from db.session import get_async_session
from services.classifier import get_llm_client


def get_classifier_client(settings: Settings = Depends(get_settings)) -> AsyncOpenAI | None:
    """LLM client for bookmark classification, or None when no API key is configured."""
    return get_llm_client(settings)


__all__ = [
    "get_async_session",
    "get_classifier_client",
    "get_current_user",
    "get_settings",
]
