"""URL metadata preview endpoint."""
from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_current_user, get_settings
from core.config import Settings
from models.user import User
from schemas.metadata import MetadataRequest, MetadataResponse
from services.exceptions import InvalidUrlError
from services.url_scraper import fetch_metadata

router = APIRouter(tags=["metadata"])


@router.post("/fetch-metadata", response_model=MetadataResponse)
async def fetch_url_metadata(
    data: MetadataRequest,
    _current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> MetadataResponse:
    """
    Fetch title, description and thumbnail for a URL without saving anything.

    Scraping failures never produce an error response: the result falls back to
    the hostname and a generated thumbnail, with ``needs_manual_edit`` set.
    Only a missing or unparsable URL is rejected.
    """
    try:
        result = await fetch_metadata(data.url, settings)
    except InvalidUrlError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return MetadataResponse(
        title=result.title,
        description=result.description,
        thumbnail=result.thumbnail,
        platform=result.platform,
        needs_manual_edit=result.needs_manual_edit,
    )
