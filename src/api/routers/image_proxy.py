"""Image relay for thumbnails behind hotlink protection."""
from fastapi import APIRouter, Depends, HTTPException, Query, Response

from api.dependencies import get_settings
from core.config import Settings
from services.url_scraper import fetch_image

router = APIRouter(tags=["image-proxy"])

IMAGE_CACHE_CONTROL = "public, max-age=31536000, immutable"


@router.get("/image-proxy")
async def proxy_image(
    url: str = Query(min_length=1, description="Absolute URL of the image to relay"),
    settings: Settings = Depends(get_settings),
) -> Response:
    """
    Fetch an image with a Referer its CDN accepts and relay the bytes.

    Public: browsers request thumbnails through ``<img>`` tags, which carry no
    bearer token. Private and loopback addresses are refused.
    """
    result = await fetch_image(url, timeout=settings.scrape_timeout)
    if result.content is None:
        raise HTTPException(status_code=result.status_code, detail=result.error)
    return Response(
        content=result.content,
        media_type=result.content_type,
        headers={
            "Cache-Control": IMAGE_CACHE_CONTROL,
            "Access-Control-Allow-Origin": "*",
        },
    )
