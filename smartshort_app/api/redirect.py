from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse

from smartshort_app.config import settings
from smartshort_app.dependencies import get_resolution_service
from smartshort_app.schemas.short_link import ErrorResponse
from smartshort_app.services.resolution_service import ClickContext, ResolutionService

router = APIRouter(tags=["redirect"], responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}})


def client_ip(request: Request) -> Optional[str]:
    """
    The visitor address.

    X-Forwarded-For is honored only when the direct peer is one of
    settings.trusted_proxies; anyone else could put any address in it.
    """
    peer = request.client.host if request.client else None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and peer in settings.trusted_proxies:
        return forwarded.split(",")[0].strip() or peer
    return peer


def click_context(request: Request) -> ClickContext:
    """Visitor metadata for the click history (geo from Cloudflare headers)."""
    headers = request.headers
    ip = client_ip(request)
    return ClickContext(
        ip=ip,
        user_agent=headers.get("user-agent"),
        referrer=headers.get("referer"),
        country=headers.get("cf-ipcountry"),
        city=headers.get("cf-ipcity"),
    )


@router.get("/r/{short_code}")
async def redirect_to_original_url(
    short_code: str,
    request: Request,
    resolution_service: ResolutionService = Depends(get_resolution_service),
):
    """
    Redirect to the original URL.

    Flow:
    1. One atomic UPDATE checks the link is live and counts the click
    2. The click is appended to the capped history in the same transaction
    3. The "link resolved" event is dispatched in the background
    4. Redirect (302)

    Unknown, deactivated and expired codes all get the same 404.
    """
    resolution = await resolution_service.resolve_and_record(short_code, click_context(request))
    return RedirectResponse(url=resolution.original_url, status_code=status.HTTP_302_FOUND)
