from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, status

from smartshort_app.dependencies import get_allocation_service, get_analytics_service, get_analyzer, get_url_service
from smartshort_app.enrichment.analyzer import MetadataAnalyzer, enrich_or_default
from smartshort_app.exceptions import ValidationFailed
from smartshort_app.schemas.analytics import LinkStats
from smartshort_app.schemas.short_link import (
    ApiResponse,
    BulkDeleteRequest,
    CreatedResponse,
    CreationMetadata,
    ERROR_RESPONSES,
    MessageResponse,
    OwnerRequest,
    PaginatedResponse,
    Pagination,
    ShortLinkCreate,
    ShortLinkResponse,
    ShortLinkUpdate,
)
from smartshort_app.services.allocation_service import AllocationOptions, AllocationService
from smartshort_app.services.analytics_service import AnalyticsService
from smartshort_app.services.url_service import URLService
from smartshort_app.services.validation import validate_original_url

router = APIRouter(prefix="/urls", tags=["urls"], responses=ERROR_RESPONSES)


def _page(links, pagination) -> PaginatedResponse:
    return PaginatedResponse(
        data=[ShortLinkResponse.model_validate(link) for link in links],
        pagination=Pagination(**pagination),
    )


@router.post("/create", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_short_url(
    payload: ShortLinkCreate,
    allocation: AllocationService = Depends(get_allocation_service),
    url_service: URLService = Depends(get_url_service),
    analyzer: MetadataAnalyzer = Depends(get_analyzer),
):
    """
    Create a new short URL.

    Metadata enrichment is time-bounded and optional: on timeout or error
    the link is created with caller-supplied or URL-derived metadata.
    """
    # Reject bad input before spending enrichment time on it
    original_url = validate_original_url(payload.original_url)

    metadata = await enrich_or_default(analyzer, original_url, payload.title, payload.description)
    link = await allocation.allocate(
        original_url,
        payload.user_id,
        AllocationOptions(
            custom_alias=payload.custom_alias,
            title=metadata.title,
            description=metadata.description,
            keywords=metadata.keywords,
            preview_image=metadata.preview_image,
            expires_at=payload.expires_at,
        ),
    )
    url_service.notify_created(link)

    return CreatedResponse(
        data=ShortLinkResponse.model_validate(link),
        metadata=CreationMetadata(suggested_alias=metadata.suggested_alias, category=metadata.category),
    )


@router.get("/user", response_model=PaginatedResponse)
async def get_user_urls(
    user_id: str = Query(..., alias="userId", min_length=1),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    sort: str = Query("createdAt"),
    order: str = Query("desc"),
    filter: str = Query("all"),
    url_service: URLService = Depends(get_url_service),
):
    """Paginated list of the owner's links"""
    links, pagination = await url_service.get_user_urls(user_id, page, limit, sort, order, filter)
    return _page(links, pagination)


@router.get("/search", response_model=PaginatedResponse)
async def search_urls(
    user_id: str = Query(..., alias="userId", min_length=1),
    q: str = Query(...),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    url_service: URLService = Depends(get_url_service),
):
    """Case-insensitive search over the owner's links"""
    links, pagination = await url_service.search_urls(user_id, q, page, limit)
    return _page(links, pagination)


@router.get("/top/list", response_model=ApiResponse[list[ShortLinkResponse]])
async def get_top_urls(
    limit: int = Query(10, ge=1),
    url_service: URLService = Depends(get_url_service),
):
    """Most clicked active links (public)"""
    links = await url_service.get_top_urls(limit)
    return ApiResponse(data=[ShortLinkResponse.model_validate(link) for link in links])


@router.delete("/bulk/delete", response_model=MessageResponse)
async def bulk_delete_urls(
    payload: BulkDeleteRequest,
    url_service: URLService = Depends(get_url_service),
):
    deleted = await url_service.bulk_delete(payload.url_ids, payload.user_id)
    return MessageResponse(message=f"Deleted {deleted} URLs")


@router.get("/{url_id}", response_model=ApiResponse[ShortLinkResponse])
async def get_url_details(
    url_id: str,
    user_id: str = Query(..., alias="userId", min_length=1),
    url_service: URLService = Depends(get_url_service),
):
    link = await url_service.get_owned(url_id, user_id)
    return ApiResponse(data=ShortLinkResponse.model_validate(link))


@router.get("/{url_id}/stats", response_model=ApiResponse[LinkStats])
async def get_url_stats(
    url_id: str,
    user_id: str = Query(..., alias="userId", min_length=1),
    url_service: URLService = Depends(get_url_service),
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    """Click statistics for one link"""
    link = await url_service.get_owned(url_id, user_id)
    return ApiResponse(data=await analytics.link_stats(link))


@router.put("/{url_id}", response_model=ApiResponse[ShortLinkResponse])
async def update_url(
    url_id: str,
    payload: ShortLinkUpdate,
    url_service: URLService = Depends(get_url_service),
):
    """Update title, description, alias, expiry, keywords, preview image or active flag"""
    changes = payload.model_dump(include=payload.model_fields_set - {"user_id"})
    link = await url_service.update_url(url_id, payload.user_id, changes)
    return ApiResponse(data=ShortLinkResponse.model_validate(link))


@router.delete("/{url_id}", response_model=MessageResponse)
async def delete_url(
    url_id: str,
    payload: Optional[OwnerRequest] = Body(None),
    user_id: Optional[str] = Query(None, alias="userId"),
    url_service: URLService = Depends(get_url_service),
):
    """Hard delete (owner-scoped); userId in the body or the query string"""
    owner_id = payload.user_id if payload else user_id
    if not owner_id:
        raise ValidationFailed("User id is required")
    await url_service.delete_url(url_id, owner_id)
    return MessageResponse(message="URL deleted successfully")
