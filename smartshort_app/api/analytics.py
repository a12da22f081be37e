from fastapi import APIRouter, Depends, Query

from smartshort_app.dependencies import get_analytics_service
from smartshort_app.schemas.analytics import GlobalStats, UserStats
from smartshort_app.schemas.short_link import ERROR_RESPONSES, ApiResponse
from smartshort_app.services.analytics_service import AnalyticsService

router = APIRouter(prefix="/analytics", tags=["analytics"], responses=ERROR_RESPONSES)


@router.get("/user/stats", response_model=ApiResponse[UserStats])
async def get_user_stats(
    user_id: str = Query(..., alias="userId", min_length=1),
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    """Dashboard totals for one owner"""
    return ApiResponse(data=await analytics.user_stats(user_id))


@router.get("/global/stats", response_model=ApiResponse[GlobalStats])
async def get_global_stats(analytics: AnalyticsService = Depends(get_analytics_service)):
    """Service-wide totals (public)"""
    return ApiResponse(data=await analytics.global_stats())
