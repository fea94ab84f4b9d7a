import logging
import secrets
from typing import Literal

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Query, Request, status

from app.core.config import settings
from app.core.exceptions import StorageError
from app.schemas.search import AnalyticsMetrics, SearchHistoryEntry, SearchTrend, TrackSearchRequest
from app.services.analytics_service import SearchAnalyticsService, get_analytics_service, request_user_id

router = APIRouter(prefix="/search/analytics", tags=["analytics"])
logger = logging.getLogger(__name__)


def require_admin(x_admin_key: str | None = Header(default=None)) -> None:
    """Admin endpoints take the shared admin key in X-Admin-Key"""
    if not x_admin_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    if not settings.ADMIN_API_KEY or not secrets.compare_digest(x_admin_key, settings.ADMIN_API_KEY):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


@router.post("")
async def track_search(
    body: TrackSearchRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    service: SearchAnalyticsService = Depends(get_analytics_service),
):
    """Track a search from the client. Always succeeds once the body is valid."""
    background_tasks.add_task(
        service.track_search,
        query=body.query,
        filters=body.filters,
        results_count=body.results_count,
        used_fuzzy_search=body.used_fuzzy_search,
        user_id=request_user_id(request),
        session_id=body.session_id,
    )
    return {"success": True}


@router.get("", response_model=AnalyticsMetrics, dependencies=[Depends(require_admin)])
async def get_analytics_metrics(
    days_back: int = Query(default=30, ge=1, le=365, alias="daysBack"),
    service: SearchAnalyticsService = Depends(get_analytics_service),
):
    """Aggregated search metrics for the admin dashboard: `?daysBack=30`"""
    try:
        return await service.get_analytics_metrics(days_back)
    except StorageError as e:
        logger.error(f"Failed to fetch analytics: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch analytics") from e


@router.get("/trends", response_model=list[SearchTrend], dependencies=[Depends(require_admin)])
async def get_search_trends(
    days_back: int = Query(default=30, ge=1, le=365, alias="daysBack"),
    bucket: Literal["hour", "day", "week"] = Query(default="day"),
    service: SearchAnalyticsService = Depends(get_analytics_service),
):
    """Search volume over time: `?daysBack=7&bucket=hour`"""
    try:
        return await service.get_search_trends(days_back, bucket)
    except StorageError as e:
        logger.error(f"Failed to fetch search trends: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch search trends") from e


@router.get(
    "/history/{user_id}",
    response_model=list[SearchHistoryEntry],
    dependencies=[Depends(require_admin)],
)
async def get_user_search_history(
    user_id: str,
    limit: int = Query(default=50, ge=1, le=100),
    service: SearchAnalyticsService = Depends(get_analytics_service),
):
    """Recent searches of one user, newest first"""
    try:
        return await service.get_user_search_history(user_id, limit)
    except StorageError as e:
        logger.error(f"Failed to fetch search history for {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch search history") from e
