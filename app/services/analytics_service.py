"""
Search analytics: best-effort event writes and read-side reporting.

Writes never raise into the search path. Aggregation (top queries, zero-result
queries, trend buckets) is done by database functions; this service only
reads their output and derives percentages.
"""

import logging
import math
from typing import Any, Literal

from fastapi import Request
from pydantic import ValidationError

from app.core.config import settings
from app.core.exceptions import AnalyticsWriteError, StorageError
from app.core.result import Err, Ok, Result
from app.core.supabase import SupabaseClient, get_supabase
from app.schemas.search import (
    AnalyticsMetrics,
    AnalyticsSummary,
    SearchHistoryEntry,
    SearchTrend,
    ZeroResultQuery,
)

logger = logging.getLogger(__name__)

TimeBucket = Literal["hour", "day", "week"]


def normalize_query(query: str) -> str:
    """Lowercase and trim, so 'Ruby ' and 'ruby' aggregate as one query"""
    return query.strip().lower()


def request_user_id(request: Request) -> str | None:
    """X-User-Id, honoured only when a trusted gateway sets it"""
    if not settings.TRUST_USER_ID_HEADER:
        return None
    return request.headers.get("x-user-id") or None


def _percent(part: float, whole: float) -> int:
    # Half-up rounding, so 12.5% reports as 13
    return math.floor(part / whole * 100 + 0.5) if whole > 0 else 0


class SearchAnalyticsService:
    def __init__(self, client: SupabaseClient):
        self.client = client

    async def track_search(
        self,
        query: str,
        filters: dict[str, Any] | None,
        results_count: int,
        used_fuzzy_search: bool,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> Result[None, AnalyticsWriteError]:
        """
        Record one completed search. Fire and forget: failures are logged and
        returned as ``Err``, never raised. There is no retry.
        """
        try:
            await self.client.insert(
                settings.ANALYTICS_TABLE,
                {
                    "search_query": normalize_query(query),
                    "filters": filters or None,
                    "results_count": results_count,
                    "used_fuzzy_search": used_fuzzy_search,
                    "user_id": user_id,
                    "session_id": session_id,
                },
            )
        except Exception as e:
            error = AnalyticsWriteError(f"Failed to track search: {e}")
            logger.error(str(error))
            return Err(error)

        return Ok(None)

    async def get_analytics_summary(self, days_back: int = 30) -> list[AnalyticsSummary]:
        """Per-query aggregates over the last ``days_back`` days, most searched first"""
        rows = await self.client.rpc(settings.ANALYTICS_SUMMARY_RPC, {"days_back": days_back})
        return self._validate_rows(AnalyticsSummary, rows, "summary")

    async def get_search_trends(self, days_back: int = 30, bucket: TimeBucket = "day") -> list[SearchTrend]:
        rows = await self.client.rpc(
            settings.ANALYTICS_TRENDS_RPC,
            {"days_back": days_back, "time_bucket": bucket},
        )
        return self._validate_rows(SearchTrend, rows, "trends")

    async def get_analytics_metrics(self, days_back: int = 30) -> AnalyticsMetrics:
        """
        Combine the per-query summary into dashboard metrics.

        Percentages and the per-search average are rounded to whole numbers.
        """
        summary = await self.get_analytics_summary(days_back)

        total_searches = sum(item.search_count for item in summary)
        total_results = sum(item.search_count * item.avg_results for item in summary)
        total_zero = sum(item.zero_result_count for item in summary)
        total_fuzzy = sum(item.fuzzy_usage_count for item in summary)

        zero_result_queries = sorted(
            (
                ZeroResultQuery(query=item.search_query, count=item.zero_result_count)
                for item in summary
                if item.zero_result_count > 0
            ),
            key=lambda item: item.count,
            reverse=True,
        )[:20]

        return AnalyticsMetrics(
            total_searches=total_searches,
            unique_queries=len(summary),
            avg_results_per_search=math.floor(total_results / total_searches + 0.5) if total_searches else 0,
            zero_result_percentage=_percent(total_zero, total_searches),
            fuzzy_search_usage=_percent(total_fuzzy, total_searches),
            top_queries=summary[:50],
            zero_result_queries=zero_result_queries,
        )

    async def get_user_search_history(self, user_id: str, limit: int = 50) -> list[SearchHistoryEntry]:
        """A user's own searches, newest first"""
        rows = await self.client.select(
            settings.ANALYTICS_TABLE,
            columns="search_query,results_count,used_fuzzy_search,created_at",
            filters={"user_id": f"eq.{user_id}"},
            order="created_at.desc",
            limit=limit,
        )
        return [
            SearchHistoryEntry(
                query=row["search_query"],
                results_count=row["results_count"],
                used_fuzzy=bool(row.get("used_fuzzy_search")),
                timestamp=row["created_at"],
            )
            for row in rows
        ]

    @staticmethod
    def _validate_rows(model, rows: Any, label: str) -> list:
        try:
            return [model.model_validate(row) for row in rows or []]
        except ValidationError as e:
            raise StorageError(f"Malformed analytics {label} rows: {e}") from e


def get_analytics_service() -> SearchAnalyticsService:
    return SearchAnalyticsService(client=get_supabase())
