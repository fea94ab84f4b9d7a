"""Search service for gemstone full-text search with fuzzy fallback"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from app.core.config import settings
from app.core.exceptions import (
    FallbackExecutionError,
    SearchExecutionError,
    SearchValidationError,
    StorageError,
)
from app.core.result import Err, Ok, Result
from app.core.supabase import SupabaseClient, get_supabase
from app.schemas.search import (
    AutocompleteSuggestion,
    GemstoneImage,
    Pagination,
    SearchFilters,
    SearchRequest,
    SearchResponse,
    SearchResult,
)
from app.services.query_builder import build_filter_bundle, sanitize_search_query

logger = logging.getLogger(__name__)


@dataclass
class SearchPage:
    """One page of validated rows plus the pre-pagination match count"""

    results: list[SearchResult] = field(default_factory=list)
    total_count: int = 0


def map_search_rows(rows: Any) -> SearchPage:
    """
    Validate raw rows from the search function into ``SearchResult`` records.

    Every row carries the same denormalized ``total_count``; the first row's
    value is the total for the whole result set.

    Raises:
        ValidationError: if a row does not have the expected shape
    """
    if not rows:
        return SearchPage()
    if not isinstance(rows, list):
        raise TypeError(f"Expected a list of rows, got {type(rows).__name__}")

    results = [SearchResult.model_validate(row) for row in rows]
    total_count = int(rows[0].get("total_count") or 0)
    return SearchPage(results=results, total_count=total_count)


def build_pagination(page: int, page_size: int, total_count: int) -> Pagination:
    total_pages = math.ceil(total_count / page_size) if total_count else 0
    return Pagination(
        page=page,
        page_size=page_size,
        total_count=total_count,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )


class SearchService:
    """
    Resolves a search request in strictly ordered stages:

    1. Exact stage: ranked full-text search (ts_rank) with structural filters.
       A failure here is the only search failure a caller ever sees.
    2. Fuzzy stage: only when the exact stage returned no rows AND the query is
       non-empty. Same filters, trigram similarity instead of exact tokens.
       A failure here degrades to the empty exact result.

    Pagination happens in the database; each stage is a single round trip that
    returns one page plus the total match count.
    """

    def __init__(self, client: SupabaseClient):
        self.client = client

    async def search_gemstones(self, request: SearchRequest) -> SearchResponse:
        """
        Execute a search request.

        Args:
            request: Validated search request (empty query = browse mode)

        Returns:
            SearchResponse with one page of results and usedFuzzySearch set
            only when the rows came from the fuzzy stage

        Raises:
            SearchValidationError: page or pageSize out of bounds
            SearchExecutionError: the exact stage failed
        """
        self._validate_paging(request.page, request.page_size)

        query = sanitize_search_query(request.query or "")
        locale = request.locale or settings.DEFAULT_LOCALE

        exact = await self.search_exact(
            query,
            request.filters,
            request.page,
            request.page_size,
            locale=locale,
            search_descriptions=request.search_descriptions,
        )
        page_data = exact
        used_fuzzy = False

        if not exact.results and query:
            logger.info(f"No exact matches for '{query}', trying fuzzy search")
            outcome = await self.search_fuzzy(
                query,
                request.filters,
                request.page,
                request.page_size,
                locale=locale,
                search_descriptions=request.search_descriptions,
            )
            match outcome:
                case Ok(value=fuzzy) if fuzzy.results:
                    logger.info(f"Fuzzy search found {len(fuzzy.results)} results for '{query}'")
                    page_data = fuzzy
                    used_fuzzy = True
                case Err(error=error):
                    logger.error(f"Fuzzy fallback failed, returning exact results: {error}")

        results = await self._attach_images(page_data.results)

        return SearchResponse(
            results=results,
            pagination=build_pagination(request.page, request.page_size, page_data.total_count),
            used_fuzzy_search=used_fuzzy,
        )

    async def search_exact(
        self,
        query: str,
        filters: SearchFilters,
        page: int,
        page_size: int,
        locale: str | None = None,
        search_descriptions: bool = False,
    ) -> SearchPage:
        """Ranked full-text search. Raises SearchExecutionError on any fault."""
        payload = self._rpc_payload(query, build_filter_bundle(filters), page, page_size, locale, search_descriptions)

        try:
            rows = await self.client.rpc(settings.SEARCH_RPC, payload)
            return map_search_rows(rows)
        except StorageError as e:
            logger.error(f"Full-text search error: {e}")
            raise SearchExecutionError(f"Search failed: {e}") from e
        except (ValidationError, TypeError) as e:
            logger.error(f"Full-text search returned malformed rows: {e}")
            raise SearchExecutionError("Search failed: malformed search rows") from e

    async def search_fuzzy(
        self,
        query: str,
        filters: SearchFilters,
        page: int,
        page_size: int,
        locale: str | None = None,
        search_descriptions: bool = False,
    ) -> Result[SearchPage, FallbackExecutionError]:
        """
        Trigram-similarity search over the same filters.

        Never raises: failures come back as ``Err(FallbackExecutionError)``.
        """
        bundle = build_filter_bundle(
            filters,
            use_fuzzy=True,
            similarity_threshold=settings.FUZZY_SIMILARITY_THRESHOLD,
        )
        payload = self._rpc_payload(query, bundle, page, page_size, locale, search_descriptions)

        try:
            rows = await self.client.rpc(settings.SEARCH_RPC, payload)
            return Ok(map_search_rows(rows))
        except Exception as e:
            return Err(FallbackExecutionError(f"Fuzzy search failed: {e}"))

    async def get_suggestions(
        self, query: str, limit: int = 10, locale: str | None = None
    ) -> list[AutocompleteSuggestion]:
        """Autocomplete suggestions from serial numbers, types, colors and origins"""
        try:
            rows = await self.client.rpc(
                settings.AUTOCOMPLETE_RPC,
                {
                    "query": query,
                    "limit_count": limit,
                    "search_locale": locale or settings.DEFAULT_LOCALE,
                },
            )
            return [
                AutocompleteSuggestion(
                    suggestion=row["suggestion"],
                    category=row["category"],
                    relevance=row["relevance"],
                )
                for row in rows or []
            ]
        except StorageError as e:
            logger.error(f"Suggestions error: {e}")
            raise SearchExecutionError(f"Suggestions failed: {e}") from e
        except (ValidationError, KeyError) as e:
            logger.error(f"Suggestions returned malformed rows: {e}")
            raise SearchExecutionError("Suggestions failed: malformed rows") from e

    async def get_health_status(self) -> dict[str, Any]:
        if await self.client.ping():
            return {"status": "healthy", "search_function": settings.SEARCH_RPC}
        return {"status": "unhealthy", "error": "Supabase unreachable"}

    async def _attach_images(self, results: list[SearchResult]) -> list[SearchResult]:
        """
        Fetch images for all results in a single query.

        Results are still returned (without images) if the lookup fails.
        """
        if not results:
            return results

        ids = ",".join(result.id for result in results)
        try:
            rows = await self.client.select(
                settings.IMAGES_TABLE,
                columns="id,gemstone_id,image_url,is_primary,image_order",
                filters={"gemstone_id": f"in.({ids})"},
                order="image_order.asc",
            )
        except StorageError as e:
            logger.error(f"Error fetching images: {e}")
            return results

        images_by_gemstone: dict[str, list[GemstoneImage]] = {}
        for row in rows:
            try:
                image = GemstoneImage.model_validate(row)
            except ValidationError:
                logger.warning(f"Skipping malformed image row {row.get('id')}")
                continue
            images_by_gemstone.setdefault(str(row.get("gemstone_id")), []).append(image)

        return [
            result.model_copy(update={"images": images_by_gemstone.get(result.id, [])}) for result in results
        ]

    @staticmethod
    def _rpc_payload(
        query: str,
        filters: dict[str, Any],
        page: int,
        page_size: int,
        locale: str | None,
        search_descriptions: bool,
    ) -> dict[str, Any]:
        return {
            "search_query": query,
            "effective_locale": locale or settings.DEFAULT_LOCALE,
            "filters": filters,
            "page_number": page,
            "page_size": page_size,
            "description_enabled": search_descriptions,
        }

    @staticmethod
    def _validate_paging(page: int, page_size: int) -> None:
        if page < 1:
            raise SearchValidationError("Invalid page", details={"page": "must be >= 1"})
        if not 1 <= page_size <= settings.MAX_PAGE_SIZE:
            raise SearchValidationError(
                "Invalid pageSize",
                details={"pageSize": f"must be between 1 and {settings.MAX_PAGE_SIZE}"},
            )


def get_search_service() -> SearchService:
    """Build a search service bound to the shared Supabase client"""
    return SearchService(client=get_supabase())
