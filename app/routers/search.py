import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from app.core.config import settings
from app.core.exceptions import SearchExecutionError, SearchValidationError
from app.schemas.search import (
    AutocompleteQuery,
    AutocompleteResponse,
    FuzzySuggestionsQuery,
    FuzzySuggestionsResponse,
    SearchRequest,
    SearchResponse,
)
from app.services.analytics_service import SearchAnalyticsService, get_analytics_service, request_user_id
from app.services.rate_limiter import rate_limit
from app.services.search_service import SearchService, get_search_service
from app.services.suggestion_service import SuggestionService, get_suggestion_service

router = APIRouter(prefix="/search", tags=["search"])
logger = logging.getLogger(__name__)


def resolve_locale(request: Request, explicit: str | None = None) -> str:
    """Body locale, then x-locale header, then the first Accept-Language tag"""
    if explicit:
        return explicit
    header_locale = request.headers.get("x-locale")
    if header_locale:
        return header_locale
    accept_language = request.headers.get("accept-language")
    if accept_language:
        first = accept_language.split(",")[0].strip()[:2]
        if len(first) == 2:
            return first.lower()
    return settings.DEFAULT_LOCALE


def validation_details(error: ValidationError) -> list[dict]:
    return error.errors(include_url=False, include_context=False)


async def _run_search(
    search_request: SearchRequest,
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    search_service: SearchService,
    analytics_service: SearchAnalyticsService,
) -> SearchResponse:
    result = await search_service.search_gemstones(search_request)

    # Tracking runs after the response is sent and cannot fail the request
    if search_request.query and search_request.query.strip():
        background_tasks.add_task(
            analytics_service.track_search,
            query=search_request.query,
            filters=search_request.filters.model_dump(by_alias=True, exclude_none=True),
            results_count=len(result.results),
            used_fuzzy_search=result.used_fuzzy_search,
            user_id=request_user_id(request),
            session_id=request.headers.get("x-session-id"),
        )

    response.headers["Cache-Control"] = settings.SEARCH_CACHE_CONTROL
    return result


@router.post(
    "",
    response_model=SearchResponse,
    dependencies=[Depends(rate_limit("search"))],
)
async def search_gemstones(
    search_request: SearchRequest,
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    search_service: SearchService = Depends(get_search_service),
    analytics_service: SearchAnalyticsService = Depends(get_analytics_service),
):
    """
    Full-text gemstone search with structural filters.

    Stages:

    1. **Exact**: ranked full-text match (Postgres ts_rank) with all filters
    2. **Fuzzy**: only if exact found nothing and the query is non-empty;
       same filters, trigram similarity. `usedFuzzySearch` is true when the
       results come from this stage.

    An empty `query` is browse mode: filters only, never fuzzy.

    Example:
        ```json
        {"query": "ruby 2ct", "page": 1, "pageSize": 24,
         "filters": {"colors": ["red"], "inStockOnly": true}}
        ```
    """
    search_request = search_request.model_copy(
        update={"locale": resolve_locale(request, search_request.locale)}
    )
    return await _run_search(
        search_request, request, response, background_tasks, search_service, analytics_service
    )


@router.get(
    "",
    response_model=SearchResponse,
    dependencies=[Depends(rate_limit("search"))],
)
async def search_gemstones_simple(
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    query: str | None = Query(default=None, max_length=500),
    page: int = Query(default=1),
    page_size: int = Query(default=settings.DEFAULT_PAGE_SIZE, alias="pageSize"),
    search_service: SearchService = Depends(get_search_service),
    analytics_service: SearchAnalyticsService = Depends(get_analytics_service),
):
    """Simple search without filters: `?query=ruby&page=1&pageSize=24`"""
    try:
        search_request = SearchRequest(
            query=query,
            page=page,
            page_size=page_size,
            locale=resolve_locale(request),
        )
    except ValidationError as e:
        raise SearchValidationError("Invalid search parameters", details=validation_details(e)) from e

    return await _run_search(
        search_request, request, response, background_tasks, search_service, analytics_service
    )


@router.get(
    "/fuzzy-suggestions",
    response_model=FuzzySuggestionsResponse,
    dependencies=[Depends(rate_limit("suggestions"))],
)
async def get_fuzzy_suggestions(
    request: Request,
    response: Response,
    query: str = Query(default=""),
    limit: int = Query(default=settings.FUZZY_SUGGESTION_DEFAULT_LIMIT),
    service: SuggestionService = Depends(get_suggestion_service),
):
    """
    "Did you mean?" suggestions for a query that matched nothing.

    `query` must be non-empty, `limit` between 1 and 10 (default 5).
    A failed lookup returns an empty list, never an error.
    """
    try:
        params = FuzzySuggestionsQuery(query=query, limit=limit)
    except ValidationError as e:
        raise SearchValidationError("Invalid suggestion parameters", details=validation_details(e)) from e

    suggestions = await service.get_fuzzy_suggestions(params.query, params.limit, resolve_locale(request))

    response.headers["Cache-Control"] = settings.SUGGESTIONS_CACHE_CONTROL
    return FuzzySuggestionsResponse(suggestions=suggestions)


@router.get(
    "/suggestions",
    response_model=AutocompleteResponse,
    dependencies=[Depends(rate_limit("suggestions"))],
)
async def get_autocomplete_suggestions(
    request: Request,
    response: Response,
    query: str = Query(default=""),
    limit: int = Query(default=10),
    service: SearchService = Depends(get_search_service),
):
    """Autocomplete from serial numbers, types, colors and origins: `?query=rub&limit=10`"""
    try:
        params = AutocompleteQuery(query=query, limit=limit)
    except ValidationError as e:
        raise SearchValidationError("Invalid suggestion parameters", details=validation_details(e)) from e

    try:
        suggestions = await service.get_suggestions(params.query, params.limit, resolve_locale(request))
    except SearchExecutionError as e:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Suggestions Failed", "message": str(e)},
        )

    response.headers["Cache-Control"] = settings.SUGGESTIONS_CACHE_CONTROL
    return AutocompleteResponse(suggestions=suggestions)


@router.get("/health")
async def search_health(service: SearchService = Depends(get_search_service)):
    """Check if the search backend is reachable"""
    try:
        return await service.get_health_status()
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}
