from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from app.core.config import settings


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Search request
# ============================================================================


class SearchFilters(CamelModel):
    """Structural filters: OR within a field, AND across fields"""

    gemstone_types: list[str] | None = None
    colors: list[str] | None = None
    cuts: list[str] | None = None
    clarities: list[str] | None = None
    origins: list[str] | None = None

    # Price bounds in minor currency units (cents)
    min_price: int | None = Field(default=None, ge=0)
    max_price: int | None = Field(default=None, ge=0)

    # Weight bounds in carats
    min_weight: float | None = Field(default=None, ge=0)
    max_weight: float | None = Field(default=None, ge=0)

    in_stock_only: bool | None = None
    has_images: bool | None = None
    has_certification: bool | None = None
    has_ai_analysis: bool | None = Field(default=None, alias="hasAIAnalysis")

    @model_validator(mode="after")
    def check_ranges(self):
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise ValueError("minPrice must not exceed maxPrice")
        if self.min_weight is not None and self.max_weight is not None and self.min_weight > self.max_weight:
            raise ValueError("minWeight must not exceed maxWeight")
        return self


class SearchRequest(CamelModel):
    """Full-text search request. An empty query means browse mode (filters only)."""

    query: str | None = Field(default=None, max_length=500)
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE)
    filters: SearchFilters = Field(default_factory=SearchFilters)
    locale: str | None = Field(default=None, min_length=2, max_length=2)
    search_descriptions: bool = False


# ============================================================================
# Search response
# ============================================================================


class GemstoneImage(CamelModel):
    id: str
    image_url: str
    is_primary: bool = False
    image_order: int | None = None


class SearchResult(CamelModel):
    """One matching gemstone. relevance_score only ranks rows within one response."""

    id: str
    serial_number: str
    name: str
    color: str | None = None
    cut: str | None = None
    clarity: str | None = None
    origin_id: str | None = None
    weight_carats: float
    price_amount: int
    price_currency: str
    description: str | None = None
    in_stock: bool = False
    quantity: int = 0
    has_certification: bool = False
    has_ai_analysis: bool = False
    metadata_status: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    relevance_score: float = 0.0
    images: list[GemstoneImage] = Field(default_factory=list)

    @field_validator(
        "in_stock", "quantity", "has_certification", "has_ai_analysis", "relevance_score", mode="before"
    )
    @classmethod
    def null_as_default(cls, value, info):
        # Nullable columns come back as NULL; treat them as the field default
        if value is None:
            return cls.model_fields[info.field_name].default
        return value


class Pagination(CamelModel):
    page: int
    page_size: int
    total_count: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class SearchResponse(CamelModel):
    results: list[SearchResult]
    pagination: Pagination
    used_fuzzy_search: bool = False


# ============================================================================
# Suggestions
# ============================================================================


class FuzzySuggestion(BaseModel):
    """Did-you-mean candidate, ordered by score descending"""

    suggestion: str
    score: float = Field(..., ge=0, le=1)
    type: str


class FuzzySuggestionsQuery(BaseModel):
    query: str = Field(..., min_length=1)
    limit: int = Field(
        default=settings.FUZZY_SUGGESTION_DEFAULT_LIMIT,
        ge=1,
        le=settings.FUZZY_SUGGESTION_MAX_LIMIT,
    )


class FuzzySuggestionsResponse(BaseModel):
    suggestions: list[FuzzySuggestion]


class AutocompleteSuggestion(BaseModel):
    """Autocomplete entry from serial numbers, types, colors, cuts and clarities"""

    suggestion: str
    category: Literal["serial_number", "type", "color", "cut", "clarity", "origin"]
    relevance: float


class AutocompleteQuery(BaseModel):
    query: str = Field(..., min_length=1, max_length=100)
    limit: int = Field(default=10, ge=1, le=20)


class AutocompleteResponse(BaseModel):
    suggestions: list[AutocompleteSuggestion]


# ============================================================================
# Analytics
# ============================================================================


class TrackSearchRequest(CamelModel):
    query: str = Field(..., min_length=1, max_length=500)
    filters: dict[str, Any] | None = None
    results_count: int = Field(..., ge=0)
    used_fuzzy_search: bool
    session_id: str | None = None


class AnalyticsSummary(BaseModel):
    """One row of the per-query aggregation"""

    search_query: str
    search_count: int
    avg_results: float
    zero_result_count: int
    fuzzy_usage_count: int


class SearchTrend(BaseModel):
    time_bucket: datetime
    search_count: int
    avg_results: float
    zero_result_count: int
    fuzzy_usage_count: int


class ZeroResultQuery(BaseModel):
    query: str
    count: int


class AnalyticsMetrics(CamelModel):
    total_searches: int
    unique_queries: int
    avg_results_per_search: int
    zero_result_percentage: int
    fuzzy_search_usage: int
    top_queries: list[AnalyticsSummary]
    zero_result_queries: list[ZeroResultQuery]


class SearchHistoryEntry(CamelModel):
    query: str
    results_count: int
    used_fuzzy: bool
    timestamp: datetime
