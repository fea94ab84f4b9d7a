from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "Gemstone Search API"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Supabase settings
    SUPABASE_URL: str
    SUPABASE_SERVICE_ROLE_KEY: str
    SUPABASE_TIMEOUT_SECONDS: float = 10.0

    # Database functions and tables
    SEARCH_RPC: str = "search_gemstones_multilingual"
    FUZZY_SUGGESTIONS_RPC: str = "fuzzy_search_suggestions"
    AUTOCOMPLETE_RPC: str = "get_search_suggestions"
    ANALYTICS_SUMMARY_RPC: str = "get_search_analytics_summary"
    ANALYTICS_TRENDS_RPC: str = "get_search_trends"
    ANALYTICS_TABLE: str = "search_analytics"
    IMAGES_TABLE: str = "gemstone_images"

    # Search settings
    DEFAULT_PAGE_SIZE: int = 24
    MAX_PAGE_SIZE: int = 100
    DEFAULT_LOCALE: str = "en"
    FUZZY_SIMILARITY_THRESHOLD: float = 0.3  # pg_trgm similarity() cutoff
    FUZZY_SUGGESTION_DEFAULT_LIMIT: int = 5
    FUZZY_SUGGESTION_MAX_LIMIT: int = 10

    # HTTP cache headers
    SEARCH_CACHE_CONTROL: str = "public, s-maxage=60, stale-while-revalidate=300"
    SUGGESTIONS_CACHE_CONTROL: str = "public, s-maxage=300, stale-while-revalidate=600"

    # Rate limiting (shared Redis counters, empty URL disables)
    REDIS_URL: str = ""
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_REQUESTS: int = 60
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    # Admin analytics endpoints
    ADMIN_API_KEY: str = ""

    # Only set behind a gateway that authenticates users and sets X-User-Id itself
    TRUST_USER_ID_HEADER: bool = False


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
