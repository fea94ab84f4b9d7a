"""Did-you-mean suggestions for searches that matched nothing"""

import logging

from app.core.config import settings
from app.core.exceptions import SuggestionLookupError
from app.core.result import Err, Ok, Result
from app.core.supabase import SupabaseClient, get_supabase
from app.schemas.search import FuzzySuggestion

logger = logging.getLogger(__name__)


class SuggestionService:
    """
    Ranks known field values (names, colors, cuts, clarities) against a query
    by trigram similarity.

    This returns alternate query strings, not products. It is the recovery path
    for requests where both the exact and the fuzzy search stage came back
    empty, and it fails silent: a failed lookup looks like "no suggestions".
    """

    def __init__(self, client: SupabaseClient, similarity_threshold: float = settings.FUZZY_SIMILARITY_THRESHOLD):
        self.client = client
        self.similarity_threshold = similarity_threshold

    async def lookup(
        self, query: str, limit: int = settings.FUZZY_SUGGESTION_DEFAULT_LIMIT, locale: str | None = None
    ) -> Result[list[FuzzySuggestion], SuggestionLookupError]:
        try:
            rows = await self.client.rpc(
                settings.FUZZY_SUGGESTIONS_RPC,
                {
                    "search_term": query,
                    "suggestion_limit": limit,
                    "search_locale": locale or settings.DEFAULT_LOCALE,
                },
            )
            suggestions = [
                FuzzySuggestion(
                    suggestion=row["suggestion"],
                    score=row["similarity_score"],
                    type=row["match_type"],
                )
                for row in rows or []
            ]
        except Exception as e:
            return Err(SuggestionLookupError(f"Fuzzy suggestions failed: {e}"))

        # Strictly greater, as in the SQL function
        suggestions = [s for s in suggestions if s.score > self.similarity_threshold]
        suggestions.sort(key=lambda s: s.score, reverse=True)
        return Ok(suggestions[:limit])

    async def get_fuzzy_suggestions(
        self, query: str, limit: int = settings.FUZZY_SUGGESTION_DEFAULT_LIMIT, locale: str | None = None
    ) -> list[FuzzySuggestion]:
        """
        Get "did you mean" suggestions.

        Args:
            query: The search text that matched nothing
            limit: Maximum number of suggestions
            locale: Locale for translated field values

        Returns:
            Suggestions sorted by score (descending), or [] if the lookup failed
        """
        outcome = await self.lookup(query, limit, locale)
        if isinstance(outcome, Err):
            logger.error(f"Fuzzy suggestions error: {outcome.error}")
        return outcome.unwrap_or([])


def get_suggestion_service() -> SuggestionService:
    return SuggestionService(client=get_supabase())
