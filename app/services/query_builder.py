"""
Query construction for the Postgres full-text search functions.

Pure functions only: identical input always yields identical output, so the
same request can be cached and asserted on in tests.
"""

import re
from typing import Any

from app.schemas.search import SearchFilters

# Characters with meaning in tsquery syntax
_TSQUERY_SPECIAL = re.compile(r"[<>&|!()]")

# Weight tiers of the search vector: A = serial number, B = name/type,
# C = color/origin, D = description
FIRST_TERM_WEIGHT = "A"
OTHER_TERM_WEIGHT = "B"


def sanitize_search_query(query: str) -> str:
    """
    Strip characters that would break a tsquery, then trim.

    No length or content validation happens here.

    Example: "ruby<script>" -> "rubyscript"
    """
    return _TSQUERY_SPECIAL.sub("", query).strip()


def build_weighted_search_query(query: str) -> str:
    """
    Build a weighted tsquery expression from free text.

    The first term gets the highest weight, every following term the shared
    lower weight, and terms are AND-ed together.

    Example: "ruby 2ct" -> "ruby:A & 2ct:B"
    """
    terms = sanitize_search_query(query).split()
    if not terms:
        return ""

    return " & ".join(
        f"{term}:{FIRST_TERM_WEIGHT if index == 0 else OTHER_TERM_WEIGHT}" for index, term in enumerate(terms)
    )


def build_filter_bundle(
    filters: SearchFilters,
    use_fuzzy: bool = False,
    similarity_threshold: float | None = None,
) -> dict[str, Any]:
    """
    Convert structural filters into the jsonb bundle the search function reads.

    Keys use the camelCase names the database function expects
    (minPrice, gemstoneTypes, hasAIAnalysis, ...). Unset filters and empty
    lists are omitted. The fuzzy stage reuses the same bundle with the
    ``useFuzzy`` mode switch on.
    """
    bundle = {
        key: value
        for key, value in filters.model_dump(by_alias=True, exclude_none=True).items()
        if value != []
    }

    if use_fuzzy:
        bundle["useFuzzy"] = True
        if similarity_threshold is not None:
            bundle["similarityThreshold"] = similarity_threshold

    return bundle
