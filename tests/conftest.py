"""Pytest configuration for the search API tests."""

import os

# Settings are read at import time; give them a harmless environment
os.environ.setdefault("SUPABASE_URL", "http://supabase.test")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("REDIS_URL", "")

from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402


def make_row(
    index: int = 1,
    total_count: int = 1,
    relevance_score: float = 0.5,
    **overrides,
) -> dict:
    """A row as returned by the search function"""
    row = {
        "id": f"00000000-0000-0000-0000-{index:012d}",
        "serial_number": f"RUB-{index:03d}",
        "name": "ruby",
        "color": "red",
        "cut": "round",
        "clarity": "VS1",
        "weight_carats": 2.5,
        "price_amount": 500000,
        "price_currency": "USD",
        "description": "Pigeon blood ruby",
        "in_stock": True,
        "quantity": 1,
        "origin_id": None,
        "has_certification": True,
        "has_ai_analysis": False,
        "metadata_status": "complete",
        "created_at": "2025-01-01T00:00:00Z",
        "updated_at": "2025-01-01T00:00:00Z",
        "relevance_score": relevance_score,
        "total_count": total_count,
    }
    row.update(overrides)
    return row


def make_rows(count: int, total_count: int | None = None, start: int = 1) -> list[dict]:
    total = count if total_count is None else total_count
    return [make_row(index=i, total_count=total) for i in range(start, start + count)]


@pytest.fixture
def mock_client():
    """A SupabaseClient stand-in with async methods"""
    client = MagicMock()
    client.rpc = AsyncMock(return_value=[])
    client.select = AsyncMock(return_value=[])
    client.insert = AsyncMock(return_value=None)
    client.ping = AsyncMock(return_value=True)
    return client


class FakeKeyValueStore:
    """In-memory KeyValueStore with Redis INCR/EXPIRE/TTL semantics (no clock)"""

    def __init__(self):
        self.counters: dict[str, int] = {}
        self.expiries: dict[str, int] = {}

    async def incr(self, key: str) -> int:
        self.counters[key] = self.counters.get(key, 0) + 1
        return self.counters[key]

    async def expire(self, key: str, seconds: int) -> bool:
        self.expiries[key] = seconds
        return True

    async def ttl(self, key: str) -> int:
        if key not in self.counters:
            return -2
        return self.expiries.get(key, -1)


@pytest.fixture
def kv_store():
    return FakeKeyValueStore()
