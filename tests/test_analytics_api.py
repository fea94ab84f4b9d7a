"""Route tests for /api/search/analytics."""

import pytest
from fastapi.testclient import TestClient

from app.core.config import settings
from app.core.exceptions import StorageError
from app.main import app
from app.services.analytics_service import SearchAnalyticsService, get_analytics_service

ADMIN_KEY = "admin-secret"


@pytest.fixture
def client(mock_client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_KEY", ADMIN_KEY)
    app.dependency_overrides[get_analytics_service] = lambda: SearchAnalyticsService(mock_client)
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestTrackEndpoint:
    def test_tracks_and_succeeds(self, client, mock_client):
        response = client.post(
            "/api/search/analytics",
            json={"query": "Sapphire", "resultsCount": 0, "usedFuzzySearch": True, "sessionId": "s-9"},
        )

        assert response.status_code == 200
        assert response.json() == {"success": True}
        row = mock_client.insert.call_args.args[1]
        assert row["search_query"] == "sapphire"
        assert row["used_fuzzy_search"] is True
        assert row["session_id"] == "s-9"

    def test_does_not_attribute_to_header_user(self, client, mock_client):
        client.post(
            "/api/search/analytics",
            json={"query": "ruby", "resultsCount": 1, "usedFuzzySearch": False},
            headers={"X-User-Id": "victim"},
        )

        assert mock_client.insert.call_args.args[1]["user_id"] is None

    def test_succeeds_even_if_write_fails(self, client, mock_client):
        mock_client.insert.side_effect = StorageError("down")

        response = client.post(
            "/api/search/analytics",
            json={"query": "ruby", "resultsCount": 1, "usedFuzzySearch": False},
        )

        assert response.status_code == 200
        assert response.json() == {"success": True}

    @pytest.mark.parametrize(
        "payload",
        [
            {"query": "", "resultsCount": 1, "usedFuzzySearch": False},
            {"query": "ruby", "resultsCount": -1, "usedFuzzySearch": False},
            {"query": "ruby", "resultsCount": 1},
        ],
    )
    def test_invalid_body_is_400(self, client, mock_client, payload):
        response = client.post("/api/search/analytics", json=payload)

        assert response.status_code == 400
        mock_client.insert.assert_not_called()


class TestMetricsEndpoint:
    def test_requires_key(self, client):
        assert client.get("/api/search/analytics").status_code == 401

    def test_rejects_wrong_key(self, client):
        response = client.get("/api/search/analytics", headers={"X-Admin-Key": "nope"})

        assert response.status_code == 403

    def test_returns_metrics(self, client, mock_client):
        mock_client.rpc.return_value = [
            {
                "search_query": "ruby",
                "search_count": 4,
                "avg_results": 3,
                "zero_result_count": 1,
                "fuzzy_usage_count": 2,
            }
        ]

        response = client.get(
            "/api/search/analytics", params={"daysBack": 7}, headers={"X-Admin-Key": ADMIN_KEY}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["totalSearches"] == 4
        assert body["zeroResultPercentage"] == 25
        assert body["fuzzySearchUsage"] == 50
        assert body["zeroResultQueries"] == [{"query": "ruby", "count": 1}]
        assert mock_client.rpc.call_args.args[1] == {"days_back": 7}

    def test_days_back_out_of_range(self, client):
        response = client.get(
            "/api/search/analytics", params={"daysBack": 400}, headers={"X-Admin-Key": ADMIN_KEY}
        )

        assert response.status_code == 400

    def test_rpc_failure_is_500(self, client, mock_client):
        mock_client.rpc.side_effect = StorageError("down")

        response = client.get("/api/search/analytics", headers={"X-Admin-Key": ADMIN_KEY})

        assert response.status_code == 500


class TestTrendsAndHistoryEndpoints:
    def test_trends(self, client, mock_client):
        mock_client.rpc.return_value = []

        response = client.get(
            "/api/search/analytics/trends",
            params={"daysBack": 3, "bucket": "hour"},
            headers={"X-Admin-Key": ADMIN_KEY},
        )

        assert response.status_code == 200
        assert response.json() == []
        assert mock_client.rpc.call_args.args[1] == {"days_back": 3, "time_bucket": "hour"}

    def test_trends_rejects_unknown_bucket(self, client):
        response = client.get(
            "/api/search/analytics/trends", params={"bucket": "month"}, headers={"X-Admin-Key": ADMIN_KEY}
        )

        assert response.status_code == 400

    def test_history(self, client, mock_client):
        mock_client.select.return_value = [
            {
                "search_query": "ruby",
                "results_count": 2,
                "used_fuzzy_search": True,
                "created_at": "2025-10-14T10:00:00+00:00",
            }
        ]

        response = client.get("/api/search/analytics/history/user-1", headers={"X-Admin-Key": ADMIN_KEY})

        assert response.status_code == 200
        assert response.json()[0]["query"] == "ruby"
        assert response.json()[0]["usedFuzzy"] is True

    def test_history_requires_key(self, client):
        assert client.get("/api/search/analytics/history/user-1").status_code == 401
