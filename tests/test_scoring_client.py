"""
Tests for the scoring service client against a mocked transport.
"""

import uuid
from datetime import datetime

import httpx
import pytest

from app.config import Settings
from app.core.exceptions import ScoringUnavailableError
from app.services.scoring_client import ScoringClient


START = datetime(2026, 3, 1)
END = datetime(2026, 3, 8)


def client_for(handler) -> ScoringClient:
    http = httpx.AsyncClient(base_url="http://scoring.test", transport=httpx.MockTransport(handler))
    return ScoringClient(settings=Settings(), client=http)


class TestScoringClient:

    @pytest.mark.asyncio
    async def test_org_stats(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["start"] = request.url.params["start"]
            return httpx.Response(200, json={"LU": 55, "Q": "71.5", "O": None, "extra": 3})

        client = client_for(handler)
        stats = await client.get_aggregate_org_stats(START, END)
        await client.aclose()

        assert seen["path"] == "/scores/org"
        assert seen["start"] == START.isoformat()
        assert stats == {"LU": 55.0, "Q": 71.5}

    @pytest.mark.asyncio
    async def test_finalized_user_score(self):
        user_id = uuid.uuid4()

        def handler(request):
            assert request.url.path == f"/scores/users/{user_id}"
            return httpx.Response(200, json={"finalized": True, "LU": 40, "Q": 80, "O": 65})

        scores = await client_for(handler).get_finalized_user_score(user_id, START, END)
        assert scores == {"LU": 40.0, "Q": 80.0, "O": 65.0}

    @pytest.mark.asyncio
    async def test_unfinalized_score_is_none(self):
        def handler(request):
            return httpx.Response(200, json={"finalized": False, "Q": 80})

        assert await client_for(handler).get_finalized_user_score(uuid.uuid4(), START, END) is None

    @pytest.mark.asyncio
    async def test_list_scored_users_skips_malformed(self):
        good = uuid.uuid4()

        def handler(request):
            return httpx.Response(200, json=[str(good), "not-a-uuid"])

        assert await client_for(handler).list_scored_users(START, END) == [good]

    @pytest.mark.asyncio
    async def test_recent_team_activity(self):
        def handler(request):
            assert request.url.params["limit"] == "2"
            return httpx.Response(200, json=[{"text": "a"}, {"text": ""}, {"text": "b"}])

        assert await client_for(handler).get_recent_team_activity(limit=2) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        def handler(request):
            return httpx.Response(503, json={"detail": "down"})

        with pytest.raises(ScoringUnavailableError):
            await client_for(handler).get_aggregate_org_stats(START, END)

    @pytest.mark.asyncio
    async def test_bearer_token_header(self):
        client = ScoringClient(settings=Settings(scoring_api_token="secret"))
        assert client._client.headers["Authorization"] == "Bearer secret"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_ops_metrics(self):
        def handler(request):
            assert request.url.path == "/ops/summary"
            assert request.url.params["end"] == END.isoformat()
            return httpx.Response(200, json={"total_sales": "980000", "site_count": 4})

        metrics = await client_for(handler).get_ops_metrics(START, END)
        assert metrics == {"total_sales": 980000.0, "site_count": 4}

    @pytest.mark.asyncio
    async def test_ops_metrics_missing_fields_default_to_zero(self):
        def handler(request):
            return httpx.Response(200, json={})

        assert await client_for(handler).get_ops_metrics(START, END) == {"total_sales": 0.0, "site_count": 0}
