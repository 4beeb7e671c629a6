"""
HTTP client for the external scoring service.

Provides org-level aggregates for season generation and finalized
per-user scores for the delayed learning path.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from app.config import Settings, get_settings
from app.core.exceptions import ScoringUnavailableError
from app.services.arm_catalog import Dimension

logger = logging.getLogger(__name__)


def _dimension_scores(payload: Dict[str, Any]) -> Dict[str, float]:
    """Pick LU/Q/O numbers out of a score payload, skipping absent ones."""
    scores = {}
    for dimension in Dimension:
        value = payload.get(dimension.value)
        if value is None:
            continue
        try:
            scores[dimension.value] = float(value)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-numeric {dimension.value} score: {value!r}")
    return scores


class ScoringClient:
    """Async client for the scoring service REST API."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        headers = {}
        if self.settings.scoring_api_token:
            headers["Authorization"] = f"Bearer {self.settings.scoring_api_token}"
        self._client = client or httpx.AsyncClient(
            base_url=self.settings.scoring_api_base_url.rstrip("/"),
            headers=headers,
            timeout=self.settings.metrics_timeout_seconds,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = await self._client.get(endpoint, params=params)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ScoringUnavailableError(f"GET {endpoint} failed: {e}") from e

    async def get_aggregate_org_stats(self, period_start: datetime, period_end: datetime) -> Dict[str, float]:
        """Average LU/Q/O scores across the organisation for a period."""
        data = await self._get("/scores/org", {
            "start": period_start.isoformat(),
            "end": period_end.isoformat(),
        })
        return _dimension_scores(data or {})

    async def get_finalized_user_score(
        self,
        user_id: uuid.UUID,
        period_start: datetime,
        period_end: datetime,
    ) -> Optional[Dict[str, float]]:
        """Finalized LU/Q/O scores for one user, or None if not finalized yet."""
        data = await self._get(f"/scores/users/{user_id}", {
            "start": period_start.isoformat(),
            "end": period_end.isoformat(),
        })
        if not data or not data.get("finalized", True):
            return None
        return _dimension_scores(data)

    async def list_scored_users(self, period_start: datetime, period_end: datetime) -> List[uuid.UUID]:
        """Users with a finalized score in the period."""
        data = await self._get("/scores/users", {
            "start": period_start.isoformat(),
            "end": period_end.isoformat(),
        })
        user_ids = []
        for raw in data or []:
            try:
                user_ids.append(uuid.UUID(str(raw)))
            except ValueError:
                logger.warning(f"Skipping malformed user id from scoring service: {raw!r}")
        return user_ids

    async def get_recent_team_activity(self, limit: int = 40) -> List[str]:
        """Most recent free-text activity logs across the team."""
        data = await self._get("/activity/recent", {"limit": limit})
        return [str(entry.get("text", "")) for entry in (data or []) if entry.get("text")]

    async def get_ops_metrics(self, period_start: datetime, period_end: datetime) -> Dict[str, Any]:
        """Operational KPIs for the period: total sales and number of active sites."""
        data = await self._get("/ops/summary", {
            "start": period_start.isoformat(),
            "end": period_end.isoformat(),
        }) or {}
        try:
            return {
                "total_sales": float(data.get("total_sales") or 0),
                "site_count": int(data.get("site_count") or 0),
            }
        except (TypeError, ValueError) as e:
            raise ScoringUnavailableError(f"Malformed ops summary: {data!r}") from e
