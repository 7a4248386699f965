# leadengine/adapters/sources/tiktok.py
from __future__ import annotations

from typing import Any

import httpx

from ...config import settings
from ...domain.errors import ProviderError
from ...domain.scoring import PotentialModel, ScoreBand, days_since, keyword_hits, niche_terms, recency_bonus
from ...domain.types import LeadCriteria, LeadDraft
from ...models import LeadSource
from ..clients.http_resilience import ResilientHttpClient
from .base import BaseSourceAdapter, UsageReporter, first_str, split_name, str_list

PRODUCT_CATEGORIES = ("fashion", "beauty", "lifestyle", "tech", "home", "product", "shopping", "unboxing", "haul")


class TikTokSourceAdapter(BaseSourceAdapter):
    """
    Short-video audience search. High baseline purchase intent for consumer
    goods, so the score band sits high and narrow.
    """

    source = LeadSource.tiktok
    band = ScoreBand(base=80, span=15)

    def __init__(self, *, base_url: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")

    @classmethod
    def from_settings(cls, *, usage: UsageReporter | None = None, http: ResilientHttpClient | None = None) -> "TikTokSourceAdapter":
        return cls(
            base_url=settings.TIKTOK_BASE_URL,
            credential=settings.TIKTOK_API_KEY,
            http=http or ResilientHttpClient.from_settings(),
            usage=usage,
        )

    async def _request(self, criteria: LeadCriteria) -> httpx.Response:
        body: dict[str, Any] = {
            "limit": max(1, criteria.limit),
            "content_categories": list(criteria.industry),
            "locations": list(criteria.location),
            "keywords": niche_terms(criteria.niche),
        }
        headers = {"Access-Token": self.credential or "", "Content-Type": "application/json"}
        return await self.http.request("POST", f"{self.base_url}/audience/search", headers=headers, json=body)

    def _extract_records(self, payload: Any) -> list[Any]:
        # TikTok wraps everything: {"code": 0, "message": "OK", "data": {"list": [...]}}
        if not isinstance(payload, dict):
            raise ProviderError(self.source.value, "unexpected payload shape")
        if payload.get("code", 0) != 0:
            raise ProviderError(self.source.value, f"api code {payload.get('code')}: {payload.get('message')}")
        return self._records_at(payload, "data", "list")

    def _days_inactive(self, rec: dict[str, Any]) -> float | None:
        if rec.get("days_since_last_active") is not None:
            return float(rec["days_since_last_active"])
        return days_since(rec.get("last_active_time"), self._now())

    def conversion_potential(self, rec: dict[str, Any], criteria: LeadCriteria) -> float:
        engagement = float(rec.get("engagement_rate") or 0)
        categories = str_list(rec.get("content_categories"))

        model = PotentialModel(base=0.3)
        if engagement > 0.05:
            model.add("engagement", 0.2, cap=0.2)
        elif engagement > 0.03:
            model.add("engagement", 0.1, cap=0.2)

        model.add("product_content", 0.1 * keyword_hits(categories, PRODUCT_CATEGORIES), cap=0.3)
        model.add(
            "niche_relevance",
            0.05 * keyword_hits(categories + [rec.get("primary_category") or ""], niche_terms(criteria.niche, criteria.industry)),
            cap=0.1,
        )
        model.add("recency", recency_bonus(self._days_inactive(rec), [(3, 0.15), (7, 0.1)]), cap=0.15)
        return model.total

    def _map_record(self, rec: dict[str, Any], criteria: LeadCriteria) -> LeadDraft | None:
        first, last = split_name(rec.get("display_name"))
        email = first_str(rec.get("email"))
        potential = self.conversion_potential(rec, criteria)

        profiles = {"tiktok": str(rec["profile_url"])} if rec.get("profile_url") else {}
        if rec.get("instagram_url"):
            profiles["instagram"] = str(rec["instagram_url"])

        return LeadDraft(
            first_name=first,
            last_name=last,
            email=email,
            source=self.source,
            phone=first_str(rec.get("phone")) or None,
            title=first_str(rec.get("occupation")) or None,
            industry=first_str(rec.get("primary_category")),
            location=first_str(rec.get("location")),
            niche=first_str(criteria.niche, rec.get("niche")),
            tags=frozenset({"tiktok", "high-intent", *str_list(rec.get("tags"))}),
            interests=tuple(str_list(rec.get("content_categories"))),
            social_profiles=profiles,
            score=self.band.score(potential),
            conversion_potential=potential,
            engagement_rate=float(rec.get("engagement_rate") or 0),
            verified=bool(email),
            fetched_at=self._now(),
        )
