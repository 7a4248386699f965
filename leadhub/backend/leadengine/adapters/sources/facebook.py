# leadengine/adapters/sources/facebook.py
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

SHOPPING_INTERESTS = ("shopping", "online shopping", "e-commerce", "retail", "fashion", "products")


def _field_data(rec: dict[str, Any]) -> dict[str, Any]:
    """
    Lead-ads rows carry answers as [{"name": ..., "values": [...]}].
    Flatten to {name: first value} ("interests" keeps the whole list).
    """
    out: dict[str, Any] = {}
    for item in rec.get("field_data") or []:
        name = str(item["name"]).lower()
        values = item.get("values") or []
        out[name] = values if name == "interests" else (values[0] if values else None)
    return out


class FacebookSourceAdapter(BaseSourceAdapter):
    """
    Facebook lead-ads form submissions via the Graph API. A lead is verified
    when the form carried an email.
    """

    source = LeadSource.facebook
    band = ScoreBand(base=70, span=25)

    def __init__(self, *, graph_url: str, form_id: str | None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.graph_url = graph_url.rstrip("/")
        self.form_id = form_id

    @classmethod
    def from_settings(cls, *, usage: UsageReporter | None = None, http: ResilientHttpClient | None = None) -> "FacebookSourceAdapter":
        return cls(
            graph_url=settings.FACEBOOK_GRAPH_URL,
            form_id=settings.FACEBOOK_LEAD_FORM_ID,
            credential=settings.FACEBOOK_ACCESS_TOKEN,
            http=http or ResilientHttpClient.from_settings(),
            usage=usage,
        )

    async def _request(self, criteria: LeadCriteria) -> httpx.Response:
        if not self.form_id:
            raise ProviderError(self.source.value, "lead form id not configured")
        params = {
            "access_token": self.credential,
            "limit": max(1, criteria.limit),
            "fields": "created_time,field_data,ad_name,campaign_name",
        }
        return await self.http.request("GET", f"{self.graph_url}/{self.form_id}/leads", params=params)

    def _extract_records(self, payload: Any) -> list[Any]:
        return self._records_at(payload, "data")

    def conversion_potential(self, rec: dict[str, Any], fields: dict[str, Any], criteria: LeadCriteria) -> float:
        interests = str_list(fields.get("interests"))
        model = PotentialModel(base=0.2)
        model.add("shopping_interests", 0.1 * keyword_hits(interests, SHOPPING_INTERESTS), cap=0.3)

        days = days_since(rec.get("created_time"), self._now())
        model.add("recency", recency_bonus(days, [(7, 0.2), (30, 0.1)]), cap=0.2)

        terms = niche_terms(criteria.niche, criteria.industry)
        context = [rec.get("ad_name") or "", rec.get("campaign_name") or "", *interests]
        model.add("niche_relevance", 0.05 * keyword_hits(context, terms), cap=0.15)

        engagement = float(rec.get("engagement_score") or 0)
        model.add("engagement", engagement * 0.2, cap=0.2)
        return model.total

    def _map_record(self, rec: dict[str, Any], criteria: LeadCriteria) -> LeadDraft | None:
        fields = _field_data(rec)
        first, last = split_name(fields.get("full_name"))
        email = first_str(fields.get("email"))
        potential = self.conversion_potential(rec, fields, criteria)
        location = ", ".join(p for p in (fields.get("city"), fields.get("country")) if p)

        return LeadDraft(
            first_name=first_str(fields.get("first_name"), first),
            last_name=first_str(fields.get("last_name"), last),
            email=email,
            source=self.source,
            phone=first_str(fields.get("phone_number")) or None,
            company=first_str(fields.get("company_name")) or None,
            title=first_str(fields.get("job_title")) or None,
            industry=first_str(fields.get("industry"), criteria.industry[0] if criteria.industry else None),
            location=location,
            niche=first_str(criteria.niche),
            tags=frozenset({"facebook", "lead-form"}),
            interests=tuple(str_list(fields.get("interests"))),
            score=self.band.score(potential),
            conversion_potential=potential,
            engagement_rate=float(rec.get("engagement_score") or 0),
            verified=bool(email),
            fetched_at=self._now(),
        )
