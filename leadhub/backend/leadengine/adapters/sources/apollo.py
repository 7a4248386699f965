# leadengine/adapters/sources/apollo.py
from __future__ import annotations

from typing import Any

import httpx

from ...config import settings
from ...domain.errors import ProviderError
from ...domain.scoring import PotentialModel, ScoreBand, days_since, keyword_hits, niche_terms, recency_bonus
from ...domain.types import LeadCriteria, LeadDraft
from ...models import LeadSource
from ..clients.http_resilience import ResilientHttpClient
from .base import BaseSourceAdapter, UsageReporter, first_str, str_list

# Industries where B2B contacts behave like buyers for consumer goods
CONSUMER_INDUSTRIES = ("retail", "e-commerce", "ecommerce", "consumer", "fashion", "apparel", "beauty", "cosmetics")
BUYER_TITLES = ("buyer", "purchas", "procurement", "merchandis", "category manager")


class ApolloSourceAdapter(BaseSourceAdapter):
    """
    B2B contact graph (Apollo people search).

    Credits: one per contact returned, one per enrichment match.
    """

    source = LeadSource.apollo
    band = ScoreBand(base=60, span=40)

    def __init__(self, *, base_url: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")

    @classmethod
    def from_settings(cls, *, usage: UsageReporter | None = None, http: ResilientHttpClient | None = None) -> "ApolloSourceAdapter":
        return cls(
            base_url=settings.APOLLO_BASE_URL,
            credential=settings.APOLLO_API_KEY,
            http=http or ResilientHttpClient.from_settings(),
            usage=usage,
        )

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Cache-Control": "no-cache",
            "X-Api-Key": self.credential or "",
        }

    async def _request(self, criteria: LeadCriteria) -> httpx.Response:
        keywords = list(criteria.industry)
        if criteria.niche:
            keywords.append(criteria.niche)
        body: dict[str, Any] = {
            "page": 1,
            "per_page": max(1, min(criteria.limit, 100)),
        }
        if criteria.title:
            body["person_titles"] = list(criteria.title)
        if keywords:
            body["q_organization_keyword_tags"] = keywords
        if criteria.location:
            body["person_locations"] = list(criteria.location)

        return await self.http.request("POST", f"{self.base_url}/mixed_people/search", headers=self._headers(), json=body)

    def _extract_records(self, payload: Any) -> list[Any]:
        if isinstance(payload, dict) and "people" not in payload and "contacts" in payload:
            return self._records_at(payload, "contacts")
        return self._records_at(payload, "people")

    def conversion_potential(self, contact: dict[str, Any], criteria: LeadCriteria) -> float:
        title = (contact.get("title") or "").lower()
        industry = self._industry(contact).lower()
        keywords = str_list(contact.get("keywords")) + [industry]

        model = PotentialModel(base=0.1)
        if self._email_verified(contact):
            model.add("verified_email", 0.2, cap=0.2)
        model.add("buyer_title", 0.15 * sum(1 for t in BUYER_TITLES if t in title), cap=0.3)
        if any(i in industry for i in CONSUMER_INDUSTRIES):
            model.add("consumer_industry", 0.2, cap=0.2)

        terms = niche_terms(criteria.niche, criteria.industry)
        model.add("niche_relevance", 0.075 * keyword_hits(keywords, terms), cap=0.15)

        days = days_since(contact.get("last_activity_date") or contact.get("updated_at"), self._now())
        model.add("recency", recency_bonus(days, [(30, 0.15), (90, 0.05)]), cap=0.15)

        # Apollo reports engagement as a percentage
        engagement = float(contact.get("engagement_rate") or 0)
        model.add("engagement", engagement / 100 * 0.3, cap=0.3)
        return model.total

    def _industry(self, contact: dict[str, Any]) -> str:
        org = contact.get("organization") or {}
        return first_str(contact.get("industry"), org.get("industry"))

    def _email_verified(self, contact: dict[str, Any]) -> bool:
        return bool(contact.get("email_verified")) or contact.get("email_status") == "verified"

    def _map_record(self, contact: dict[str, Any], criteria: LeadCriteria) -> LeadDraft | None:
        org = contact.get("organization") or {}
        potential = self.conversion_potential(contact, criteria)
        location = ", ".join(
            p for p in (contact.get("city"), contact.get("state"), contact.get("country")) if p
        )
        engagement = float(contact.get("engagement_rate") or 0) / 100

        profiles = {}
        if contact.get("linkedin_url"):
            profiles["linkedin"] = str(contact["linkedin_url"])

        return LeadDraft(
            first_name=first_str(contact.get("first_name")),
            last_name=first_str(contact.get("last_name")),
            email=first_str(contact.get("email")),
            source=self.source,
            phone=first_str(contact.get("phone"), (contact.get("phone_numbers") or [{}])[0].get("sanitized_number")) or None,
            company=first_str(org.get("name"), contact.get("organization_name")) or None,
            title=first_str(contact.get("title")) or None,
            industry=self._industry(contact),
            location=location,
            niche=first_str(criteria.niche, contact.get("niche")),
            tags=frozenset({"apollo", "b2b"}),
            interests=tuple(str_list(contact.get("keywords"))),
            social_profiles=profiles,
            score=self.band.score(potential),
            conversion_potential=potential,
            engagement_rate=engagement,
            verified=self._email_verified(contact),
            fetched_at=self._now(),
        )

    async def enrich_lead(self, email: str) -> LeadDraft | None:
        """
        Look one contact up by email (people/match). None when Apollo has no match.
        """
        if not self.credential:
            raise ProviderError(self.source.value, "credential not configured")
        payload = await self._call(
            lambda: self.http.request(
                "POST",
                f"{self.base_url}/people/match",
                headers=self._headers(),
                json={"email": email, "reveal_personal_emails": False},
            )
        )
        await self._report_usage(1)

        person = payload.get("person") if isinstance(payload, dict) else None
        if not isinstance(person, dict):
            return None
        draft = self._map_record(person, LeadCriteria(limit=1))
        if draft is None or "@" not in draft.email:
            return None
        return draft.normalized()
