# leadengine/adapters/sources/google.py
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

import httpx

from ...config import settings
from ...domain.errors import ProviderError
from ...domain.scoring import PotentialModel, ScoreBand, days_since, recency_bonus
from ...domain.types import LeadCriteria, LeadDraft
from ...models import LeadSource
from ..clients.http_resilience import ResilientHttpClient
from .base import BaseSourceAdapter, UsageReporter, first_str, str_list

_OK_STATUSES = ("OK", "ZERO_RESULTS")
_CORPORATE_SUFFIXES = ("LLC", "Inc", "Inc.", "Ltd", "Ltd.", "Co", "Corp")


def domain_of(website: str | None) -> str:
    if not website:
        return ""
    host = re.sub(r"^https?://", "", website.strip(), flags=re.I)
    host = re.sub(r"^www\.", "", host, flags=re.I)
    return host.split("/")[0].lower()


def owner_name(business_name: str) -> tuple[str, str]:
    """
    Best-effort person name from a business name ("Jane Doe Studio").
    Corporate names fall back to a role placeholder.
    """
    parts = business_name.split()
    if len(parts) < 2 or parts[-1] in _CORPORATE_SUFFIXES:
        return "Business", "Owner"
    return parts[0], " ".join(parts[1:])


class GoogleSourceAdapter(BaseSourceAdapter):
    """
    Maps/Places text search: local businesses as leads. A place without a
    published email gets contact@<domain>, which is not marked verified.
    """

    source = LeadSource.google
    band = ScoreBand(base=60, span=40)

    def __init__(self, *, base_url: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")

    @classmethod
    def from_settings(cls, *, usage: UsageReporter | None = None, http: ResilientHttpClient | None = None) -> "GoogleSourceAdapter":
        return cls(
            base_url=settings.GOOGLE_PLACES_URL,
            credential=settings.GOOGLE_PLACES_API_KEY,
            http=http or ResilientHttpClient.from_settings(),
            usage=usage,
        )

    async def _request(self, criteria: LeadCriteria) -> httpx.Response:
        words = [w for w in (criteria.niche, criteria.industry[0] if criteria.industry else None) if w]
        query = " ".join(words) or "shop"
        if criteria.location:
            query = f"{query} in {criteria.location[0]}"
        params = {"query": query, "key": self.credential}
        return await self.http.request("GET", f"{self.base_url}/textsearch/json", params=params)

    def _extract_records(self, payload: Any) -> list[Any]:
        if not isinstance(payload, dict):
            raise ProviderError(self.source.value, "unexpected payload shape")
        status = payload.get("status")
        if status not in _OK_STATUSES:
            raise ProviderError(self.source.value, f"places status {status}: {payload.get('error_message', '')}")
        return self._records_at(payload, "results")

    def _latest_review_days(self, place: dict[str, Any]) -> float | None:
        times = [r.get("time") for r in place.get("reviews") or [] if isinstance(r, dict) and r.get("time")]
        if not times:
            return None
        latest = datetime.fromtimestamp(max(int(t) for t in times), tz=timezone.utc)
        return days_since(latest, self._now())

    def conversion_potential(self, place: dict[str, Any], criteria: LeadCriteria) -> float:
        rating = float(place.get("rating") or 0)
        reviews = int(place.get("user_ratings_total") or 0)
        category = " ".join(str_list(place.get("types"))).replace("_", " ").lower()
        address = (place.get("formatted_address") or "").lower()

        model = PotentialModel(base=0.05)
        model.add("rating", rating / 5 * 0.2, cap=0.2)
        model.add("reviews", min(reviews / 100, 1) * 0.15, cap=0.15)
        if place.get("website"):
            model.add("website", 0.15, cap=0.15)

        wanted = [i.lower() for i in criteria.industry]
        if criteria.niche:
            wanted.append(criteria.niche.lower())
        if any(w in category or w in (place.get("name") or "").lower() for w in wanted):
            model.add("industry_relevance", 0.15, cap=0.15)
        if any(loc.lower() in address for loc in criteria.location):
            model.add("location_relevance", 0.1, cap=0.1)

        model.add("recency", recency_bonus(self._latest_review_days(place), [(30, 0.1), (180, 0.05)]), cap=0.1)
        return model.total

    def _map_record(self, place: dict[str, Any], criteria: LeadCriteria) -> LeadDraft | None:
        if place.get("business_status") not in (None, "OPERATIONAL"):
            return None

        name = first_str(place.get("name"))
        email = first_str(place.get("email"))
        domain = domain_of(place.get("website"))
        if not email and domain:
            email = f"contact@{domain}"

        potential = self.conversion_potential(place, criteria)
        score = self.band.score(potential)
        if criteria.min_score is not None and score < criteria.min_score:
            return None

        types = str_list(place.get("types"))
        category = types[0].replace("_", " ") if types else ""
        first, last = owner_name(name)
        profiles = {"website": str(place["website"])} if place.get("website") else {}

        return LeadDraft(
            first_name=first,
            last_name=last,
            email=email,
            source=self.source,
            phone=first_str(place.get("formatted_phone_number"), place.get("international_phone_number")) or None,
            company=name or None,
            title="Business Owner",
            industry=category,
            location=first_str(place.get("formatted_address")),
            niche=first_str(criteria.niche),
            tags=frozenset({"google", "maps", *([category.replace(" ", "-")] if category else [])}),
            social_profiles=profiles,
            score=score,
            conversion_potential=potential,
            engagement_rate=0.0,
            verified=bool(place.get("email")),
            fetched_at=self._now(),
        )
