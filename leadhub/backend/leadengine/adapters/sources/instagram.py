# leadengine/adapters/sources/instagram.py
from __future__ import annotations

from typing import Any

import httpx

from ...config import settings
from ...domain.scoring import PotentialModel, ScoreBand, days_since, niche_terms, recency_bonus
from ...domain.types import LeadCriteria, LeadDraft
from ...models import LeadSource
from ..clients.http_resilience import ResilientHttpClient
from .base import BaseSourceAdapter, UsageReporter, first_str, split_name, str_list

NICHE_HASHTAGS: dict[str, list[str]] = {
    "fashion": ["fashion", "style", "clothing", "outfit", "ootd", "fashionista", "streetwear", "fashionblogger"],
    "beauty": ["beauty", "makeup", "skincare", "cosmetics", "beautyproducts", "beautycare", "skincareroutine"],
    "home": ["home", "homedecor", "interior", "homestyle", "furniture", "interiordesign", "homeaccessories"],
    "electronics": ["tech", "electronics", "gadgets", "smartphone", "technology", "innovation", "devices"],
    "fitness": ["fitness", "workout", "gym", "exercise", "fitnessmotivation", "health", "training"],
    "jewelry": ["jewelry", "accessories", "necklace", "bracelet", "rings", "earrings", "jewels"],
    "pets": ["pets", "dog", "cat", "petcare", "petproducts", "doglovers", "catlovers", "petaccessories"],
    "toys": ["toys", "kids", "children", "play", "games", "educational", "toddler"],
}
GENERIC_HASHTAGS = ["ecommerce", "onlineshopping", "shopping", "retail", "business", "entrepreneur", "products", "dropshipping"]


def hashtags_for(niche: str | None) -> list[str]:
    n = (niche or "").lower()
    for key, tags in NICHE_HASHTAGS.items():
        if key in n:
            return tags
    return GENERIC_HASHTAGS


class InstagramSourceAdapter(BaseSourceAdapter):
    """
    Business-account discovery. Engagement matters more than follower count.
    Only a published business email marks a lead verified.
    """

    source = LeadSource.instagram
    band = ScoreBand(base=65, span=30)

    def __init__(self, *, base_url: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")

    @classmethod
    def from_settings(cls, *, usage: UsageReporter | None = None, http: ResilientHttpClient | None = None) -> "InstagramSourceAdapter":
        return cls(
            base_url=settings.INSTAGRAM_BASE_URL,
            credential=settings.INSTAGRAM_ACCESS_TOKEN,
            http=http or ResilientHttpClient.from_settings(),
            usage=usage,
        )

    async def _request(self, criteria: LeadCriteria) -> httpx.Response:
        params: dict[str, Any] = {"access_token": self.credential, "limit": max(1, criteria.limit)}
        query = criteria.niche or (criteria.industry[0] if criteria.industry else "")
        if query:
            params["q"] = query
        if criteria.location:
            params["location"] = criteria.location[0]
        return await self.http.request("GET", f"{self.base_url}/business_discovery/search", params=params)

    def _extract_records(self, payload: Any) -> list[Any]:
        return self._records_at(payload, "data")

    def conversion_potential(self, profile: dict[str, Any], criteria: LeadCriteria) -> float:
        followers = int(profile.get("followers_count") or 0)
        engagement = float(profile.get("engagement") or 0)
        posts = [p for p in profile.get("recent_media") or [] if isinstance(p, dict)]

        model = PotentialModel(base=0.05)
        model.add("reach", min(followers / 10000, 1) * 0.15, cap=0.15)
        if followers > 0:
            model.add("engagement", min(engagement / followers * 100, 1) * 0.3, cap=0.3)
        if profile.get("is_business_account"):
            model.add("business_account", 0.1, cap=0.1)
        if profile.get("is_verified"):
            model.add("verified_account", 0.05, cap=0.05)

        wanted = hashtags_for(criteria.niche)
        tags = [t.lower().lstrip("#") for p in posts for t in str_list(p.get("hashtags"))]
        model.add("hashtag_relevance", min(sum(1 for t in tags if t in wanted) / 5, 1) * 0.2, cap=0.2)

        terms = niche_terms(criteria.niche, criteria.industry)
        bio_words = (profile.get("biography") or "").lower().split()
        if terms:
            matched = sum(1 for t in terms if any(t in w for w in bio_words))
            model.add("bio_relevance", matched / len(terms) * 0.1, cap=0.1)

        latest = min((d for d in (days_since(p.get("timestamp"), self._now()) for p in posts) if d is not None), default=None)
        model.add("recency", recency_bonus(latest, [(7, 0.1), (30, 0.05)]), cap=0.1)
        return model.total

    def _map_record(self, profile: dict[str, Any], criteria: LeadCriteria) -> LeadDraft | None:
        first, last = split_name(profile.get("full_name") or profile.get("name"))
        business_email = first_str(profile.get("business_email"))
        email = first_str(business_email, profile.get("email"))
        followers = int(profile.get("followers_count") or 0)
        engagement = float(profile.get("engagement") or 0)
        potential = self.conversion_potential(profile, criteria)

        username = first_str(profile.get("username"))
        tags = {"instagram"}
        if profile.get("is_business_account"):
            tags.add("business-account")
        if profile.get("is_verified"):
            tags.add("verified-account")

        return LeadDraft(
            first_name=first or username,
            last_name=last,
            email=email,
            source=self.source,
            phone=first_str(profile.get("business_phone_number")) or None,
            company=first_str(profile.get("business_name")) or None,
            title=first_str(profile.get("business_category")) or None,
            industry=first_str(profile.get("business_category"), profile.get("category")),
            location=first_str(profile.get("city"), profile.get("location")),
            niche=first_str(criteria.niche),
            tags=frozenset(tags),
            interests=tuple(hashtags_for(criteria.niche)[:3]) if criteria.niche else (),
            social_profiles={"instagram": f"https://instagram.com/{username}"} if username else {},
            score=self.band.score(potential),
            conversion_potential=potential,
            engagement_rate=min(1.0, engagement / followers) if followers else 0.0,
            verified=bool(business_email),
            fetched_at=self._now(),
        )
