from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from typing import Any, Mapping

from ..models import LeadSource

MAX_CONVERSION_POTENTIAL = 0.95


def _as_tuple(value: Any) -> tuple[str, ...]:
    if value is None or value == "":
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value if v not in (None, ""))


@dataclass(frozen=True)
class LeadCriteria:
    """
    Query shape shared by the store, the aggregation service and the adapters.

    industry/location are multi-valued for adapters; the store only honours the
    first element of each.
    """
    niche: str | None = None
    industry: tuple[str, ...] = ()
    location: tuple[str, ...] = ()
    sources: tuple[LeadSource, ...] = ()
    title: tuple[str, ...] = ()
    min_score: int | None = None
    limit: int = 50

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], **overrides: Any) -> "LeadCriteria":
        """
        Build criteria from a stored fetch_criteria blob.
        Accepts snake_case and the camelCase keys older configs were saved with.
        """
        min_score = data.get("min_score", data.get("minScore"))
        kwargs: dict[str, Any] = {
            "niche": data.get("niche") or None,
            "industry": _as_tuple(data.get("industry")),
            "location": _as_tuple(data.get("location")),
            "sources": tuple(LeadSource(s) for s in _as_tuple(data.get("sources", data.get("source")))),
            "title": _as_tuple(data.get("title")),
            "min_score": int(min_score) if min_score is not None else None,
        }
        if data.get("limit") is not None:
            kwargs["limit"] = int(data["limit"])
        kwargs.update(overrides)
        return cls(**kwargs)

    def as_dict(self) -> dict[str, Any]:
        return {
            "niche": self.niche,
            "industry": list(self.industry),
            "location": list(self.location),
            "sources": sorted(s.value for s in self.sources),
            "title": list(self.title),
            "min_score": self.min_score,
            "limit": self.limit,
        }

    def fingerprint(self) -> str:
        """Stable serialization used as the read-cache key."""
        return json.dumps(self.as_dict(), sort_keys=True, separators=(",", ":"))

    def with_limit(self, limit: int) -> "LeadCriteria":
        return replace(self, limit=limit)


@dataclass(frozen=True)
class LeadDraft:
    """
    A lead as produced by a source adapter: scored, not yet persisted, no id.
    """
    first_name: str
    last_name: str
    email: str
    source: LeadSource
    phone: str | None = None
    company: str | None = None
    title: str | None = None
    industry: str = ""
    location: str = ""
    niche: str = ""
    tags: frozenset[str] = frozenset()
    interests: tuple[str, ...] = ()
    social_profiles: Mapping[str, str] = field(default_factory=dict)
    score: int = 0
    conversion_potential: float = 0.0
    engagement_rate: float = 0.0
    verified: bool = False
    fetched_at: datetime = field(default_factory=datetime.utcnow)

    def normalized(self) -> "LeadDraft":
        """
        Enforce the lead invariants:
          score in [0, 100], conversion_potential in [0, 0.95], engagement in [0, 1].
        An unverified lead cannot carry engagement derived from an unverified contact.
        """
        engagement = min(1.0, max(0.0, float(self.engagement_rate or 0.0)))
        if not self.verified:
            engagement = 0.0
        return replace(
            self,
            email=self.email.strip(),
            score=int(min(100, max(0, round(self.score)))),
            conversion_potential=min(MAX_CONVERSION_POTENTIAL, max(0.0, float(self.conversion_potential))),
            engagement_rate=engagement,
        )

    def tagged(self, source: LeadSource) -> "LeadDraft":
        return replace(self, source=source, tags=self.tags | {source.value})


@dataclass(frozen=True)
class LeadRecord:
    """A lead as served to callers. `id` is a store id, or a tmp- id if the write failed."""
    id: int | str
    first_name: str
    last_name: str
    email: str
    source: LeadSource
    phone: str | None
    company: str | None
    title: str | None
    industry: str
    location: str
    niche: str
    tags: frozenset[str]
    interests: tuple[str, ...]
    social_profiles: Mapping[str, str]
    score: int
    conversion_potential: float
    engagement_rate: float
    verified: bool
    created_at: datetime
    updated_at: datetime
    last_enriched: datetime | None = None
    batch_id: int | None = None

    @classmethod
    def from_draft(cls, draft: LeadDraft, *, id: int | str, batch_id: int | None = None) -> "LeadRecord":
        return cls(
            id=id,
            first_name=draft.first_name,
            last_name=draft.last_name,
            email=draft.email,
            source=draft.source,
            phone=draft.phone,
            company=draft.company,
            title=draft.title,
            industry=draft.industry,
            location=draft.location,
            niche=draft.niche,
            tags=draft.tags,
            interests=draft.interests,
            social_profiles=dict(draft.social_profiles),
            score=draft.score,
            conversion_potential=draft.conversion_potential,
            engagement_rate=draft.engagement_rate,
            verified=draft.verified,
            created_at=draft.fetched_at,
            updated_at=draft.fetched_at,
            last_enriched=draft.fetched_at,
            batch_id=batch_id,
        )


@dataclass
class SourceConfig:
    source: LeadSource
    active: bool = True
    fetch_priority: float = 1.0
    daily_limit: int = 100
    credits_remaining: int = 0
    credits_used_today: int = 0
    target_niches: list[str] = field(default_factory=list)
    fetch_criteria: dict[str, Any] = field(default_factory=dict)
    last_fetch: datetime | None = None

    @property
    def daily_budget_left(self) -> int:
        return max(0, self.daily_limit - self.credits_used_today)


@dataclass(frozen=True)
class SourcePerformance:
    conversion_rate: float = 0.0
    open_rate: float = 0.0
    click_rate: float = 0.0


@dataclass
class LeadStats:
    total_leads: int
    leads_per_source: dict[str, int]
    leads_added_today: int
    source_performance: dict[str, SourcePerformance]
    average_score: float = 0.0
    average_conversion_rate: float = 0.0
    last_updated: datetime | None = None

    @classmethod
    def zeroed(cls, now: datetime | None = None) -> "LeadStats":
        return cls(
            total_leads=0,
            leads_per_source={s.value: 0 for s in LeadSource},
            leads_added_today=0,
            source_performance={s.value: SourcePerformance() for s in LeadSource},
            last_updated=now,
        )

    def snapshot(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class RefillResult:
    total_fetched: int = 0
    by_source: dict[str, int] = field(default_factory=dict)

    def snapshot(self) -> dict[str, Any]:
        return {"total_fetched": self.total_fetched, "by_source": dict(self.by_source)}
