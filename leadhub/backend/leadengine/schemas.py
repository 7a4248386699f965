from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .domain.types import LeadRecord, LeadStats, SourceConfig
from .models import LeadSource


class LeadOut(BaseModel):
    id: int | str
    first_name: str
    last_name: str
    email: str
    phone: str | None = None
    company: str | None = None
    title: str | None = None
    industry: str
    location: str
    niche: str
    source: str

    score: int = Field(..., ge=0, le=100)
    conversion_potential: float = Field(..., ge=0, le=0.95)
    engagement_rate: float = Field(..., ge=0, le=1)
    verified: bool

    tags: list[str]
    interests: list[str]
    social_profiles: dict[str, str]

    created_at: datetime
    updated_at: datetime
    last_enriched: datetime | None = None

    @classmethod
    def from_record(cls, r: LeadRecord) -> "LeadOut":
        return cls(
            id=r.id,
            first_name=r.first_name,
            last_name=r.last_name,
            email=r.email,
            phone=r.phone,
            company=r.company,
            title=r.title,
            industry=r.industry,
            location=r.location,
            niche=r.niche,
            source=r.source.value,
            score=r.score,
            conversion_potential=r.conversion_potential,
            engagement_rate=r.engagement_rate,
            verified=r.verified,
            tags=sorted(r.tags),
            interests=list(r.interests),
            social_profiles=dict(r.social_profiles),
            created_at=r.created_at,
            updated_at=r.updated_at,
            last_enriched=r.last_enriched,
        )


class SourcePerformanceOut(BaseModel):
    conversion_rate: float = 0.0
    open_rate: float = 0.0
    click_rate: float = 0.0


class LeadStatsOut(BaseModel):
    total_leads: int
    leads_per_source: dict[str, int]
    leads_added_today: int
    source_performance: dict[str, SourcePerformanceOut]
    average_score: float
    average_conversion_rate: float
    last_updated: datetime | None = None

    @classmethod
    def from_stats(cls, s: LeadStats) -> "LeadStatsOut":
        return cls(**s.snapshot())


class SourceConfigIn(BaseModel):
    active: bool = True
    fetch_priority: float = Field(1.0, ge=0)
    daily_limit: int = Field(100, ge=0)
    credits_remaining: int = 0
    credits_used_today: int = Field(0, ge=0)
    target_niches: list[str] = Field(default_factory=list)
    fetch_criteria: dict[str, Any] = Field(default_factory=dict)

    def to_config(self, source: LeadSource, last_fetch: datetime | None = None) -> SourceConfig:
        return SourceConfig(
            source=source,
            active=self.active,
            fetch_priority=self.fetch_priority,
            daily_limit=self.daily_limit,
            credits_remaining=self.credits_remaining,
            credits_used_today=self.credits_used_today,
            target_niches=list(self.target_niches),
            fetch_criteria=dict(self.fetch_criteria),
            last_fetch=last_fetch,
        )


class SourceConfigOut(SourceConfigIn):
    source: str
    last_fetch: datetime | None = None

    @classmethod
    def from_config(cls, c: SourceConfig) -> "SourceConfigOut":
        return cls(
            source=c.source.value,
            active=c.active,
            fetch_priority=c.fetch_priority,
            daily_limit=c.daily_limit,
            credits_remaining=c.credits_remaining,
            credits_used_today=c.credits_used_today,
            target_niches=list(c.target_niches),
            fetch_criteria=dict(c.fetch_criteria),
            last_fetch=c.last_fetch,
        )


class RefillOut(BaseModel):
    total_fetched: int = Field(..., ge=0)
    by_source: dict[str, int]


class UsageResetOut(BaseModel):
    sources_reset: int = Field(..., ge=0)
