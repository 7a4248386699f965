# leadengine/models.py
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# -----------------------------
# Core enums
# -----------------------------
class LeadSource(str, enum.Enum):
    apollo = "apollo"
    facebook = "facebook"
    tiktok = "tiktok"
    instagram = "instagram"
    google = "google"


class BatchStatus(str, enum.Enum):
    completed = "completed"
    partial = "partial"
    failed = "failed"


class AlertType(str, enum.Enum):
    api_limit = "api_limit"


class AlertStatus(str, enum.Enum):
    unread = "unread"
    read = "read"


class JobRunStatus(str, enum.Enum):
    running = "running"
    success = "success"
    failed = "failed"


# -----------------------------
# Models
# -----------------------------
class LeadBatch(Base):
    __tablename__ = "lead_batches"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    source: Mapped[LeadSource] = mapped_column(Enum(LeadSource), index=True)
    fetch_date: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    count: Mapped[int] = mapped_column(Integer, default=0)

    status: Mapped[BatchStatus] = mapped_column(Enum(BatchStatus), default=BatchStatus.completed, index=True)

    niche: Mapped[str | None] = mapped_column(String(120), nullable=True)
    credits_used: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)


class Lead(Base):
    __tablename__ = "leads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    batch_id: Mapped[int] = mapped_column(ForeignKey("lead_batches.id"), index=True)

    first_name: Mapped[str] = mapped_column(String(120), default="")
    last_name: Mapped[str] = mapped_column(String(120), default="")
    email: Mapped[str] = mapped_column(String(255), index=True)
    phone: Mapped[str | None] = mapped_column(String(40), nullable=True)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)

    industry: Mapped[str] = mapped_column(String(120), default="", index=True)
    location: Mapped[str] = mapped_column(String(255), default="", index=True)
    niche: Mapped[str] = mapped_column(String(120), default="", index=True)
    source: Mapped[LeadSource] = mapped_column(Enum(LeadSource), index=True)

    score: Mapped[int] = mapped_column(Integer, default=0, index=True)
    conversion_potential: Mapped[float] = mapped_column(Float, default=0.0)
    engagement_rate: Mapped[float] = mapped_column(Float, default=0.0)
    verified: Mapped[bool] = mapped_column(Boolean, default=False)

    # JSON blobs: sorted list of tags, list of interests, {network: url}
    tags_json: Mapped[str] = mapped_column(Text, default="[]")
    interests_json: Mapped[str] = mapped_column(Text, default="[]")
    social_profiles_json: Mapped[str] = mapped_column(Text, default="{}")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    last_enriched: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class LeadSourceConfig(Base):
    __tablename__ = "lead_sources"
    __table_args__ = (UniqueConstraint("source", name="uq_lead_source"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    source: Mapped[LeadSource] = mapped_column(Enum(LeadSource))

    active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    fetch_priority: Mapped[float] = mapped_column(Float, default=1.0)
    daily_limit: Mapped[int] = mapped_column(Integer, default=100)

    credits_remaining: Mapped[int] = mapped_column(Integer, default=0)
    credits_used_today: Mapped[int] = mapped_column(Integer, default=0)

    target_niches_json: Mapped[str] = mapped_column(Text, default="[]")
    fetch_criteria_json: Mapped[str] = mapped_column(Text, default="{}")

    last_fetch: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class LeadStatsSnapshot(Base):
    """
    Denormalized aggregate. A single row keyed "current".
    """
    __tablename__ = "lead_stats"

    id: Mapped[str] = mapped_column(String(40), primary_key=True)

    total_leads: Mapped[int] = mapped_column(Integer, default=0)
    leads_per_source_json: Mapped[str] = mapped_column(Text, default="{}")
    leads_added_today: Mapped[int] = mapped_column(Integer, default=0)
    average_score: Mapped[float] = mapped_column(Float, default=0.0)
    average_conversion_rate: Mapped[float] = mapped_column(Float, default=0.0)

    # {source: {conversion_rate, open_rate, click_rate}}; written by campaign analytics
    source_performance_json: Mapped[str] = mapped_column(Text, default="{}")

    last_updated: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class AdminAlert(Base):
    __tablename__ = "admin_alerts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    type: Mapped[AlertType] = mapped_column(Enum(AlertType), index=True)
    source: Mapped[LeadSource] = mapped_column(Enum(LeadSource), index=True)
    credits_remaining: Mapped[int] = mapped_column(Integer)

    # never the full credential
    credential_ref: Mapped[str] = mapped_column(String(40), default="")

    status: Mapped[AlertStatus] = mapped_column(Enum(AlertStatus), default=AlertStatus.unread, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class JobRun(Base):
    """
    Tracks job executions (daily refill, usage reset).
    """
    __tablename__ = "job_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_name: Mapped[str] = mapped_column(String(80), index=True)

    status: Mapped[JobRunStatus] = mapped_column(Enum(JobRunStatus), default=JobRunStatus.running, index=True)

    started_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # store error stack or message
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    # {"total_fetched": ..., "by_source": {...}}
    summary_json: Mapped[str | None] = mapped_column(Text, nullable=True)
