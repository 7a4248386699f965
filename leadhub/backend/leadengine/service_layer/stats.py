# leadengine/service_layer/stats.py
from __future__ import annotations

import json
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.types import LeadStats, SourcePerformance
from ..models import Lead, LeadSource, LeadStatsSnapshot

STATS_ROW_ID = "current"


def _start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def _performance(raw: str | None) -> dict[str, SourcePerformance]:
    data = json.loads(raw or "{}")
    out = {s.value: SourcePerformance() for s in LeadSource}
    for source, perf in data.items():
        if isinstance(perf, dict):
            out[source] = SourcePerformance(
                conversion_rate=float(perf.get("conversion_rate") or 0),
                open_rate=float(perf.get("open_rate") or 0),
                click_rate=float(perf.get("click_rate") or 0),
            )
    return out


def to_stats(row: LeadStatsSnapshot) -> LeadStats:
    per_source = {s.value: 0 for s in LeadSource}
    per_source.update(json.loads(row.leads_per_source_json or "{}"))
    return LeadStats(
        total_leads=row.total_leads,
        leads_per_source=per_source,
        leads_added_today=row.leads_added_today,
        source_performance=_performance(row.source_performance_json),
        average_score=row.average_score,
        average_conversion_rate=row.average_conversion_rate,
        last_updated=row.last_updated,
    )


async def load_or_init_stats(session: AsyncSession, *, now: datetime) -> LeadStats:
    """
    Stored aggregate, or a zeroed row created on first read.
    """
    row = await session.get(LeadStatsSnapshot, STATS_ROW_ID)
    if row is None:
        zero = LeadStats.zeroed(now)
        row = LeadStatsSnapshot(
            id=STATS_ROW_ID,
            total_leads=0,
            leads_per_source_json=json.dumps(zero.leads_per_source),
            leads_added_today=0,
            average_score=0.0,
            average_conversion_rate=0.0,
            source_performance_json="{}",
            last_updated=now,
        )
        session.add(row)
        await session.flush()
    return to_stats(row)


async def recompute_lead_stats(session: AsyncSession, *, now: datetime) -> LeadStats:
    """
    Full recount over the leads table. source_performance is owned by campaign
    analytics and carried over untouched.
    """
    total, avg_score, avg_potential = (
        await session.execute(
            select(func.count(Lead.id), func.avg(Lead.score), func.avg(Lead.conversion_potential))
        )
    ).one()

    per_source = {s.value: 0 for s in LeadSource}
    rows = (await session.execute(select(Lead.source, func.count(Lead.id)).group_by(Lead.source))).all()
    for source, n in rows:
        key = source.value if isinstance(source, LeadSource) else str(source)
        per_source[key] = int(n)

    today = (
        await session.execute(select(func.count(Lead.id)).where(Lead.created_at >= _start_of_day(now)))
    ).scalar_one()

    row = await session.get(LeadStatsSnapshot, STATS_ROW_ID)
    if row is None:
        row = LeadStatsSnapshot(id=STATS_ROW_ID, source_performance_json="{}")
        session.add(row)

    row.total_leads = int(total or 0)
    row.leads_per_source_json = json.dumps(per_source)
    row.leads_added_today = int(today or 0)
    row.average_score = round(float(avg_score or 0.0), 2)
    row.average_conversion_rate = round(float(avg_potential or 0.0), 4)
    row.last_updated = now
    await session.flush()
    return to_stats(row)
