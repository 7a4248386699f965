# leadengine/adapters/repos/sources.py
from __future__ import annotations

import json
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ...domain.types import SourceConfig
from ...models import LeadSource, LeadSourceConfig


def to_config(row: LeadSourceConfig) -> SourceConfig:
    return SourceConfig(
        source=row.source,
        active=row.active,
        fetch_priority=row.fetch_priority,
        daily_limit=row.daily_limit,
        credits_remaining=row.credits_remaining,
        credits_used_today=row.credits_used_today,
        target_niches=list(json.loads(row.target_niches_json or "[]")),
        fetch_criteria=dict(json.loads(row.fetch_criteria_json or "{}")),
        last_fetch=row.last_fetch,
    )


class SourceConfigRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, source: LeadSource) -> LeadSourceConfig | None:
        q = select(LeadSourceConfig).where(LeadSourceConfig.source == source).limit(1)
        return (await self.session.execute(q)).scalars().first()

    async def list_active(self) -> list[LeadSourceConfig]:
        q = select(LeadSourceConfig).where(LeadSourceConfig.active == True).order_by(LeadSourceConfig.id.asc())  # noqa: E712
        return list((await self.session.execute(q)).scalars().all())

    async def upsert(self, cfg: SourceConfig, *, now: datetime) -> LeadSourceConfig:
        """
        Natural key: source. Full overwrite of the config fields.
        """
        row = await self.get(cfg.source)
        if row is None:
            row = LeadSourceConfig(source=cfg.source)
            self.session.add(row)

        row.active = bool(cfg.active)
        row.fetch_priority = float(cfg.fetch_priority)
        row.daily_limit = int(cfg.daily_limit)
        row.credits_remaining = int(cfg.credits_remaining)
        row.credits_used_today = int(cfg.credits_used_today)
        row.target_niches_json = json.dumps(list(cfg.target_niches))
        row.fetch_criteria_json = json.dumps(dict(cfg.fetch_criteria))
        row.last_fetch = cfg.last_fetch
        row.updated_at = now

        await self.session.flush()
        return row

    async def consume_credits(self, source: LeadSource, credits: int, *, now: datetime) -> int | None:
        """
        Atomic decrement/increment in one UPDATE. Returns credits remaining,
        or None if the source has no config row.
        """
        res = await self.session.execute(
            update(LeadSourceConfig)
            .where(LeadSourceConfig.source == source)
            .values(
                credits_remaining=LeadSourceConfig.credits_remaining - credits,
                credits_used_today=LeadSourceConfig.credits_used_today + credits,
                last_fetch=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if not res.rowcount:
            return None

        q = select(LeadSourceConfig.credits_remaining).where(LeadSourceConfig.source == source)
        return int((await self.session.execute(q)).scalar_one())

    async def reset_daily_usage(self, *, now: datetime) -> int:
        res = await self.session.execute(
            update(LeadSourceConfig)
            .values(credits_used_today=0, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return int(res.rowcount or 0)
