# leadengine/adapters/repos/leads.py
from __future__ import annotations

import json
from datetime import datetime
from typing import Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ...domain.types import LeadCriteria, LeadDraft, LeadRecord
from ...models import BatchStatus, Lead, LeadBatch, LeadSource


def to_record(row: Lead) -> LeadRecord:
    return LeadRecord(
        id=row.id,
        first_name=row.first_name,
        last_name=row.last_name,
        email=row.email,
        source=row.source,
        phone=row.phone,
        company=row.company,
        title=row.title,
        industry=row.industry or "",
        location=row.location or "",
        niche=row.niche or "",
        tags=frozenset(json.loads(row.tags_json or "[]")),
        interests=tuple(json.loads(row.interests_json or "[]")),
        social_profiles=json.loads(row.social_profiles_json or "{}"),
        score=row.score,
        conversion_potential=row.conversion_potential,
        engagement_rate=row.engagement_rate,
        verified=row.verified,
        created_at=row.created_at,
        updated_at=row.updated_at,
        last_enriched=row.last_enriched,
        batch_id=row.batch_id,
    )


def _apply_draft(row: Lead, draft: LeadDraft) -> None:
    row.first_name = draft.first_name
    row.last_name = draft.last_name
    row.email = draft.email
    row.phone = draft.phone
    row.company = draft.company
    row.title = draft.title
    row.industry = draft.industry
    row.location = draft.location
    row.niche = draft.niche
    row.source = draft.source
    row.score = draft.score
    row.conversion_potential = draft.conversion_potential
    row.engagement_rate = draft.engagement_rate
    row.verified = draft.verified
    row.tags_json = json.dumps(sorted(draft.tags))
    row.interests_json = json.dumps(list(draft.interests))
    row.social_profiles_json = json.dumps(dict(draft.social_profiles))


class LeadRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def query(self, criteria: LeadCriteria) -> list[LeadRecord]:
        """
        Equality filters, score desc, limit.

        industry/location: only the first value is used. Multi-value requests
        lose precision here on purpose; adapters still see the full lists.
        """
        q = select(Lead)
        if criteria.niche:
            q = q.where(Lead.niche == criteria.niche)
        if criteria.industry:
            q = q.where(Lead.industry == criteria.industry[0])
        if criteria.location:
            q = q.where(Lead.location == criteria.location[0])
        if criteria.sources:
            q = q.where(Lead.source.in_(list(criteria.sources)))
        if criteria.min_score is not None:
            q = q.where(Lead.score >= criteria.min_score)

        q = q.order_by(Lead.score.desc(), Lead.id.asc())
        if criteria.limit:
            q = q.limit(criteria.limit)

        rows = (await self.session.execute(q)).scalars().all()
        return [to_record(r) for r in rows]

    async def add_batch(
        self,
        *,
        source: LeadSource,
        count: int,
        fetch_date: datetime,
        niche: str | None = None,
        credits_used: int | None = None,
        status: BatchStatus = BatchStatus.completed,
        error: str | None = None,
    ) -> LeadBatch:
        batch = LeadBatch(
            source=source,
            fetch_date=fetch_date,
            count=count,
            niche=niche,
            credits_used=credits_used,
            status=status,
            error=error,
        )
        self.session.add(batch)
        await self.session.flush()
        return batch

    async def add_leads(self, drafts: Sequence[LeadDraft], *, batch_id: int, now: datetime) -> list[Lead]:
        rows: list[Lead] = []
        for d in drafts:
            row = Lead(batch_id=batch_id, created_at=now, updated_at=now, last_enriched=d.fetched_at)
            _apply_draft(row, d)
            self.session.add(row)
            rows.append(row)
        await self.session.flush()
        return rows

    async def get(self, lead_id: int) -> Lead | None:
        return await self.session.get(Lead, lead_id)

    async def apply_enrichment(self, row: Lead, draft: LeadDraft, *, now: datetime) -> Lead:
        """
        Merge enrichment into an existing lead. Keeps identity, provenance and
        created_at; blank enrichment fields never wipe stored values.
        """
        source, batch_id, created_at = row.source, row.batch_id, row.created_at
        merged_tags = set(json.loads(row.tags_json or "[]")) | set(draft.tags)

        keep = {
            "phone": row.phone,
            "company": row.company,
            "title": row.title,
            "industry": row.industry,
            "location": row.location,
            "niche": row.niche,
        }
        _apply_draft(row, draft)
        for attr, old in keep.items():
            if not getattr(row, attr) and old:
                setattr(row, attr, old)

        row.source = source
        row.batch_id = batch_id
        row.created_at = created_at
        row.tags_json = json.dumps(sorted(merged_tags))
        row.updated_at = now
        row.last_enriched = now
        await self.session.flush()
        return row

    async def set_batch_status(self, batch_ids: Sequence[int], status: BatchStatus, error: str | None = None) -> None:
        if not batch_ids:
            return
        await self.session.execute(
            update(LeadBatch).where(LeadBatch.id.in_(list(batch_ids))).values(status=status, error=error)
        )
