# leadengine/entrypoints/api/routers/leads.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from ..deps import get_container, require_api_key
from ....config import settings
from ....domain.types import LeadCriteria
from ....models import LeadSource
from ....schemas import LeadOut, LeadStatsOut
from ....service_layer.bootstrap import Container

router = APIRouter(prefix="/v1/leads", tags=["leads"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=list[LeadOut])
async def list_leads(
    niche: str | None = Query(default=None),
    industry: list[str] = Query(default=[]),
    location: list[str] = Query(default=[]),
    source: list[str] = Query(default=[]),
    min_score: int | None = Query(default=None, ge=0, le=100),
    limit: int = Query(default=settings.DEFAULT_LEAD_LIMIT, ge=1, le=500),
    container: Container = Depends(get_container),
) -> list[LeadOut]:
    try:
        sources = tuple(LeadSource(s) for s in source)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid source: {source}")

    criteria = LeadCriteria(
        niche=niche or None,
        industry=tuple(industry),
        location=tuple(location),
        sources=sources,
        min_score=min_score,
        limit=limit,
    )
    leads = await container.aggregation.get_leads(criteria)
    return [LeadOut.from_record(r) for r in leads]


@router.get("/stats", response_model=LeadStatsOut)
async def lead_stats(container: Container = Depends(get_container)) -> LeadStatsOut:
    return LeadStatsOut.from_stats(await container.aggregation.get_lead_stats())


@router.post("/{lead_id}/enrich", response_model=LeadOut)
async def enrich_lead(lead_id: int, container: Container = Depends(get_container)) -> LeadOut:
    record = await container.aggregation.enrich_lead(lead_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Lead not found")
    return LeadOut.from_record(record)
