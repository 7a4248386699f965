# leadengine/entrypoints/api/routers/sources.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ..deps import get_container, require_api_key
from ....models import LeadSource
from ....schemas import SourceConfigIn, SourceConfigOut
from ....service_layer.bootstrap import Container

router = APIRouter(prefix="/v1/sources", tags=["sources"], dependencies=[Depends(require_api_key)])


@router.get("/active", response_model=list[SourceConfigOut])
async def active_sources(container: Container = Depends(get_container)) -> list[SourceConfigOut]:
    configs = await container.aggregation.get_active_lead_sources()
    return [SourceConfigOut.from_config(c) for c in configs]


@router.put("/{source}", response_model=SourceConfigOut)
async def update_source(
    source: str,
    payload: SourceConfigIn,
    container: Container = Depends(get_container),
) -> SourceConfigOut:
    try:
        src = LeadSource(source)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid source: {source}")

    existing = await container.store.get_lead_source_config(src)
    cfg = payload.to_config(src, last_fetch=existing.last_fetch if existing else None)
    saved = await container.aggregation.update_lead_source(cfg)
    return SourceConfigOut.from_config(saved)
