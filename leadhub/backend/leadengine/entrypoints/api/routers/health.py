# leadengine/entrypoints/api/routers/health.py
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from ..deps import get_container, require_api_key
from ....config import settings
from ....service_layer.bootstrap import Container
from ....service_layer.usage import redact_credential

router = APIRouter(tags=["health"])


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/debug/config", dependencies=[Depends(require_api_key)])
def debug_config(container: Container = Depends(get_container)) -> dict[str, Any]:
    return {
        "ENV": settings.ENV,
        "LEAD_DB_URL": settings.LEAD_DB_URL,
        "registered_sources": sorted(s.value for s in container.adapters),
        "APOLLO_API_KEY": redact_credential(settings.APOLLO_API_KEY),
        "FACEBOOK_ACCESS_TOKEN": redact_credential(settings.FACEBOOK_ACCESS_TOKEN),
        "TIKTOK_API_KEY": redact_credential(settings.TIKTOK_API_KEY),
        "INSTAGRAM_ACCESS_TOKEN": redact_credential(settings.INSTAGRAM_ACCESS_TOKEN),
        "GOOGLE_PLACES_API_KEY": redact_credential(settings.GOOGLE_PLACES_API_KEY),
        "ALERT_WEBHOOK_SET": bool(settings.ALERT_WEBHOOK_URL),
    }
