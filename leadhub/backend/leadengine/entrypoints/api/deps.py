# leadengine/entrypoints/api/deps.py
from __future__ import annotations

from fastapi import Header, HTTPException, Request

from ...config import settings
from ...service_layer.bootstrap import Container


def require_api_key(x_api_key: str | None = Header(default=None, alias="X-API-Key")) -> None:
    if settings.API_KEY:
        if not x_api_key or x_api_key != settings.API_KEY:
            raise HTTPException(status_code=401, detail="Invalid API key")


def require_cron_key(x_cron_key: str | None = Header(default=None, alias="X-Cron-Key")) -> None:
    if settings.CRON_API_KEY:
        if not x_cron_key or x_cron_key != settings.CRON_API_KEY:
            raise HTTPException(status_code=401, detail="Invalid cron key")


def get_container(request: Request) -> Container:
    return request.app.state.container
