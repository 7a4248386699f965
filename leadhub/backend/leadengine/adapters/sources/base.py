# leadengine/adapters/sources/base.py
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Callable, Protocol

import httpx

from ...domain.errors import ProviderError
from ...domain.scoring import ScoreBand
from ...domain.types import LeadCriteria, LeadDraft
from ...models import LeadSource
from ..clients.http_resilience import ResilientHttpClient

log = logging.getLogger(__name__)


class UsageReporter(Protocol):
    async def track_api_usage(self, source: LeadSource, credits_used: int, credential_ref: str) -> None:
        ...


class SourceAdapter(Protocol):
    source: LeadSource

    async def fetch_leads(self, criteria: LeadCriteria) -> list[LeadDraft]:
        raise NotImplementedError


class BaseSourceAdapter:
    """
    Shared fetch flow for HTTP-backed providers:

      request -> extract record list -> map each record -> drop invalid emails
      -> report credits to the usage tracker

    Subclasses implement `_request`, `_extract_records` and `_map_record`.
    """

    source: LeadSource
    band: ScoreBand

    def __init__(
        self,
        *,
        credential: str | None,
        http: ResilientHttpClient,
        usage: UsageReporter | None = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self.credential = credential
        self.http = http
        self.usage = usage
        self._now = clock
        # credits charged by the most recent call
        self.last_credits_used = 0

    async def fetch_leads(self, criteria: LeadCriteria) -> list[LeadDraft]:
        if not self.credential:
            raise ProviderError(self.source.value, "credential not configured")

        payload = await self._call(lambda: self._request(criteria))
        records = self._extract_records(payload)

        leads: list[LeadDraft] = []
        dropped: dict[str, int] = defaultdict(int)
        for rec in records:
            if not isinstance(rec, dict):
                dropped["not_an_object"] += 1
                continue
            try:
                draft = self._map_record(rec, criteria)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise ProviderError(self.source.value, f"malformed record: {e!r}") from e

            if draft is None:
                dropped["filtered"] += 1
                continue
            if "@" not in (draft.email or ""):
                dropped["missing_email"] += 1
                continue
            leads.append(draft.normalized())

        if dropped:
            log.info("%s: dropped %s of %d records", self.source.value, dict(dropped), len(records))

        await self._report_usage(len(records))
        return leads[: max(0, criteria.limit)]

    async def _call(self, send: Callable[[], Any]) -> Any:
        try:
            resp: httpx.Response = await send()
            return resp.json()
        except httpx.HTTPStatusError as e:
            raise ProviderError(self.source.value, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise ProviderError(self.source.value, f"upstream call failed: {type(e).__name__}") from e
        except ValueError as e:
            raise ProviderError(self.source.value, "response was not valid JSON") from e

    async def _report_usage(self, credits: int) -> None:
        self.last_credits_used = credits
        if self.usage is None:
            return
        await self.usage.track_api_usage(self.source, credits, self.credential or "")

    def _records_at(self, payload: Any, *keys: str) -> list[Any]:
        """
        Walk `keys` into the payload and return the list found there.
        Anything else is a schema mismatch.
        """
        node = payload
        for k in keys:
            if not isinstance(node, dict):
                raise ProviderError(self.source.value, f"unexpected payload shape at {k!r}")
            node = node.get(k)
        if node is None:
            return []
        if not isinstance(node, list):
            raise ProviderError(self.source.value, f"expected a list at {'.'.join(keys)!r}")
        return node

    async def _request(self, criteria: LeadCriteria) -> httpx.Response:
        raise NotImplementedError

    def _extract_records(self, payload: Any) -> list[Any]:
        raise NotImplementedError

    def _map_record(self, rec: dict[str, Any], criteria: LeadCriteria) -> LeadDraft | None:
        raise NotImplementedError


def split_name(full_name: str | None) -> tuple[str, str]:
    parts = (full_name or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def first_str(*values: Any) -> str:
    for v in values:
        if v not in (None, "", []):
            return str(v).strip()
    return ""


def str_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [s.strip() for s in value.split(",") if s.strip()]
    return [str(v) for v in value if v not in (None, "")]
