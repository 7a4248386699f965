# leadengine/domain/ranking.py
from __future__ import annotations

from typing import Sequence

from .types import LeadRecord


def rank_leads(leads: Sequence[LeadRecord], limit: int | None = None) -> list[LeadRecord]:
    """
    Score desc. Ties keep their input order, so stored leads stay ahead of
    freshly fetched ones with the same score.
    """
    ranked = sorted(leads, key=lambda lead: -lead.score)
    if limit is not None:
        return ranked[: max(0, limit)]
    return ranked

