from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from .types import MAX_CONVERSION_POTENTIAL


@dataclass(frozen=True)
class ScoreBand:
    """
    Channel quality band: score = round(base + conversion_potential * span).
    """
    base: float
    span: float

    def score(self, conversion_potential: float) -> int:
        raw = self.base + clamp_potential(conversion_potential) * self.span
        return int(min(100, max(0, round(raw))))


@dataclass
class PotentialModel:
    """
    Weighted additive conversion-potential model.

    Starts at a nonzero base (a cold lead is still viable), each signal adds a
    bounded increment, total is clamped to [0, 0.95].
    """
    base: float
    parts: dict[str, float] = field(default_factory=dict)

    def add(self, name: str, value: float, cap: float) -> "PotentialModel":
        self.parts[name] = max(0.0, min(cap, float(value)))
        return self

    @property
    def total(self) -> float:
        return clamp_potential(self.base + sum(self.parts.values()))


def clamp_potential(value: float) -> float:
    return min(MAX_CONVERSION_POTENTIAL, max(0.0, float(value)))


def days_since(ts: Any, now: datetime | None = None) -> float | None:
    """
    Days between an ISO-8601 timestamp (or datetime) and now. None if unparseable.
    """
    if ts in (None, ""):
        return None
    if isinstance(ts, datetime):
        dt = ts
    else:
        try:
            dt = datetime.fromisoformat(str(ts).replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return max(0.0, (now - dt).total_seconds() / 86400.0)


def recency_bonus(days: float | None, tiers: Iterable[tuple[float, float]]) -> float:
    """
    tiers: [(max_days, bonus), ...] ordered from most recent; first match wins.
    """
    if days is None:
        return 0.0
    for max_days, bonus in tiers:
        if days < max_days:
            return bonus
    return 0.0


def keyword_hits(haystack: Iterable[str], needles: Iterable[str]) -> int:
    """Count haystack entries containing any needle (case-insensitive)."""
    keys = [n.lower() for n in needles if n]
    if not keys:
        return 0
    return sum(1 for h in haystack if h and any(k in h.lower() for k in keys))


def niche_terms(niche: str | None, industry: Iterable[str] = ()) -> list[str]:
    terms: list[str] = []
    if niche:
        terms.extend(t for t in niche.lower().replace("-", " ").split() if len(t) > 2)
    terms.extend(i.lower() for i in industry if i)
    return terms
