from __future__ import annotations

import math
from typing import Sequence

from ..models import LeadSource


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def allocate_deficit(
    deficit: int,
    priorities: Sequence[tuple[LeadSource, float]],
    *,
    minimum: int = 5,
) -> dict[LeadSource, int]:
    """
    Split a lead deficit across sources by fetch priority.

    per source: max(minimum, round(deficit * priority / sum(priorities)))

    The floor means the total can exceed the deficit when many sources compete;
    callers cap the merged result instead.
    """
    if deficit <= 0 or not priorities:
        return {}

    weights = [(src, max(0.0, float(p))) for src, p in priorities]
    total = sum(w for _, w in weights)
    if total <= 0:
        # all-zero priorities: split evenly
        weights = [(src, 1.0) for src, _ in weights]
        total = float(len(weights))

    return {src: max(minimum, _round_half_up(deficit * (w / total))) for src, w in weights}
