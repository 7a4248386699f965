from __future__ import annotations

import argparse
import asyncio

from leadengine.db import AsyncSessionLocal, engine
from leadengine.domain.types import SourceConfig
from leadengine.models import Base, LeadSource
from leadengine.service_layer.lead_store import LeadStore

# higher = asked first, and for a bigger share of a deficit
DEFAULT_PRIORITY: dict[LeadSource, float] = {
    LeadSource.apollo: 3.0,
    LeadSource.tiktok: 2.0,
    LeadSource.facebook: 2.0,
    LeadSource.instagram: 1.5,
    LeadSource.google: 1.0,
}


async def _ensure_schema() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--credits", type=int, default=1000, help="Starting credits per source")
    parser.add_argument("--daily-limit", type=int, default=100)
    parser.add_argument("--niche", action="append", default=[], help="Target niche (repeatable)")
    parser.add_argument("--inactive", action="store_true", help="Seed configs as inactive")
    args = parser.parse_args()

    await _ensure_schema()

    store = LeadStore(AsyncSessionLocal)
    for source, priority in DEFAULT_PRIORITY.items():
        existing = await store.get_lead_source_config(source)
        if existing is not None:
            print(f"skip {source.value}: already configured")
            continue
        await store.update_lead_source_config(
            SourceConfig(
                source=source,
                active=not args.inactive,
                fetch_priority=priority,
                daily_limit=args.daily_limit,
                credits_remaining=args.credits,
                target_niches=list(args.niche),
            )
        )
        print(f"seeded {source.value} priority={priority}")
    await store.close()


if __name__ == "__main__":
    asyncio.run(main())
