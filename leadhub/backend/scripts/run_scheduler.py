from __future__ import annotations

import asyncio
import logging

from leadengine.db import engine
from leadengine.jobs.scheduler import build_scheduler
from leadengine.models import Base
from leadengine.service_layer.bootstrap import build_container


def _quiet_logging() -> None:
    # Root defaults
    logging.basicConfig(
        level=logging.INFO,
        format="%(levelname)s:%(name)s:%(message)s",
    )

    # Quiet the usual offenders
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


async def main() -> None:
    _quiet_logging()
    log = logging.getLogger(__name__)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    container = build_container()
    scheduler = build_scheduler(container)
    scheduler.start()
    log.info("Scheduler started with sources: %s", sorted(s.value for s in container.adapters))

    try:
        while True:
            await asyncio.sleep(3600)
    except (KeyboardInterrupt, asyncio.CancelledError):
        scheduler.shutdown()
        await container.close()
        log.info("Scheduler stopped")


if __name__ == "__main__":
    asyncio.run(main())
