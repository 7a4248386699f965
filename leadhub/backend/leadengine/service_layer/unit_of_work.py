# leadengine/service_layer/unit_of_work.py
from __future__ import annotations

import logging
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.repos.leads import LeadRepository
from ..adapters.repos.sources import SourceConfigRepository
from ..domain.errors import StoreError

log = logging.getLogger(__name__)


class SqlAlchemyUnitOfWork:
    """
    One session, one transaction. Commits on clean exit, rolls back otherwise.
    Any SQLAlchemy failure surfaces as StoreError.

        async with SqlAlchemyUnitOfWork(AsyncSessionLocal, "store leads") as uow:
            await uow.leads.add_batch(...)
    """

    def __init__(self, session_factory: Callable[[], AsyncSession], action: str = "store operation") -> None:
        self._session_factory = session_factory
        self.action = action
        self.session: AsyncSession | None = None
        self.leads: LeadRepository | None = None
        self.sources: SourceConfigRepository | None = None

    async def __aenter__(self) -> "SqlAlchemyUnitOfWork":
        self.session = self._session_factory()
        self.leads = LeadRepository(self.session)
        self.sources = SourceConfigRepository(self.session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        assert self.session is not None
        try:
            if exc is None:
                await self.session.commit()
            else:
                await self.session.rollback()
        except SQLAlchemyError as e:
            log.error("%s: commit/rollback failed: %s", self.action, e)
            raise StoreError(f"{self.action} failed") from e
        finally:
            await self.session.close()

        if isinstance(exc, SQLAlchemyError):
            log.error("%s failed: %s", self.action, exc)
            raise StoreError(f"{self.action} failed") from exc
        return False
