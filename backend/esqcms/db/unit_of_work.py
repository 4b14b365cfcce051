"""
Unit of work: one transaction spanning the checksheet write and its ledger rows.

    async with SqlUnitOfWork(session) as uow:
        await uow.checksheets.update_status(...)
        await uow.ledger.append_approval(...)
    # committed here; any exception rolls everything back
"""
import logging
from typing import Optional, Protocol

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from esqcms.db.ledger import LedgerStore, SqlLedgerStore
from esqcms.db.repository import ChecksheetRepository, SqlChecksheetRepository
from esqcms.workflow.errors import ConflictError, PersistenceError

logger = logging.getLogger(__name__)


class UnitOfWork(Protocol):
    checksheets: ChecksheetRepository
    ledger: LedgerStore

    async def __aenter__(self) -> "UnitOfWork":
        ...

    async def __aexit__(self, exc_type, exc, tb) -> Optional[bool]:
        ...


class SqlUnitOfWork:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.checksheets = SqlChecksheetRepository(session)
        self.ledger = SqlLedgerStore(session)

    async def __aenter__(self) -> "SqlUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> Optional[bool]:
        if exc is None:
            try:
                await self.session.commit()
                return None
            except SQLAlchemyError as e:
                exc = e

        await self.session.rollback()

        if isinstance(exc, IntegrityError):
            logger.warning(f"Transaction rejected by constraint: {exc.orig}")
            raise ConflictError(
                "Checksheet was modified concurrently; re-read and retry"
            ) from exc
        if isinstance(exc, SQLAlchemyError):
            logger.error(f"Transaction failed: {exc}")
            raise PersistenceError("Storage failure; no changes were applied") from exc
        return False
