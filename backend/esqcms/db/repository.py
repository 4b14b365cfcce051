"""
Checksheet Repository: persistence access for DIR/FI records.

Writes are conditional on the status the caller observed; a zero-row update
means another transaction changed the checksheet first.
"""
import uuid
from datetime import datetime
from typing import Any, Mapping, Optional, Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from esqcms.db.models import (
    Checksheet, ChecksheetKind, ChecksheetStatus, checksheet_model
)
from esqcms.workflow.errors import ValidationError
from esqcms.workflow.transitions import Submission


class ChecksheetRepository(Protocol):
    async def get(self, kind: ChecksheetKind, checksheet_id: uuid.UUID) -> Optional[Checksheet]:
        """Live (not soft-deleted) checksheet, or None."""
        ...

    async def update_status(
        self,
        kind: ChecksheetKind,
        checksheet_id: uuid.UUID,
        *,
        expected: ChecksheetStatus,
        new: ChecksheetStatus,
        now: datetime,
        submission: Submission = Submission.KEEP,
    ) -> bool:
        """Set ``new`` only if the row still has ``expected``; True when written."""
        ...

    async def update_fields(
        self,
        kind: ChecksheetKind,
        checksheet_id: uuid.UUID,
        *,
        expected: ChecksheetStatus,
        fields: Mapping[str, Any],
        now: datetime,
    ) -> bool:
        ...

    async def list_by_status(self, kind: ChecksheetKind, status: ChecksheetStatus) -> list[Checksheet]:
        ...


class SqlChecksheetRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, kind: ChecksheetKind, checksheet_id: uuid.UUID) -> Optional[Checksheet]:
        model = checksheet_model(kind)
        result = await self.session.execute(
            select(model)
            .where(model.id == checksheet_id, model.deleted_at.is_(None))
            # Always re-read the row; the identity map may hold a stale copy.
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def update_status(
        self,
        kind: ChecksheetKind,
        checksheet_id: uuid.UUID,
        *,
        expected: ChecksheetStatus,
        new: ChecksheetStatus,
        now: datetime,
        submission: Submission = Submission.KEEP,
    ) -> bool:
        model = checksheet_model(kind)
        values: dict[str, Any] = {"status": new, "updated_at": now}
        stmt = update(model).where(
            model.id == checksheet_id,
            model.status == expected,
            model.deleted_at.is_(None),
        )
        if submission is Submission.LOCK:
            stmt = stmt.where(model.submitted_at.is_(None))
            values["submitted_at"] = now
        elif submission is Submission.RELEASE:
            values["submitted_at"] = None

        result = await self.session.execute(
            stmt.values(**values).execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def update_fields(
        self,
        kind: ChecksheetKind,
        checksheet_id: uuid.UUID,
        *,
        expected: ChecksheetStatus,
        fields: Mapping[str, Any],
        now: datetime,
    ) -> bool:
        model = checksheet_model(kind)
        stmt = (
            update(model)
            .where(
                model.id == checksheet_id,
                model.status == expected,
                model.deleted_at.is_(None),
            )
            .values(**fields, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(stmt)
        except IntegrityError as e:
            if "serial_number" in fields:
                raise ValidationError("Serial number already exists", fields=["serial_number"]) from e
            raise ValidationError("Duplicate value for a unique field", fields=sorted(fields)) from e
        return result.rowcount == 1

    async def list_by_status(self, kind: ChecksheetKind, status: ChecksheetStatus) -> list[Checksheet]:
        model = checksheet_model(kind)
        result = await self.session.execute(
            select(model)
            .where(model.status == status, model.deleted_at.is_(None))
            .order_by(model.updated_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())
