"""
Ledger Store: append-only writer/reader for the revision and approval ledgers.

Both tables are keyed by the polymorphic (reference_type, reference_id) pair.
Nothing here updates or deletes a ledger row.
"""
import uuid
from datetime import datetime
from typing import Iterable, Optional, Protocol

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from esqcms.db.models import (
    ApprovalEvent, ChecksheetApproval, ChecksheetKind, ChecksheetRevision
)


class LedgerStore(Protocol):
    async def count_revisions(self, kind: ChecksheetKind, reference_id: uuid.UUID) -> int:
        ...

    async def append_revision(
        self,
        kind: ChecksheetKind,
        reference_id: uuid.UUID,
        *,
        revision_number: int,
        note: str,
        revised_by: uuid.UUID,
        created_at: datetime,
    ) -> ChecksheetRevision:
        ...

    async def append_approval(
        self,
        kind: ChecksheetKind,
        reference_id: uuid.UUID,
        *,
        event: ApprovalEvent,
        actor_id: uuid.UUID,
        note: Optional[str],
        acted_at: datetime,
    ) -> ChecksheetApproval:
        ...

    async def revisions_for(
        self, kind: ChecksheetKind, reference_id: uuid.UUID, newest_first: bool = False
    ) -> list[ChecksheetRevision]:
        """Oldest first, or highest revision number first with ``newest_first``."""
        ...

    async def revisions_for_references(
        self, kind: ChecksheetKind, reference_ids: Iterable[uuid.UUID]
    ) -> list[ChecksheetRevision]:
        ...

    async def approvals_for(self, kind: ChecksheetKind, reference_id: uuid.UUID) -> list[ChecksheetApproval]:
        """Oldest first (by acted_at)."""
        ...

    async def latest_revisions(
        self, kind: ChecksheetKind, reference_ids: Iterable[uuid.UUID]
    ) -> dict[uuid.UUID, ChecksheetRevision]:
        ...


class SqlLedgerStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    # === Writes ===

    async def count_revisions(self, kind: ChecksheetKind, reference_id: uuid.UUID) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(ChecksheetRevision)
            .where(
                ChecksheetRevision.reference_type == kind,
                ChecksheetRevision.reference_id == reference_id,
            )
        )
        return result.scalar_one()

    async def append_revision(
        self,
        kind: ChecksheetKind,
        reference_id: uuid.UUID,
        *,
        revision_number: int,
        note: str,
        revised_by: uuid.UUID,
        created_at: datetime,
    ) -> ChecksheetRevision:
        record = ChecksheetRevision(
            id=uuid.uuid4(),
            reference_type=kind,
            reference_id=reference_id,
            revision_number=revision_number,
            revision_note=note,
            revised_by=revised_by,
            created_at=created_at,
        )
        self.session.add(record)
        await self.session.flush()  # Surface constraint violations inside the transaction
        return record

    async def append_approval(
        self,
        kind: ChecksheetKind,
        reference_id: uuid.UUID,
        *,
        event: ApprovalEvent,
        actor_id: uuid.UUID,
        note: Optional[str],
        acted_at: datetime,
    ) -> ChecksheetApproval:
        record = ChecksheetApproval(
            id=uuid.uuid4(),
            reference_type=kind,
            reference_id=reference_id,
            event=event,
            actor_id=actor_id,
            acted_at=acted_at,
            note=note,
            created_at=acted_at,
        )
        self.session.add(record)
        await self.session.flush()
        return record

    # === Reads ===

    async def revisions_for(
        self,
        kind: ChecksheetKind,
        reference_id: uuid.UUID,
        newest_first: bool = False,
    ) -> list[ChecksheetRevision]:
        stmt = select(ChecksheetRevision).where(
            ChecksheetRevision.reference_type == kind,
            ChecksheetRevision.reference_id == reference_id,
        )
        if newest_first:
            stmt = stmt.order_by(ChecksheetRevision.revision_number.desc())
        else:
            stmt = stmt.order_by(ChecksheetRevision.created_at, ChecksheetRevision.revision_number)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def approvals_for(self, kind: ChecksheetKind, reference_id: uuid.UUID) -> list[ChecksheetApproval]:
        result = await self.session.execute(
            select(ChecksheetApproval)
            .where(
                ChecksheetApproval.reference_type == kind,
                ChecksheetApproval.reference_id == reference_id,
            )
            .order_by(ChecksheetApproval.acted_at, ChecksheetApproval.created_at)
        )
        return list(result.scalars().all())

    async def latest_revisions(
        self, kind: ChecksheetKind, reference_ids: Iterable[uuid.UUID]
    ) -> dict[uuid.UUID, ChecksheetRevision]:
        ids = list(reference_ids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(ChecksheetRevision)
            .where(
                ChecksheetRevision.reference_type == kind,
                ChecksheetRevision.reference_id.in_(ids),
            )
            .order_by(ChecksheetRevision.revision_number.desc())
        )
        latest: dict[uuid.UUID, ChecksheetRevision] = {}
        for revision in result.scalars().all():
            latest.setdefault(revision.reference_id, revision)
        return latest

    async def revisions_for_references(
        self, kind: ChecksheetKind, reference_ids: Iterable[uuid.UUID]
    ) -> list[ChecksheetRevision]:
        """Every revision of the given checksheets, newest first."""
        ids = list(reference_ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(ChecksheetRevision)
            .where(
                ChecksheetRevision.reference_type == kind,
                ChecksheetRevision.reference_id.in_(ids),
            )
            .order_by(ChecksheetRevision.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_revisions(
        self,
        *,
        kind: Optional[ChecksheetKind] = None,
        reference_id: Optional[uuid.UUID] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[ChecksheetRevision], int]:
        """Page of revisions, newest first, plus the total matching count."""
        conditions = []
        if kind is not None:
            conditions.append(ChecksheetRevision.reference_type == kind)
        if reference_id is not None:
            conditions.append(ChecksheetRevision.reference_id == reference_id)

        total = (
            await self.session.execute(
                select(func.count()).select_from(ChecksheetRevision).where(*conditions)
            )
        ).scalar_one()
        result = await self.session.execute(
            select(ChecksheetRevision)
            .where(*conditions)
            .order_by(ChecksheetRevision.created_at.desc(), ChecksheetRevision.revision_number.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def get_revision(self, revision_id: uuid.UUID) -> Optional[ChecksheetRevision]:
        return await self.session.get(ChecksheetRevision, revision_id)

    async def list_approvals(
        self,
        *,
        kind: Optional[ChecksheetKind] = None,
        reference_id: Optional[uuid.UUID] = None,
        event: Optional[ApprovalEvent] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[ChecksheetApproval], int]:
        """Page of approval-ledger entries, newest first, plus the total."""
        conditions = []
        if kind is not None:
            conditions.append(ChecksheetApproval.reference_type == kind)
        if reference_id is not None:
            conditions.append(ChecksheetApproval.reference_id == reference_id)
        if event is not None:
            conditions.append(ChecksheetApproval.event == event)

        total = (
            await self.session.execute(
                select(func.count()).select_from(ChecksheetApproval).where(*conditions)
            )
        ).scalar_one()
        result = await self.session.execute(
            select(ChecksheetApproval)
            .where(*conditions)
            .order_by(ChecksheetApproval.acted_at.desc(), ChecksheetApproval.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def get_approval(self, approval_id: uuid.UUID) -> Optional[ChecksheetApproval]:
        return await self.session.get(ChecksheetApproval, approval_id)
