"""
Audit Trail Assembler: read-only views over a checksheet and its ledgers.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from esqcms.db.ledger import LedgerStore
from esqcms.db.models import (
    Checksheet, ChecksheetApproval, ChecksheetKind, ChecksheetRevision, ChecksheetStatus
)
from esqcms.db.repository import ChecksheetRepository
from esqcms.workflow.errors import NotFoundError


@dataclass
class ChecksheetHistory:
    kind: ChecksheetKind
    checksheet: Checksheet
    revision_history: list[ChecksheetRevision] = field(default_factory=list)
    approval_history: list[ChecksheetApproval] = field(default_factory=list)


@dataclass
class OpenRevision:
    """A checksheet currently in revision with the request that put it there"""
    kind: ChecksheetKind
    checksheet: Checksheet
    latest_revision: Optional[ChecksheetRevision]

    @property
    def requested_at(self) -> datetime:
        if self.latest_revision is not None:
            return self.latest_revision.created_at
        return self.checksheet.updated_at


@dataclass
class CompletedRevision:
    """A past revision request whose checksheet has since been checked or approved"""
    kind: ChecksheetKind
    checksheet: Checksheet
    revision: ChecksheetRevision

    @property
    def revised_at(self) -> datetime:
        return self.revision.created_at

    @property
    def completed_at(self) -> datetime:
        return self.checksheet.updated_at

    @property
    def duration(self) -> timedelta:
        return self.completed_at - self.revised_at


COMPLETED_STATUSES = (ChecksheetStatus.CHECKED, ChecksheetStatus.APPROVED)


class AuditTrailAssembler:
    def __init__(self, checksheets: ChecksheetRepository, ledger: LedgerStore):
        self.checksheets = checksheets
        self.ledger = ledger

    async def get_history(self, kind: ChecksheetKind, reference_id: uuid.UUID) -> ChecksheetHistory:
        """
        Checksheet plus both ledgers, each oldest first.

        Raises NotFoundError for unknown or soft-deleted checksheets.
        """
        checksheet = await self.checksheets.get(kind, reference_id)
        if checksheet is None:
            raise NotFoundError(kind, reference_id)

        revisions = await self.ledger.revisions_for(kind, reference_id)
        approvals = await self.ledger.approvals_for(kind, reference_id)
        return ChecksheetHistory(
            kind=kind,
            checksheet=checksheet,
            revision_history=sorted(revisions, key=lambda r: (r.created_at, r.revision_number)),
            approval_history=sorted(approvals, key=lambda a: (a.acted_at, a.created_at)),
        )

    async def current_revisions(self, kind: Optional[ChecksheetKind] = None) -> list[OpenRevision]:
        """DIRs and FIs in revision status, most recently returned first."""
        kinds = [kind] if kind is not None else list(ChecksheetKind)
        items: list[OpenRevision] = []
        for k in kinds:
            checksheets = await self.checksheets.list_by_status(k, ChecksheetStatus.REVISION)
            latest = await self.ledger.latest_revisions(k, [c.id for c in checksheets])
            items.extend(OpenRevision(k, c, latest.get(c.id)) for c in checksheets)

        items.sort(key=lambda item: item.requested_at, reverse=True)
        return items

    async def completed_revisions(self, kind: Optional[ChecksheetKind] = None) -> list[CompletedRevision]:
        """
        Revision requests replayed against checksheets that are now checked
        or approved, most recently completed first.

        A checksheet revised several times yields one entry per revision.
        """
        kinds = [kind] if kind is not None else list(ChecksheetKind)
        items: list[CompletedRevision] = []
        for k in kinds:
            done = {}
            for status in COMPLETED_STATUSES:
                for checksheet in await self.checksheets.list_by_status(k, status):
                    done[checksheet.id] = checksheet

            revisions = await self.ledger.revisions_for_references(k, done.keys())
            items.extend(CompletedRevision(k, done[r.reference_id], r) for r in revisions)

        items.sort(key=lambda item: (item.completed_at, item.revised_at), reverse=True)
        return items
