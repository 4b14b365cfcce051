"""
Request/response schemas for the workflow API (camelCase on the wire)
"""
import uuid
from datetime import datetime
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from esqcms.db.models import ApprovalEvent, ChecksheetKind, ChecksheetStatus
from esqcms.workflow.engine import TransitionResult
from esqcms.workflow.fields import domain_payload
from esqcms.workflow.history import ChecksheetHistory, CompletedRevision, OpenRevision

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# === Requests ===

class RevisionRequest(CamelModel):
    revision_note: Optional[str] = None


class ReviewNote(CamelModel):
    note: Optional[str] = None


# === Responses ===

class ChecksheetOut(CamelModel):
    id: uuid.UUID
    kind: ChecksheetKind
    code: str
    owner_id: uuid.UUID
    status: ChecksheetStatus
    submitted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    domain_fields: dict[str, Any] = {}

    @classmethod
    def from_checksheet(cls, checksheet) -> "ChecksheetOut":
        return cls(
            id=checksheet.id,
            kind=checksheet.kind,
            code=checksheet.code,
            owner_id=checksheet.owner_id,
            status=checksheet.status,
            submitted_at=checksheet.submitted_at,
            created_at=checksheet.created_at,
            updated_at=checksheet.updated_at,
            domain_fields={
                to_camel(name): value
                for name, value in domain_payload(checksheet.kind, checksheet).items()
            },
        )


class RevisionOut(CamelModel):
    id: uuid.UUID
    reference_type: ChecksheetKind
    reference_id: uuid.UUID
    revision_number: int
    revision_note: str
    revised_by: uuid.UUID
    created_at: datetime


class ApprovalOut(CamelModel):
    id: uuid.UUID
    reference_type: ChecksheetKind
    reference_id: uuid.UUID
    event: ApprovalEvent
    actor_id: uuid.UUID
    acted_at: datetime
    note: Optional[str] = None
    created_at: datetime


class TransitionOut(CamelModel):
    transition: str
    previous_status: ChecksheetStatus
    status: ChecksheetStatus
    checksheet: ChecksheetOut
    revision: Optional[RevisionOut] = None
    approval: Optional[ApprovalOut] = None

    @classmethod
    def from_result(cls, result: TransitionResult) -> "TransitionOut":
        return cls(
            transition=result.transition.value,
            previous_status=result.previous_status,
            status=result.status,
            checksheet=ChecksheetOut.from_checksheet(result.checksheet),
            revision=RevisionOut.model_validate(result.revision) if result.revision else None,
            approval=ApprovalOut.model_validate(result.approval) if result.approval else None,
        )


class HistoryOut(CamelModel):
    checksheet: ChecksheetOut
    revision_history: List[RevisionOut]
    approval_history: List[ApprovalOut]

    @classmethod
    def from_history(cls, history: ChecksheetHistory) -> "HistoryOut":
        return cls(
            checksheet=ChecksheetOut.from_checksheet(history.checksheet),
            revision_history=[RevisionOut.model_validate(r) for r in history.revision_history],
            approval_history=[ApprovalOut.model_validate(a) for a in history.approval_history],
        )


class CurrentRevisionOut(CamelModel):
    reference_type: ChecksheetKind
    checksheet: ChecksheetOut
    latest_revision: Optional[RevisionOut] = None
    requested_at: datetime

    @classmethod
    def from_open_revision(cls, item: OpenRevision) -> "CurrentRevisionOut":
        return cls(
            reference_type=item.kind,
            checksheet=ChecksheetOut.from_checksheet(item.checksheet),
            latest_revision=(
                RevisionOut.model_validate(item.latest_revision) if item.latest_revision else None
            ),
            requested_at=item.requested_at,
        )


class CompletedRevisionOut(CamelModel):
    id: uuid.UUID  # revision id
    reference_type: ChecksheetKind
    checksheet_id: uuid.UUID
    code: str
    status: ChecksheetStatus
    revision_number: int
    revision_note: str
    revised_by: uuid.UUID
    revised_at: datetime
    completed_at: datetime
    duration: str
    duration_ms: int

    @classmethod
    def from_completed_revision(cls, item: CompletedRevision) -> "CompletedRevisionOut":
        duration_ms = int(item.duration.total_seconds() * 1000)
        hours, remainder = divmod(duration_ms, 3_600_000)
        return cls(
            id=item.revision.id,
            reference_type=item.kind,
            checksheet_id=item.checksheet.id,
            code=item.checksheet.code,
            status=item.checksheet.status,
            revision_number=item.revision.revision_number,
            revision_note=item.revision.revision_note,
            revised_by=item.revision.revised_by,
            revised_at=item.revised_at,
            completed_at=item.completed_at,
            duration=f"{hours}h {remainder // 60_000}m",
            duration_ms=duration_ms,
        )


class Page(CamelModel, Generic[T]):
    items: List[T]
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, items: List[T], *, page: int, limit: int, total: int) -> "Page[T]":
        return cls(
            items=items,
            page=page,
            limit=limit,
            total=total,
            total_pages=(total + limit - 1) // limit,
        )
