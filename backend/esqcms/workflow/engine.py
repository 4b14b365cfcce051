"""
Workflow Engine: applies one transition to a DIR/FI checksheet.

Every call runs the same pipeline inside a single unit of work:

    1. load the checksheet           (NotFoundError when absent or soft-deleted)
    2. authorize role and ownership   (AuthorizationError, nothing written)
    3. compare the observed status    (ConflictError)
    4. conditional write on the observed status, then the ledger append
       (ConflictError when the write matched no row)
    5. commit

A blank revision note is rejected before step 1. Field updates are validated
after step 3, so a wrong actor or a wrong status is reported first.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from esqcms.db.models import (
    Checksheet, ChecksheetApproval, ChecksheetKind, ChecksheetRevision,
    ChecksheetStatus, utcnow
)
from esqcms.db.unit_of_work import UnitOfWork
from esqcms.workflow.authorizer import Actor, ensure_authorized
from esqcms.workflow.errors import ConflictError, NotFoundError, ValidationError, WorkflowError
from esqcms.workflow.fields import validate_revision_fields
from esqcms.workflow.transitions import Submission, Transition, rule_for

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    kind: ChecksheetKind
    checksheet_id: uuid.UUID
    transition: Transition
    previous_status: ChecksheetStatus
    status: ChecksheetStatus
    checksheet: Checksheet
    revision: Optional[ChecksheetRevision] = None
    approval: Optional[ChecksheetApproval] = None


class WorkflowEngine:
    """
    Drives DIR/FI checksheets through the review workflow.

    The engine only talks to the repository and ledger exposed by ``uow``;
    it never retries. Callers receiving ConflictError should re-read.
    """

    def __init__(self, uow: UnitOfWork, clock: Callable[[], datetime] = utcnow):
        self.uow = uow
        self.clock = clock

    async def submit(self, kind: ChecksheetKind, checksheet_id: uuid.UUID, actor: Actor) -> TransitionResult:
        """Owner inspector locks a pending checksheet for supervisor review."""
        return await self._apply(Transition.SUBMIT, kind, checksheet_id, actor)

    async def request_revision(
        self,
        kind: ChecksheetKind,
        checksheet_id: uuid.UUID,
        actor: Actor,
        note: Optional[str],
    ) -> TransitionResult:
        """Supervisor returns a pending or checked checksheet for correction."""
        note = (note or "").strip()
        if not note:
            raise ValidationError(
                "Revision note is required",
                kind=kind.value,
                checksheet_id=str(checksheet_id),
            )
        return await self._apply(Transition.REQUEST_REVISION, kind, checksheet_id, actor, note=note)

    async def edit_during_revision(
        self,
        kind: ChecksheetKind,
        checksheet_id: uuid.UUID,
        actor: Actor,
        changes: Mapping[str, Any],
    ) -> TransitionResult:
        """Operator corrects domain fields while the checksheet is in revision."""
        return await self._apply(Transition.EDIT_DURING_REVISION, kind, checksheet_id, actor, changes=changes)

    async def resubmit(self, kind: ChecksheetKind, checksheet_id: uuid.UUID, actor: Actor) -> TransitionResult:
        return await self._apply(Transition.RESUBMIT, kind, checksheet_id, actor)

    async def check(
        self,
        kind: ChecksheetKind,
        checksheet_id: uuid.UUID,
        actor: Actor,
        note: Optional[str] = None,
    ) -> TransitionResult:
        return await self._apply(Transition.CHECK, kind, checksheet_id, actor, note=_clean_note(note))

    async def approve(
        self,
        kind: ChecksheetKind,
        checksheet_id: uuid.UUID,
        actor: Actor,
        note: Optional[str] = None,
    ) -> TransitionResult:
        return await self._apply(Transition.APPROVE, kind, checksheet_id, actor, note=_clean_note(note))

    async def _apply(
        self,
        transition: Transition,
        kind: ChecksheetKind,
        checksheet_id: uuid.UUID,
        actor: Actor,
        *,
        note: Optional[str] = None,
        changes: Optional[Mapping[str, Any]] = None,
    ) -> TransitionResult:
        rule = rule_for(transition)
        log_fields = {
            "transition": transition.value,
            "kind": kind.value,
            "checksheet_id": str(checksheet_id),
        }

        try:
            async with self.uow as uow:
                checksheet = await uow.checksheets.get(kind, checksheet_id)
                if checksheet is None:
                    raise NotFoundError(kind, checksheet_id)

                ensure_authorized(actor.role, transition, checksheet.owner_id == actor.id)

                observed = checksheet.status
                if not rule.allows(observed):
                    raise ConflictError(
                        f"Cannot {transition.value} a {kind.label} in '{observed.value}' status",
                        kind=kind.value,
                        checksheet_id=str(checksheet_id),
                        status=observed.value,
                    )
                if rule.submission is Submission.LOCK and checksheet.submitted_at is not None:
                    raise ConflictError(
                        f"{kind.label} is already submitted for review",
                        kind=kind.value,
                        checksheet_id=str(checksheet_id),
                        status=observed.value,
                    )

                fields = validate_revision_fields(kind, changes) if changes is not None else None

                now = self.clock()
                if fields is not None:
                    written = await uow.checksheets.update_fields(
                        kind, checksheet_id, expected=observed, fields=fields, now=now
                    )
                else:
                    written = await uow.checksheets.update_status(
                        kind, checksheet_id,
                        expected=observed,
                        new=rule.target,
                        now=now,
                        submission=rule.submission,
                    )
                if not written:
                    raise ConflictError(
                        f"{kind.label} was modified concurrently; re-read and retry",
                        kind=kind.value,
                        checksheet_id=str(checksheet_id),
                        status=observed.value,
                    )

                revision = None
                approval = None
                if transition is Transition.REQUEST_REVISION:
                    number = await uow.ledger.count_revisions(kind, checksheet_id) + 1
                    revision = await uow.ledger.append_revision(
                        kind, checksheet_id,
                        revision_number=number,
                        note=note,
                        revised_by=actor.id,
                        created_at=now,
                    )
                elif rule.event is not None:
                    approval = await uow.ledger.append_approval(
                        kind, checksheet_id,
                        event=rule.event,
                        actor_id=actor.id,
                        note=note or rule.default_note,
                        acted_at=now,
                    )

                updated = await uow.checksheets.get(kind, checksheet_id)
        except WorkflowError as e:
            logger.warning(
                f"Rejected {transition.value} on {kind.label} {checksheet_id}: {e.message}",
                extra={**log_fields, "code": e.code},
            )
            raise

        logger.info(
            f"{kind.label} {checksheet_id}: {transition.value} ({observed.value} -> {rule.target.value})",
            extra={**log_fields, "from_status": observed.value, "to_status": rule.target.value},
        )
        return TransitionResult(
            kind=kind,
            checksheet_id=checksheet_id,
            transition=transition,
            previous_status=observed,
            status=rule.target,
            checksheet=updated,
            revision=revision,
            approval=approval,
        )


def _clean_note(note: Optional[str]) -> Optional[str]:
    if note is None:
        return None
    return note.strip() or None
