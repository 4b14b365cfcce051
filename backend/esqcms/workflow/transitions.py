"""
Fixed transition graph for DIR/FI checksheets.

    pending --submit-------------> pending (locked for review)
    pending --check--------------> checked
    pending --request-revision---> revision
    checked --request-revision---> revision
    checked --approve------------> approved   (terminal)
    revision --edit--------------> revision   (fields only)
    revision --resubmit----------> pending    (locked for review)
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from esqcms.db.models import ApprovalEvent, ChecksheetStatus


class Transition(str, Enum):
    SUBMIT = "submit"
    REQUEST_REVISION = "request-revision"
    EDIT_DURING_REVISION = "edit-during-revision"
    RESUBMIT = "resubmit"
    CHECK = "check"
    APPROVE = "approve"


class Submission(str, Enum):
    """What a transition does to the review lock (``submitted_at``)."""
    KEEP = "keep"
    LOCK = "lock"  # requires the lock to be free, then takes it
    RELEASE = "release"


@dataclass(frozen=True)
class TransitionRule:
    transition: Transition
    sources: frozenset[ChecksheetStatus]
    target: ChecksheetStatus
    event: Optional[ApprovalEvent] = None
    submission: Submission = Submission.KEEP

    @property
    def default_note(self) -> Optional[str]:
        return self.event.value if self.event is not None else None

    def allows(self, status: ChecksheetStatus) -> bool:
        return status in self.sources


TRANSITIONS: dict[Transition, TransitionRule] = {
    Transition.SUBMIT: TransitionRule(
        Transition.SUBMIT,
        sources=frozenset({ChecksheetStatus.PENDING}),
        target=ChecksheetStatus.PENDING,
        event=ApprovalEvent.SUBMITTED,
        submission=Submission.LOCK,
    ),
    Transition.REQUEST_REVISION: TransitionRule(
        Transition.REQUEST_REVISION,
        sources=frozenset({ChecksheetStatus.PENDING, ChecksheetStatus.CHECKED}),
        target=ChecksheetStatus.REVISION,
        submission=Submission.RELEASE,
    ),
    Transition.EDIT_DURING_REVISION: TransitionRule(
        Transition.EDIT_DURING_REVISION,
        sources=frozenset({ChecksheetStatus.REVISION}),
        target=ChecksheetStatus.REVISION,
    ),
    Transition.RESUBMIT: TransitionRule(
        Transition.RESUBMIT,
        sources=frozenset({ChecksheetStatus.REVISION}),
        target=ChecksheetStatus.PENDING,
        event=ApprovalEvent.RESUBMITTED,
        submission=Submission.LOCK,
    ),
    Transition.CHECK: TransitionRule(
        Transition.CHECK,
        sources=frozenset({ChecksheetStatus.PENDING}),
        target=ChecksheetStatus.CHECKED,
        event=ApprovalEvent.CHECKED,
    ),
    Transition.APPROVE: TransitionRule(
        Transition.APPROVE,
        sources=frozenset({ChecksheetStatus.CHECKED}),
        target=ChecksheetStatus.APPROVED,
        event=ApprovalEvent.APPROVED,
    ),
}


def rule_for(transition: Transition) -> TransitionRule:
    return TRANSITIONS[transition]
