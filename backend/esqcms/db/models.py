"""
Database models for DIR/FI checksheets and their workflow ledgers
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Type, Union

from sqlalchemy import (
    String, Text, Integer, Float, DateTime, Index, UniqueConstraint, Uuid, Enum as SQLEnum
)
from sqlalchemy.orm import Mapped, mapped_column

from esqcms.db.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns below."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# === ENUMS ===

class ChecksheetKind(str, Enum):
    """Polymorphic reference tag shared by both ledgers"""
    DIR = "dir"
    FI = "fi"

    @property
    def collection(self) -> str:
        """URL collection segment: dirs / fis"""
        return f"{self.value}s"

    @property
    def label(self) -> str:
        return self.name

    @classmethod
    def from_collection(cls, segment: str) -> "ChecksheetKind":
        for kind in cls:
            if kind.collection == segment:
                return kind
        raise ValueError(f"Unknown checksheet collection: {segment}")


class ChecksheetStatus(str, Enum):
    PENDING = "pending"
    REVISION = "revision"
    CHECKED = "checked"
    APPROVED = "approved"


class UserRole(str, Enum):
    INSPECTOR = "inspector"
    SUPERVISOR = "supervisor"
    OPERATOR = "operator"


class ApprovalEvent(str, Enum):
    """Event kind recorded in the approval ledger"""
    SUBMITTED = "submitted"
    RESUBMITTED = "resubmitted"
    CHECKED = "checked"
    APPROVED = "approved"


def _value_enum(enum_cls: Type[Enum], name: str) -> SQLEnum:
    # Persist enum *values* (pending/revision/...) rather than member names.
    return SQLEnum(
        enum_cls,
        name=name,
        values_callable=lambda cls: [e.value for e in cls],
    )


# === CHECKSHEETS ===

class ChecksheetMixin:
    """Columns the workflow engine reads and writes on both checksheet kinds"""

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)  # Creating inspector
    status: Mapped[ChecksheetStatus] = mapped_column(
        _value_enum(ChecksheetStatus, "checksheetstatus"),
        default=ChecksheetStatus.PENDING,
        nullable=False,
    )
    # Set while a pending checksheet is locked for review (submit/resubmit), cleared on revision
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)  # Soft delete


class Dir(ChecksheetMixin, Base):
    """Dimensional Inspection Report"""
    __tablename__ = "dirs"

    kind = ChecksheetKind.DIR

    id_dir: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    serial_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, unique=True)
    recommendation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    general_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Master-data references (owned by the master-data service, not enforced here)
    model_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    part_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    delivery_order_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    material_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    shift_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    section_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    checksheet_template_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    @property
    def code(self) -> str:
        return self.id_dir


class Fi(ChecksheetMixin, Base):
    """Final Inspection report"""
    __tablename__ = "fis"

    kind = ChecksheetKind.FI

    id_fi: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    fi_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    customer_specification: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    impeller_diameter: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    numeric_field: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    general_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    model_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    shift_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    section_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    checksheet_template_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    @property
    def code(self) -> str:
        return self.id_fi


Checksheet = Union[Dir, Fi]

CHECKSHEET_MODELS: dict[ChecksheetKind, Type[ChecksheetMixin]] = {
    ChecksheetKind.DIR: Dir,
    ChecksheetKind.FI: Fi,
}


def checksheet_model(kind: ChecksheetKind) -> Type[ChecksheetMixin]:
    return CHECKSHEET_MODELS[kind]


# === LEDGERS ===

_KIND_ENUM = _value_enum(ChecksheetKind, "checksheetkind")


class ChecksheetRevision(Base):
    """
    Append-only record of a returned-for-correction cycle.

    revision_number runs 1, 2, 3, ... per (reference_type, reference_id);
    the unique constraint rejects a second writer that allocated the same number.
    """
    __tablename__ = "checksheet_revisions"
    __table_args__ = (
        UniqueConstraint(
            "reference_type", "reference_id", "revision_number",
            name="uq_checksheet_revisions_reference_number",
        ),
        Index("ix_checksheet_revisions_reference", "reference_type", "reference_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    reference_type: Mapped[ChecksheetKind] = mapped_column(_KIND_ENUM, nullable=False)
    reference_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    revision_number: Mapped[int] = mapped_column(Integer, nullable=False)
    revision_note: Mapped[str] = mapped_column(Text, nullable=False)
    revised_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)  # Supervisor
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class ChecksheetApproval(Base):
    """Append-only record of a submit / resubmit / check / approve action"""
    __tablename__ = "checksheet_approvals"
    __table_args__ = (
        Index("ix_checksheet_approvals_reference", "reference_type", "reference_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    reference_type: Mapped[ChecksheetKind] = mapped_column(_KIND_ENUM, nullable=False)
    reference_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    event: Mapped[ApprovalEvent] = mapped_column(_value_enum(ApprovalEvent, "approvalevent"), nullable=False)
    actor_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    acted_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
