"""
Shared test helpers: actors, bearer tokens, sample checksheets and an
in-memory unit of work for engine tests.
"""
import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from esqcms.api.routes.auth import create_access_token
from esqcms.db.models import (
    ChecksheetApproval, ChecksheetKind, ChecksheetRevision, ChecksheetStatus,
    UserRole, checksheet_model, utcnow
)
from esqcms.workflow.authorizer import Actor
from esqcms.workflow.errors import PersistenceError
from esqcms.workflow.transitions import Submission


INSPECTOR = Actor(uuid.UUID("11111111-1111-1111-1111-111111111111"), UserRole.INSPECTOR)
OTHER_INSPECTOR = Actor(uuid.UUID("22222222-2222-2222-2222-222222222222"), UserRole.INSPECTOR)
SUPERVISOR = Actor(uuid.UUID("33333333-3333-3333-3333-333333333333"), UserRole.SUPERVISOR)
OPERATOR = Actor(uuid.UUID("44444444-4444-4444-4444-444444444444"), UserRole.OPERATOR)

MISSING_ID = uuid.UUID("00000000-0000-0000-0000-000000000000")


def bearer_headers(actor: Actor) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(actor.id, actor.role)}"}


@dataclass(frozen=True)
class ChecksheetRef:
    """Plain handle on a stored checksheet (safe to use after rollbacks)"""
    kind: ChecksheetKind
    id: uuid.UUID
    owner_id: uuid.UUID
    code: str

    @property
    def path(self) -> str:
        return f"/api/{self.kind.collection}/{self.id}"


def build_checksheet(
    kind: ChecksheetKind,
    owner_id: uuid.UUID = INSPECTOR.id,
    status: ChecksheetStatus = ChecksheetStatus.PENDING,
    **fields: Any,
):
    """Transient Dir/Fi with a unique code"""
    checksheet_id = fields.pop("id", None) or uuid.uuid4()
    now = utcnow()
    model = checksheet_model(kind)
    code_field = "id_dir" if kind is ChecksheetKind.DIR else "id_fi"
    fields.setdefault(code_field, f"{kind.label}-{checksheet_id.hex[:8].upper()}")
    return model(
        id=checksheet_id,
        owner_id=owner_id,
        status=status,
        submitted_at=fields.pop("submitted_at", None),
        created_at=now,
        updated_at=now,
        deleted_at=fields.pop("deleted_at", None),
        **fields,
    )


async def create_checksheet(session: AsyncSession, kind: ChecksheetKind, **kwargs) -> ChecksheetRef:
    checksheet = build_checksheet(kind, **kwargs)
    session.add(checksheet)
    await session.commit()
    return ChecksheetRef(kind, checksheet.id, checksheet.owner_id, checksheet.code)


# === In-memory unit of work ===

class StoreFailure(RuntimeError):
    """Simulated storage outage"""


def _snapshot(checksheet):
    model = type(checksheet)
    return model(**{c.key: getattr(checksheet, c.key) for c in model.__table__.columns})


class InMemoryStore:
    """Shared state behind any number of FakeUnitOfWork instances"""

    def __init__(self):
        self.checksheets: dict[tuple[ChecksheetKind, uuid.UUID], Any] = {}
        self.revisions: list[ChecksheetRevision] = []
        self.approvals: list[ChecksheetApproval] = []
        self.fail_on_append = False
        self.reads = 0

    def add(self, checksheet) -> ChecksheetRef:
        self.checksheets[(checksheet.kind, checksheet.id)] = checksheet
        return ChecksheetRef(checksheet.kind, checksheet.id, checksheet.owner_id, checksheet.code)

    def current(self, ref: ChecksheetRef):
        return self.checksheets[(ref.kind, ref.id)]


class FakeChecksheetRepository:
    def __init__(self, store: InMemoryStore, undo: list[Callable[[], None]]):
        self.store = store
        self.undo = undo

    async def get(self, kind, checksheet_id):
        self.store.reads += 1
        await asyncio.sleep(0)
        row = self.store.checksheets.get((kind, checksheet_id))
        if row is None or row.deleted_at is not None:
            return None
        return _snapshot(row)

    def _live(self, kind, checksheet_id, expected):
        row = self.store.checksheets.get((kind, checksheet_id))
        if row is None or row.deleted_at is not None or row.status != expected:
            return None
        return row

    def _remember(self, row, names):
        saved = {name: getattr(row, name) for name in names}

        def restore():
            for name, value in saved.items():
                setattr(row, name, value)

        self.undo.append(restore)

    async def update_status(self, kind, checksheet_id, *, expected, new, now, submission=Submission.KEEP):
        await asyncio.sleep(0)
        row = self._live(kind, checksheet_id, expected)
        if row is None:
            return False
        if submission is Submission.LOCK and row.submitted_at is not None:
            return False

        self._remember(row, ("status", "updated_at", "submitted_at"))
        row.status = new
        row.updated_at = now
        if submission is Submission.LOCK:
            row.submitted_at = now
        elif submission is Submission.RELEASE:
            row.submitted_at = None
        return True

    async def update_fields(self, kind, checksheet_id, *, expected, fields, now):
        await asyncio.sleep(0)
        row = self._live(kind, checksheet_id, expected)
        if row is None:
            return False
        self._remember(row, (*fields, "updated_at"))
        for name, value in fields.items():
            setattr(row, name, value)
        row.updated_at = now
        return True

    async def list_by_status(self, kind, status):
        rows = [
            _snapshot(row) for (k, _), row in self.store.checksheets.items()
            if k is kind and row.status == status and row.deleted_at is None
        ]
        return sorted(rows, key=lambda r: r.updated_at, reverse=True)


class FakeLedgerStore:
    def __init__(self, store: InMemoryStore, undo: list[Callable[[], None]]):
        self.store = store
        self.undo = undo

    def _append(self, records: list, record) -> None:
        if self.store.fail_on_append:
            raise StoreFailure("ledger unavailable")
        records.append(record)
        self.undo.append(lambda: records.remove(record))

    async def count_revisions(self, kind, reference_id) -> int:
        await asyncio.sleep(0)
        return sum(
            1 for r in self.store.revisions
            if r.reference_type is kind and r.reference_id == reference_id
        )

    async def append_revision(self, kind, reference_id, *, revision_number, note, revised_by, created_at):
        record = ChecksheetRevision(
            id=uuid.uuid4(),
            reference_type=kind,
            reference_id=reference_id,
            revision_number=revision_number,
            revision_note=note,
            revised_by=revised_by,
            created_at=created_at,
        )
        self._append(self.store.revisions, record)
        return record

    async def append_approval(self, kind, reference_id, *, event, actor_id, note, acted_at):
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
        self._append(self.store.approvals, record)
        return record

    async def revisions_for(self, kind, reference_id, newest_first=False):
        revisions = [
            r for r in self.store.revisions
            if r.reference_type is kind and r.reference_id == reference_id
        ]
        if newest_first:
            revisions.sort(key=lambda r: r.revision_number, reverse=True)
        return revisions

    async def revisions_for_references(self, kind, reference_ids):
        ids = set(reference_ids)
        revisions = [r for r in await self._for_kind(kind) if r.reference_id in ids]
        return sorted(revisions, key=lambda r: r.created_at, reverse=True)

    async def approvals_for(self, kind, reference_id):
        return [
            a for a in self.store.approvals
            if a.reference_type is kind and a.reference_id == reference_id
        ]

    async def latest_revisions(self, kind, reference_ids):
        latest: dict[uuid.UUID, ChecksheetRevision] = {}
        for revision in await self._for_kind(kind):
            if revision.reference_id not in reference_ids:
                continue
            current = latest.get(revision.reference_id)
            if current is None or revision.revision_number > current.revision_number:
                latest[revision.reference_id] = revision
        return latest

    async def _for_kind(self, kind):
        return [r for r in self.store.revisions if r.reference_type is kind]


class FakeUnitOfWork:
    """
    Unit of work over an InMemoryStore.

    Every mutation pushes an undo step; rollback replays them in reverse so
    concurrent fakes sharing one store only undo their own changes.
    """

    def __init__(self, store: InMemoryStore):
        self.store = store
        self._undo: list[Callable[[], None]] = []
        self.checksheets = FakeChecksheetRepository(store, self._undo)
        self.ledger = FakeLedgerStore(store, self._undo)
        self.commits = 0
        self.rollbacks = 0

    async def __aenter__(self) -> "FakeUnitOfWork":
        self._undo.clear()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> Optional[bool]:
        if exc is None:
            self._undo.clear()
            self.commits += 1
            return None

        for undo in reversed(self._undo):
            undo()
        self._undo.clear()
        self.rollbacks += 1
        if isinstance(exc, StoreFailure):
            raise PersistenceError("Storage failure; no changes were applied") from exc
        return False


class SteppingClock:
    """Deterministic clock advancing one second per call"""

    def __init__(self, start: datetime = datetime(2026, 1, 5, 8, 0, 0)):
        self.now = start
        self.calls = 0

    def __call__(self) -> datetime:
        self.calls += 1
        return self.now + timedelta(seconds=self.calls)
