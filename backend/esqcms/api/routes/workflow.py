"""
Checksheet workflow routes: submit / request-revision / edit / resubmit / check / approve
"""
import uuid
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from esqcms.db import get_db
from esqcms.db.ledger import SqlLedgerStore
from esqcms.db.models import ChecksheetKind
from esqcms.db.repository import SqlChecksheetRepository
from esqcms.db.unit_of_work import SqlUnitOfWork
from esqcms.api.routes.auth import require_actor
from esqcms.api.schemas import HistoryOut, ReviewNote, RevisionRequest, TransitionOut
from esqcms.api.validation import resolve_kind
from esqcms.workflow.authorizer import Actor
from esqcms.workflow.engine import WorkflowEngine
from esqcms.workflow.history import AuditTrailAssembler

router = APIRouter()


def get_engine(db: AsyncSession = Depends(get_db)) -> WorkflowEngine:
    return WorkflowEngine(SqlUnitOfWork(db))


def get_assembler(db: AsyncSession = Depends(get_db)) -> AuditTrailAssembler:
    return AuditTrailAssembler(SqlChecksheetRepository(db), SqlLedgerStore(db))


@router.post("/{collection}/{checksheet_id}/submit", response_model=TransitionOut)
async def submit_checksheet(
    checksheet_id: uuid.UUID,
    kind: ChecksheetKind = Depends(resolve_kind),
    actor: Actor = require_actor,
    engine: WorkflowEngine = Depends(get_engine),
):
    """Owner inspector submits a pending checksheet for review"""
    result = await engine.submit(kind, checksheet_id, actor)
    return TransitionOut.from_result(result)


@router.post("/{collection}/{checksheet_id}/request-revision", response_model=TransitionOut)
async def request_revision(
    checksheet_id: uuid.UUID,
    request: RevisionRequest,
    kind: ChecksheetKind = Depends(resolve_kind),
    actor: Actor = require_actor,
    engine: WorkflowEngine = Depends(get_engine),
):
    """Supervisor returns a pending or checked checksheet with a revision note"""
    result = await engine.request_revision(kind, checksheet_id, actor, request.revision_note)
    return TransitionOut.from_result(result)


@router.put("/revision/{collection}/{checksheet_id}", response_model=TransitionOut)
async def edit_during_revision(
    checksheet_id: uuid.UUID,
    changes: dict[str, Any] = Body(...),
    kind: ChecksheetKind = Depends(resolve_kind),
    actor: Actor = require_actor,
    engine: WorkflowEngine = Depends(get_engine),
):
    """Operator corrects domain fields of a checksheet in revision"""
    result = await engine.edit_during_revision(kind, checksheet_id, actor, changes)
    return TransitionOut.from_result(result)


@router.post("/{collection}/{checksheet_id}/resubmit", response_model=TransitionOut)
async def resubmit_checksheet(
    checksheet_id: uuid.UUID,
    kind: ChecksheetKind = Depends(resolve_kind),
    actor: Actor = require_actor,
    engine: WorkflowEngine = Depends(get_engine),
):
    result = await engine.resubmit(kind, checksheet_id, actor)
    return TransitionOut.from_result(result)


@router.post("/{collection}/{checksheet_id}/check", response_model=TransitionOut)
async def check_checksheet(
    checksheet_id: uuid.UUID,
    request: Optional[ReviewNote] = None,
    kind: ChecksheetKind = Depends(resolve_kind),
    actor: Actor = require_actor,
    engine: WorkflowEngine = Depends(get_engine),
):
    result = await engine.check(kind, checksheet_id, actor, request.note if request else None)
    return TransitionOut.from_result(result)


@router.post("/{collection}/{checksheet_id}/approve", response_model=TransitionOut)
async def approve_checksheet(
    checksheet_id: uuid.UUID,
    request: Optional[ReviewNote] = None,
    kind: ChecksheetKind = Depends(resolve_kind),
    actor: Actor = require_actor,
    engine: WorkflowEngine = Depends(get_engine),
):
    result = await engine.approve(kind, checksheet_id, actor, request.note if request else None)
    return TransitionOut.from_result(result)


@router.get("/{collection}/{checksheet_id}/history", response_model=HistoryOut)
async def get_history(
    checksheet_id: uuid.UUID,
    kind: ChecksheetKind = Depends(resolve_kind),
    assembler: AuditTrailAssembler = Depends(get_assembler),
):
    """Checksheet with its revision and approval history, oldest first"""
    history = await assembler.get_history(kind, checksheet_id)
    return HistoryOut.from_history(history)
