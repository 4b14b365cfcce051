"""
Read-only browsing of the revision and approval ledgers
"""
import uuid
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from esqcms.db import get_db
from esqcms.db.ledger import SqlLedgerStore
from esqcms.db.models import ApprovalEvent, ChecksheetKind
from esqcms.db.repository import SqlChecksheetRepository
from esqcms.api.schemas import ApprovalOut, CompletedRevisionOut, CurrentRevisionOut, Page, RevisionOut
from esqcms.api.validation import PageParams, page_params
from esqcms.workflow.history import AuditTrailAssembler

router = APIRouter()


# === Revisions ===

@router.get("/revisions", response_model=Page[RevisionOut])
async def list_revisions(
    reference_type: Optional[ChecksheetKind] = Query(None, alias="referenceType"),
    reference_id: Optional[uuid.UUID] = Query(None, alias="referenceId"),
    paging: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
):
    """All revision requests, newest first"""
    items, total = await SqlLedgerStore(db).list_revisions(
        kind=reference_type,
        reference_id=reference_id,
        offset=paging.offset,
        limit=paging.limit,
    )
    return Page[RevisionOut].build(
        [RevisionOut.model_validate(r) for r in items],
        page=paging.page,
        limit=paging.limit,
        total=total,
    )


@router.get("/revisions/current", response_model=Page[CurrentRevisionOut])
async def list_current_revisions(
    reference_type: Optional[ChecksheetKind] = Query(None, alias="referenceType"),
    search: str = "",
    paging: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
):
    """
    DIRs and FIs currently in revision, each with its latest revision request.

    Both kinds are merged and sorted by request time, so pagination happens
    after the merge.
    """
    assembler = AuditTrailAssembler(SqlChecksheetRepository(db), SqlLedgerStore(db))
    items = await assembler.current_revisions(reference_type)

    term = search.strip().lower()
    if term:
        items = [item for item in items if term in item.checksheet.code.lower()]

    window = items[paging.offset:paging.offset + paging.limit]
    return Page[CurrentRevisionOut].build(
        [CurrentRevisionOut.from_open_revision(item) for item in window],
        page=paging.page,
        limit=paging.limit,
        total=len(items),
    )


@router.get("/revisions/history", response_model=Page[CompletedRevisionOut])
async def list_completed_revisions(
    reference_type: Optional[ChecksheetKind] = Query(None, alias="referenceType"),
    search: str = "",
    paging: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
):
    """Revision requests whose checksheet is now checked or approved, latest completion first"""
    assembler = AuditTrailAssembler(SqlChecksheetRepository(db), SqlLedgerStore(db))
    items = await assembler.completed_revisions(reference_type)

    term = search.strip().lower()
    if term:
        items = [item for item in items if term in item.checksheet.code.lower()]

    window = items[paging.offset:paging.offset + paging.limit]
    return Page[CompletedRevisionOut].build(
        [CompletedRevisionOut.from_completed_revision(item) for item in window],
        page=paging.page,
        limit=paging.limit,
        total=len(items),
    )


@router.get("/revisions/reference/{reference_type}/{reference_id}", response_model=list[RevisionOut])
async def list_revisions_for_reference(
    reference_type: ChecksheetKind,
    reference_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Revisions of one checksheet, highest revision number first"""
    revisions = await SqlLedgerStore(db).revisions_for(reference_type, reference_id, newest_first=True)
    return [RevisionOut.model_validate(r) for r in revisions]


@router.get("/revisions/{revision_id}", response_model=RevisionOut)
async def get_revision(
    revision_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    revision = await SqlLedgerStore(db).get_revision(revision_id)
    if not revision:
        raise HTTPException(status_code=404, detail="Revision not found")
    return RevisionOut.model_validate(revision)


# === Approvals ===

@router.get("/approvals", response_model=Page[ApprovalOut])
async def list_approvals(
    reference_type: Optional[ChecksheetKind] = Query(None, alias="referenceType"),
    reference_id: Optional[uuid.UUID] = Query(None, alias="referenceId"),
    event: Optional[ApprovalEvent] = None,
    paging: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
):
    items, total = await SqlLedgerStore(db).list_approvals(
        kind=reference_type,
        reference_id=reference_id,
        event=event,
        offset=paging.offset,
        limit=paging.limit,
    )
    return Page[ApprovalOut].build(
        [ApprovalOut.model_validate(a) for a in items],
        page=paging.page,
        limit=paging.limit,
        total=total,
    )


@router.get("/approvals/reference/{reference_type}/{reference_id}", response_model=list[ApprovalOut])
async def list_approvals_for_reference(
    reference_type: ChecksheetKind,
    reference_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Approval-ledger entries of one checksheet, oldest first"""
    approvals = await SqlLedgerStore(db).approvals_for(reference_type, reference_id)
    return [ApprovalOut.model_validate(a) for a in approvals]


@router.get("/approvals/{approval_id}", response_model=ApprovalOut)
async def get_approval(
    approval_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    approval = await SqlLedgerStore(db).get_approval(approval_id)
    if not approval:
        raise HTTPException(status_code=404, detail="Approval not found")
    return ApprovalOut.model_validate(approval)
