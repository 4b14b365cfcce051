"""
Shared validation helpers for API routes.
"""
from dataclasses import dataclass

from fastapi import HTTPException, Query

from esqcms.core.config import settings
from esqcms.db.models import ChecksheetKind


def resolve_kind(collection: str) -> ChecksheetKind:
    """Map the ``dirs`` / ``fis`` path segment to a checksheet kind (404 otherwise)."""
    try:
        return ChecksheetKind.from_collection(collection)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown checksheet collection: {collection}")


@dataclass
class PageParams:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_params(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
) -> PageParams:
    return PageParams(page=page, limit=limit)
