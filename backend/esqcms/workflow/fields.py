"""
Domain fields an operator may change while a checksheet is in revision.

The request body uses camelCase (``serialNumber``); snake_case is accepted too.
Unknown fields are rejected rather than silently dropped.
"""
import uuid
from typing import Any, Mapping, Optional, Type

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from esqcms.db.models import ChecksheetKind
from esqcms.workflow.errors import ValidationError


class _RevisionUpdate(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        protected_namespaces=(),  # model_id is a domain field
    )


class DirRevisionUpdate(_RevisionUpdate):
    serial_number: Optional[str] = None
    recommendation: Optional[str] = None
    general_note: Optional[str] = None
    model_id: Optional[uuid.UUID] = None
    part_id: Optional[uuid.UUID] = None
    customer_id: Optional[uuid.UUID] = None
    delivery_order_id: Optional[uuid.UUID] = None
    material_id: Optional[uuid.UUID] = None
    shift_id: Optional[uuid.UUID] = None
    section_id: Optional[uuid.UUID] = None
    checksheet_template_id: Optional[uuid.UUID] = None


class FiRevisionUpdate(_RevisionUpdate):
    fi_number: Optional[str] = None
    customer_specification: Optional[str] = None
    impeller_diameter: Optional[float] = None
    numeric_field: Optional[float] = None
    general_note: Optional[str] = None
    model_id: Optional[uuid.UUID] = None
    customer_id: Optional[uuid.UUID] = None
    shift_id: Optional[uuid.UUID] = None
    section_id: Optional[uuid.UUID] = None
    checksheet_template_id: Optional[uuid.UUID] = None


REVISION_SCHEMAS: dict[ChecksheetKind, Type[_RevisionUpdate]] = {
    ChecksheetKind.DIR: DirRevisionUpdate,
    ChecksheetKind.FI: FiRevisionUpdate,
}

# Columns exposed as the checksheet's domain payload
DOMAIN_FIELDS: dict[ChecksheetKind, tuple[str, ...]] = {
    kind: tuple(schema.model_fields) for kind, schema in REVISION_SCHEMAS.items()
}


def validate_revision_fields(kind: ChecksheetKind, changes: Mapping[str, Any]) -> dict[str, Any]:
    """Validate a partial update and return it keyed by column name."""
    schema = REVISION_SCHEMAS[kind]
    try:
        parsed = schema.model_validate(dict(changes))
    except PydanticValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise ValidationError(
            f"Invalid {kind.label} fields: {', '.join(fields)}",
            fields=fields,
        ) from e

    values = parsed.model_dump(exclude_unset=True)
    if not values:
        raise ValidationError("No editable fields supplied")
    return values


def domain_payload(kind: ChecksheetKind, checksheet: Any) -> dict[str, Any]:
    return {name: getattr(checksheet, name) for name in DOMAIN_FIELDS[kind]}
