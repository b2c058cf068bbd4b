"""Translation between in-memory shapes and remote rows.

Each :class:`RecordMapper` is a pure, stateless renaming of attributes to
remote column names (and back), plus per-field normalization of written
values. ``to_row`` only emits the keys present in its input so partial
updates stay partial.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel

from . import schemas
from .permissions import (
    dump_tab_permissions,
    parse_permissions,
    parse_tab_permissions,
)

M = TypeVar("M", bound=BaseModel)


def normalize_text(value: Optional[str]) -> Optional[str]:
    """Strip surrounding whitespace; blank values become ``None``."""
    if value is None:
        return None
    trimmed = str(value).strip()
    return trimmed or None


def normalize_mileage(value: Any) -> Optional[float]:
    """Parse a mileage typed as a number or free text such as ``"12 300 km"``."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if value != value else float(value)
    digits = re.sub(r"[^0-9.]", "", str(value).strip())
    if not digits:
        return None
    try:
        return float(digits)
    except ValueError:
        return None


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def _section_values(value: Any) -> Any:
    return [_enum_value(section) for section in value or []]


def _tab_permission_values(value: Any) -> Any:
    return dump_tab_permissions(parse_tab_permissions(value or {}))


@dataclass(frozen=True)
class RecordMapper(Generic[M]):
    """Bidirectional attribute/column map for one entity kind.

    Attributes:
        model: In-memory model class built by :meth:`parse`.
        columns: Attribute name to remote column name.
        writers: Normalizers applied to attribute values before writing.
        readers: Converters applied to column values after reading.
    """

    model: Type[M]
    columns: Dict[str, str]
    writers: Dict[str, Callable[[Any], Any]] = field(default_factory=dict)
    readers: Dict[str, Callable[[Any], Any]] = field(default_factory=dict)

    def to_row(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        row: Dict[str, Any] = {}
        for attr, value in values.items():
            column = self.columns.get(attr)
            if column is None:
                continue
            writer = self.writers.get(attr)
            row[column] = writer(value) if writer else _enum_value(value)
        return row

    def from_row(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for attr, column in self.columns.items():
            if column not in row:
                continue
            value = row[column]
            reader = self.readers.get(attr)
            if reader:
                value = reader(value)
            if value is None and attr in self.model.model_fields:
                default = self.model.model_fields[attr]
                if not default.is_required():
                    continue
            values[attr] = value
        return values

    def parse(self, row: Mapping[str, Any]) -> M:
        return self.model.model_validate(self.from_row(row))


def _identity_columns(*names: str) -> Dict[str, str]:
    return {name: name for name in names}


USERS = RecordMapper(
    model=schemas.User,
    columns={
        **_identity_columns("id", "name", "email", "permissions", "tab_permissions", "created_at"),
        "password_hash": "password",
    },
    writers={
        "email": lambda value: str(value).strip().lower(),
        "permissions": _section_values,
        "tab_permissions": _tab_permission_values,
    },
    readers={
        "permissions": parse_permissions,
        "tab_permissions": parse_tab_permissions,
    },
)

CONTACTS = RecordMapper(
    model=schemas.Contact,
    columns=_identity_columns(
        "id",
        "name",
        "phone",
        "email",
        "iin",
        "doc_number",
        "status",
        "photo",
        "emergency_contact_id",
        "created_at",
        "created_by",
    ),
    writers={
        "email": normalize_text,
        "iin": normalize_text,
        "doc_number": normalize_text,
        "photo": normalize_text,
        "emergency_contact_id": normalize_text,
    },
)

MOPEDS = RecordMapper(
    model=schemas.Moped,
    columns=_identity_columns(
        "id",
        "brand",
        "model",
        "license_plate",
        "photo",
        "status",
        "condition",
        "grnz",
        "vin_code",
        "color",
        "mileage",
        "insurance_date",
        "tech_inspection_date",
        "created_at",
        "created_by",
    ),
    writers={
        "grnz": normalize_text,
        "vin_code": normalize_text,
        "color": normalize_text,
        "mileage": normalize_mileage,
        "condition": lambda value: _enum_value(value) or None,
        "insurance_date": normalize_text,
        "tech_inspection_date": normalize_text,
    },
)

DEALS = RecordMapper(
    model=schemas.Deal,
    columns=_identity_columns(
        "id",
        "client_name",
        "phone",
        "stage",
        "source",
        "manager",
        "dates",
        "date_start",
        "date_end",
        "moped",
        "moped_id",
        "amount",
        "payment_type",
        "price_per_day",
        "deposit_amount",
        "contact_name",
        "contact_phone",
        "contact_iin",
        "contact_doc_number",
        "contact_status",
        "emergency_contact_name",
        "emergency_contact_phone",
        "emergency_contact_iin",
        "emergency_contact_doc_number",
        "emergency_contact_status",
        "status",
        "priority",
        "assignees",
        "comments",
        "links",
        "tasks",
        "custom_fields",
        "comment",
        "created_at",
    ),
    readers={
        "comments": lambda value: value or 0,
        "links": lambda value: value or 0,
        "tasks": lambda value: value or {"completed": 0, "total": 0},
        "assignees": lambda value: value or [],
        "custom_fields": lambda value: value or [],
    },
)

STAGES = RecordMapper(
    model=schemas.KanbanStage,
    columns={**_identity_columns("id", "name", "color"), "order": "order_num"},
)

FIELD_GROUPS = RecordMapper(
    model=schemas.FieldGroup,
    columns={**_identity_columns("id", "name"), "order": "order_num"},
)

CUSTOM_FIELDS = RecordMapper(
    model=schemas.CustomField,
    columns=_identity_columns("id", "name", "type", "required", "options", "group_id"),
)
