"""In-memory entity shapes.

Attributes are snake_case; the serialized form (cache entries, HTTP bodies)
uses the camelCase aliases the dashboard front end expects.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from pydantic.alias_generators import to_camel

from .permissions import Section, TabGrant


class CamelModel(BaseModel):
    """Base model serializing attributes under camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContactStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    BLOCKED = "blocked"


class MopedStatus(str, Enum):
    AVAILABLE = "available"
    RENTED = "rented"
    MAINTENANCE = "maintenance"


class MopedCondition(str, Enum):
    NEW = "new"
    GOOD = "good"
    BROKEN = "broken"


class FieldType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    FLAG = "flag"
    LIST = "list"
    MULTILIST = "multilist"
    DATE = "date"


# Users


class User(CamelModel):
    """Dashboard user with its section and tab grants."""

    id: str
    name: str
    email: str
    password_hash: str = ""
    permissions: List[Section] = []
    tab_permissions: Dict[Section, List[TabGrant]] = {}
    created_at: Optional[datetime] = None


class UserCreate(CamelModel):
    """Payload for creating a new user."""

    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    permissions: List[Section] = []
    tab_permissions: Dict[Section, List[TabGrant]] = {}


class UserUpdate(CamelModel):
    """Partial update of a user; unset fields are left untouched."""

    name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)
    permissions: Optional[List[Section]] = None
    tab_permissions: Optional[Dict[Section, List[TabGrant]]] = None


class UserOut(CamelModel):
    """Response schema for user data."""

    id: str
    name: str
    email: str
    permissions: List[Section] = []
    tab_permissions: Dict[Section, List[TabGrant]] = {}
    created_at: Optional[datetime] = None


class LoginRequest(BaseModel):
    email: str
    password: str


# Contacts


class Contact(CamelModel):
    id: str
    name: str
    phone: str
    email: Optional[str] = None
    iin: Optional[str] = None
    doc_number: Optional[str] = None
    status: ContactStatus = ContactStatus.ACTIVE
    photo: Optional[str] = None
    emergency_contact_id: Optional[str] = None
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None


class ContactCreate(CamelModel):
    name: str = Field(min_length=1)
    phone: str
    email: Optional[str] = None
    iin: Optional[str] = None
    doc_number: Optional[str] = None
    status: ContactStatus = ContactStatus.ACTIVE
    photo: Optional[str] = None
    emergency_contact_id: Optional[str] = None
    created_by: Optional[str] = None


class ContactUpdate(CamelModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    iin: Optional[str] = None
    doc_number: Optional[str] = None
    status: Optional[ContactStatus] = None
    photo: Optional[str] = None
    emergency_contact_id: Optional[str] = None


# Mopeds


class Moped(CamelModel):
    id: str
    brand: str
    model: str
    license_plate: str
    photo: Optional[str] = None
    status: MopedStatus = MopedStatus.AVAILABLE
    condition: Optional[MopedCondition] = None
    grnz: Optional[str] = None
    vin_code: Optional[str] = None
    color: Optional[str] = None
    mileage: Optional[float] = None
    insurance_date: Optional[str] = None
    tech_inspection_date: Optional[str] = None
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None


class MopedCreate(CamelModel):
    brand: str = Field(min_length=1)
    model: str
    license_plate: str
    photo: Optional[str] = None
    status: MopedStatus = MopedStatus.AVAILABLE
    condition: Optional[MopedCondition] = None
    grnz: Optional[str] = None
    vin_code: Optional[str] = None
    color: Optional[str] = None
    mileage: Union[float, str, None] = None
    insurance_date: Optional[str] = None
    tech_inspection_date: Optional[str] = None
    created_by: Optional[str] = None


class MopedUpdate(CamelModel):
    brand: Optional[str] = None
    model: Optional[str] = None
    license_plate: Optional[str] = None
    photo: Optional[str] = None
    status: Optional[MopedStatus] = None
    condition: Optional[MopedCondition] = None
    grnz: Optional[str] = None
    vin_code: Optional[str] = None
    color: Optional[str] = None
    mileage: Union[float, str, None] = None
    insurance_date: Optional[str] = None
    tech_inspection_date: Optional[str] = None


# Pipeline configuration


class KanbanStage(CamelModel):
    id: str
    name: str
    color: str
    order: int = 0


class StageCreate(CamelModel):
    name: str = Field(min_length=1)
    color: Optional[str] = None


class FieldGroup(CamelModel):
    id: str
    name: str
    order: int = 0


class CustomField(CamelModel):
    """Deal field definition.

    ``options`` is only meaningful for ``list`` and ``multilist`` fields,
    where it must contain at least one non-blank value.
    """

    id: str
    name: str = Field(min_length=1)
    type: FieldType
    required: bool = False
    group_id: Optional[str] = None
    options: Optional[List[str]] = None

    @model_validator(mode="after")
    def check_options(self) -> "CustomField":
        if self.type in (FieldType.LIST, FieldType.MULTILIST):
            options = [o.strip() for o in self.options or [] if o and o.strip()]
            if not options:
                raise ValueError("list fields need at least one option")
            self.options = options
        else:
            self.options = None
        return self


# Deals


class TaskCounter(BaseModel):
    completed: int = 0
    total: int = 0


class CustomFieldValue(CamelModel):
    field_id: str
    value: Any = None


class DealBase(CamelModel):
    source: Optional[str] = None
    manager: Optional[str] = None
    dates: Optional[str] = None
    date_start: Optional[str] = None
    date_end: Optional[str] = None
    moped: Optional[str] = None
    moped_id: Optional[str] = None
    amount: Optional[str] = None
    payment_type: Optional[str] = None
    price_per_day: Optional[str] = None
    deposit_amount: Optional[str] = None
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_iin: Optional[str] = Field(None, alias="contactIIN")
    contact_doc_number: Optional[str] = None
    contact_status: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_iin: Optional[str] = Field(None, alias="emergencyContactIIN")
    emergency_contact_doc_number: Optional[str] = None
    emergency_contact_status: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    comment: Optional[str] = None


class Deal(DealBase):
    id: str
    client_name: str
    phone: str = ""
    stage: str
    assignees: List[Any] = []
    comments: int = 0
    links: int = 0
    tasks: TaskCounter = TaskCounter()
    custom_fields: List[CustomFieldValue] = []
    created_at: Optional[datetime] = None


class DealCreate(DealBase):
    client_name: str = Field(min_length=1)
    phone: str = ""
    stage: str
    assignees: List[Any] = []
    comments: int = 0
    links: int = 0
    tasks: TaskCounter = TaskCounter()
    custom_fields: List[CustomFieldValue] = []


class DealUpdate(DealBase):
    client_name: Optional[str] = None
    phone: Optional[str] = None
    stage: Optional[str] = None
    assignees: Optional[List[Any]] = None
    comments: Optional[int] = None
    links: Optional[int] = None
    tasks: Optional[TaskCounter] = None
    custom_fields: Optional[List[CustomFieldValue]] = None


class StageMove(BaseModel):
    stage: str


class ContactRole(str, Enum):
    PRIMARY = "primary"
    EMERGENCY = "emergency"


class ContactCommit(CamelModel):
    """Result of committing a deal's contact snapshot."""

    deal: Deal
    contact: Optional[Contact] = None
    created: bool = False


class BoardColumn(CamelModel):
    stage: KanbanStage
    deals: List[Deal] = []
