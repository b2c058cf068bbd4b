"""Database models of the remote data source.

Column names follow the snake_case convention of the hosted schema; the
in-memory shapes are translated by :mod:`dreamrent.mappers`.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    String,
    Text,
)

from .database import Base


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """
    SQLAlchemy model representing a dashboard user.

    ``permissions`` holds a list of section identifiers and
    ``tab_permissions`` maps tab-bearing sections to tab grants.
    """

    __tablename__ = "users"

    id = Column(String(64), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)
    permissions = Column(JSON, nullable=True)
    tab_permissions = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Contact(Base):
    """SQLAlchemy model representing a rental client or emergency contact."""

    __tablename__ = "contacts"

    id = Column(String(64), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False, index=True)
    phone = Column(String(50), nullable=False, index=True)
    email = Column(String(255), nullable=True)
    iin = Column(String(32), nullable=True)
    doc_number = Column(String(64), nullable=True)
    status = Column(String(20), nullable=False, default="active")
    photo = Column(Text, nullable=True)
    #: Lookup-only pointer to another contact, never cascades
    emergency_contact_id = Column(String(64), nullable=True)
    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Moped(Base):
    """SQLAlchemy model representing a rentable vehicle."""

    __tablename__ = "mopeds"

    id = Column(String(64), primary_key=True, default=new_id)
    brand = Column(String(100), nullable=False, index=True)
    model = Column(String(100), nullable=False)
    license_plate = Column(String(32), nullable=False)
    #: Inline base64 image, may be large
    photo = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="available")
    grnz = Column(String(32), nullable=True)
    vin_code = Column(String(64), nullable=True)
    color = Column(String(50), nullable=True)
    mileage = Column(Float, nullable=True)
    condition = Column(String(20), nullable=True)
    insurance_date = Column(String(32), nullable=True)
    tech_inspection_date = Column(String(32), nullable=True)
    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Deal(Base):
    """SQLAlchemy model representing a rental deal on the kanban pipeline."""

    __tablename__ = "deals"

    id = Column(String(64), primary_key=True, default=new_id)
    client_name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False, default="")
    stage = Column(String(64), nullable=False, index=True)
    source = Column(String(255), nullable=True)
    manager = Column(String(255), nullable=True)
    dates = Column(String(255), nullable=True)
    date_start = Column(String(32), nullable=True)
    date_end = Column(String(32), nullable=True)
    moped = Column(String(255), nullable=True)
    moped_id = Column(String(64), nullable=True)
    amount = Column(String(64), nullable=True)
    payment_type = Column(String(64), nullable=True)
    price_per_day = Column(String(64), nullable=True)
    deposit_amount = Column(String(64), nullable=True)
    contact_name = Column(String(255), nullable=True)
    contact_iin = Column(String(32), nullable=True)
    contact_doc_number = Column(String(64), nullable=True)
    contact_phone = Column(String(50), nullable=True)
    contact_status = Column(String(20), nullable=True)
    emergency_contact_name = Column(String(255), nullable=True)
    emergency_contact_iin = Column(String(32), nullable=True)
    emergency_contact_doc_number = Column(String(64), nullable=True)
    emergency_contact_phone = Column(String(50), nullable=True)
    emergency_contact_status = Column(String(20), nullable=True)
    status = Column(String(32), nullable=True)
    priority = Column(String(32), nullable=True)
    assignees = Column(JSON, nullable=True)
    comments = Column(Integer, nullable=False, default=0)
    links = Column(Integer, nullable=False, default=0)
    tasks = Column(JSON, nullable=True)
    custom_fields = Column(JSON, nullable=True)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class KanbanStage(Base):
    """Pipeline column; ``order_num`` defines the left-to-right order."""

    __tablename__ = "kanban_stages"

    id = Column(String(64), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    color = Column(String(16), nullable=False)
    order_num = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class KanbanCustomField(Base):
    """User-defined deal field shown on the deal card."""

    __tablename__ = "kanban_custom_fields"

    id = Column(String(64), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    type = Column(String(20), nullable=False)
    required = Column(Boolean, nullable=False, default=False)
    options = Column(JSON, nullable=True)
    group_id = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class KanbanFieldGroup(Base):
    """Group of custom fields on the deal card."""

    __tablename__ = "kanban_field_groups"

    id = Column(String(64), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    order_num = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


#: Collection name to model
COLLECTIONS = {
    model.__tablename__: model
    for model in (
        User,
        Contact,
        Moped,
        Deal,
        KanbanStage,
        KanbanCustomField,
        KanbanFieldGroup,
    )
}
