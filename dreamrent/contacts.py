"""Contact routes, gated by the mopeds/contacts tab."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from . import schemas
from .container import Services
from .dependencies import get_services, require_tab_access, unavailable
from .permissions import AccessLevel, Section, Tab
from .session import Session

router = APIRouter(prefix="/contacts", tags=["contacts"])

can_view = require_tab_access(Section.MOPEDS, Tab.CONTACTS, AccessLevel.VIEW)
can_edit = require_tab_access(Section.MOPEDS, Tab.CONTACTS, AccessLevel.EDIT)


@router.get("/", response_model=List[schemas.Contact])
async def list_contacts(
    services: Services = Depends(get_services),
    session: Session = Depends(can_view),
):
    """
    Retrieve every contact, newest first.

    Returns:
        list[Contact]: Contacts, possibly served from the cache.
    """
    return await services.contacts.get_contacts()


@router.get("/lookup", response_model=Optional[schemas.Contact])
async def lookup_contact(
    name: Optional[str] = Query(None),
    phone: Optional[str] = Query(None),
    services: Services = Depends(get_services),
    session: Session = Depends(can_view),
):
    """
    Find a contact by approximate name or exact phone.

    Args:
        name (str | None): Case-insensitive name fragment.
        phone (str | None): Exact phone number.

    Returns:
        Contact | None: Best match, or ``null``.
    """
    return await services.contacts.find_contact_by_name_or_phone(name, phone)


@router.get("/{contact_id}", response_model=schemas.Contact)
async def get_contact(
    contact_id: str,
    services: Services = Depends(get_services),
    session: Session = Depends(can_view),
):
    contact = await services.contacts.get_contact_by_id(contact_id)
    if contact is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")
    return contact


@router.post("/", response_model=schemas.Contact, status_code=status.HTTP_201_CREATED)
async def create_contact(
    contact_in: schemas.ContactCreate,
    services: Services = Depends(get_services),
    session: Session = Depends(can_edit),
):
    """Create a contact; ``createdBy`` defaults to the operator's name."""
    if contact_in.created_by is None:
        contact_in.created_by = session.username
    contact = await services.contacts.add_contact(contact_in)
    if contact is None:
        raise unavailable()
    return contact


@router.patch("/{contact_id}", response_model=schemas.Contact)
async def update_contact(
    contact_id: str,
    contact_in: schemas.ContactUpdate,
    services: Services = Depends(get_services),
    session: Session = Depends(can_edit),
):
    if await services.contacts.get_contact_by_id(contact_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")
    contact = await services.contacts.update_contact(contact_id, contact_in)
    if contact is None:
        raise unavailable()
    return contact


@router.delete("/{contact_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_contact(
    contact_id: str,
    services: Services = Depends(get_services),
    session: Session = Depends(can_edit),
):
    if not await services.contacts.delete_contact(contact_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
