"""Contact records."""

from typing import List, Optional

from .. import mappers
from ..schemas import Contact, ContactCreate, ContactUpdate
from .base import RecordService, payload


class ContactService(RecordService[Contact]):
    kind = "contacts"
    collection = "contacts"
    mapper = mappers.CONTACTS

    async def get_contacts(self) -> List[Contact]:
        return await self.get_all()

    async def get_contact_by_id(self, contact_id: str) -> Optional[Contact]:
        return await self.get_by_id(contact_id)

    async def add_contact(self, data: ContactCreate) -> Optional[Contact]:
        return await self.create(payload(data))

    async def update_contact(self, contact_id: str, data: ContactUpdate) -> Optional[Contact]:
        return await self.update(contact_id, payload(data, partial=True))

    async def delete_contact(self, contact_id: str) -> bool:
        return await self.delete(contact_id)

    async def find_contact_by_name_or_phone(
        self, name: Optional[str] = None, phone: Optional[str] = None
    ) -> Optional[Contact]:
        """Find a contact whose name contains ``name`` or whose phone is ``phone``.

        Name matching is case-insensitive. When several contacts match, an
        exact phone match wins over a name match.
        """
        name = mappers.normalize_text(name)
        phone = mappers.normalize_text(phone)
        if not name and not phone:
            return None
        matches = await self.find(
            equals={"phone": phone} if phone else None,
            ilike={"name": name} if name else None,
            match_any=True,
        )
        if not matches:
            return None
        for contact in matches:
            if phone and contact.phone == phone:
                return contact
        return matches[0]
