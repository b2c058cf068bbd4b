"""Rental deals on the kanban board.

A deal carries a snapshot of its primary and emergency contacts. Editing
the snapshot never touches the contact records; :meth:`DealService.commit_contact`
is the explicit write-back step.
"""

from typing import Any, Dict, List, Optional

import structlog

from .. import mappers
from ..cache import CachePolicy
from ..clock import Clock
from ..datasource import DataSource
from ..schemas import (
    ContactCommit,
    ContactCreate,
    ContactRole,
    ContactStatus,
    Deal,
    DealCreate,
    DealUpdate,
)
from ..storage import KeyValueStore
from .base import RecordService, payload
from .contacts import ContactService

logger = structlog.get_logger(__name__)

SNAPSHOT_PREFIXES = {
    ContactRole.PRIMARY: "contact_",
    ContactRole.EMERGENCY: "emergency_contact_",
}


def _contact_status(value: Optional[str]) -> ContactStatus:
    try:
        return ContactStatus(value)
    except ValueError:
        return ContactStatus.ACTIVE


class DealService(RecordService[Deal]):
    kind = "deals"
    collection = "deals"
    mapper = mappers.DEALS

    def __init__(
        self,
        source: DataSource,
        store: KeyValueStore,
        clock: Clock,
        policy: CachePolicy,
        contacts: ContactService,
    ):
        super().__init__(source, store, clock, policy)
        self.contacts = contacts

    async def get_deals(self) -> List[Deal]:
        return await self.get_all()

    async def get_deal_by_id(self, deal_id: str) -> Optional[Deal]:
        return await self.get_by_id(deal_id)

    async def get_deals_by_stage(self, stage_id: str) -> List[Deal]:
        return await self.find(equals={"stage": stage_id})

    async def create_deal(self, data: DealCreate) -> Optional[Deal]:
        return await self.create(payload(data))

    async def update_deal(self, deal_id: str, data: DealUpdate) -> Optional[Deal]:
        return await self.update(deal_id, payload(data, partial=True))

    async def delete_deal(self, deal_id: str) -> bool:
        return await self.delete(deal_id)

    async def move_deal_to_stage(self, deal_id: str, stage_id: str) -> Optional[Deal]:
        return await self.update(deal_id, {"stage": stage_id})

    async def commit_contact(
        self, deal_id: str, role: ContactRole, created_by: Optional[str] = None
    ) -> Optional[ContactCommit]:
        """Reconcile one contact snapshot of a deal with the contact records.

        When a contact matches the snapshot name or phone, its data is pulled
        into the snapshot. Otherwise a contact is created from the snapshot.
        Nothing happens while the snapshot lacks a name or a phone.

        Args:
            deal_id: Deal whose snapshot is committed.
            role: Which snapshot to commit, primary or emergency.
            created_by: Display name recorded on a newly created contact.

        Returns:
            ContactCommit | None: The (possibly updated) deal with the matched
            or created contact, or ``None`` when the deal could not be loaded
            or saved.
        """
        deal = await self.get_deal_by_id(deal_id)
        if deal is None:
            return None
        prefix = SNAPSHOT_PREFIXES[ContactRole(role)]
        snapshot: Dict[str, Any] = {
            field: getattr(deal, prefix + field)
            for field in ("name", "phone", "iin", "doc_number", "status")
        }
        name = mappers.normalize_text(snapshot["name"])
        phone = mappers.normalize_text(snapshot["phone"])
        if not name or not phone:
            return ContactCommit(deal=deal)

        existing = await self.contacts.find_contact_by_name_or_phone(name, phone)
        if existing is None:
            contact = await self.contacts.add_contact(
                ContactCreate(
                    name=name,
                    phone=phone,
                    iin=snapshot["iin"],
                    doc_number=snapshot["doc_number"],
                    status=_contact_status(snapshot["status"]),
                    created_by=created_by,
                )
            )
            if contact is None:
                return None
            logger.info("contact_created_from_deal", deal_id=deal_id, contact_id=contact.id)
            return ContactCommit(deal=deal, contact=contact, created=True)

        pulled = {
            prefix + "name": existing.name,
            prefix + "phone": existing.phone,
            prefix + "iin": existing.iin or snapshot["iin"],
            prefix + "doc_number": existing.doc_number or snapshot["doc_number"],
            prefix + "status": existing.status.value if existing.status else snapshot["status"],
        }
        updated = await self.update(deal_id, pulled)
        if updated is None:
            return None
        return ContactCommit(deal=updated, contact=existing)
