"""Kanban pipeline configuration: stages, custom deal fields, field groups.

Configuration kinds always have content: when the data source is empty or
unreachable the hard-coded defaults below are served (and stages are seeded
into the data source on first use).
"""

import random
import uuid
from typing import List, Optional, Sequence, TypeVar

import structlog

from .. import mappers
from ..cache import CachePolicy
from ..clock import Clock
from ..datasource import DataSource
from ..errors import RemoteError
from ..schemas import CustomField, FieldGroup, FieldType, KanbanStage
from ..storage import KeyValueStore
from .base import RecordService
from .deals import DealService

logger = structlog.get_logger(__name__)

T = TypeVar("T", KanbanStage, FieldGroup)

STAGE_COLORS = (
    "#ef4444",
    "#f97316",
    "#f59e0b",
    "#eab308",
    "#84cc16",
    "#22c55e",
    "#10b981",
    "#14b8a6",
    "#06b6d4",
    "#0ea5e9",
    "#3b82f6",
    "#6366f1",
    "#8b5cf6",
    "#a855f7",
    "#d946ef",
    "#ec4899",
    "#64748b",
    "#6b7280",
)

#: Stage deals fall back to when every configured stage is removed.
FALLBACK_STAGE_ID = "new"

DEFAULT_STAGES = [
    KanbanStage(id="new", name="New request", color="#64748b", order=0),
    KanbanStage(id="in-work", name="Accepted", color="#3b82f6", order=1),
    KanbanStage(id="qualified", name="Qualified", color="#06b6d4", order=2),
    KanbanStage(id="proposal-sent", name="Proposal sent", color="#a855f7", order=3),
    KanbanStage(id="prepaid", name="Prepayment received", color="#6366f1", order=4),
    KanbanStage(id="confirmed", name="Booking confirmed", color="#22c55e", order=5),
    KanbanStage(id="issued", name="Moped issued", color="#10b981", order=6),
    KanbanStage(id="inspection-scheduled", name="Inspection scheduled", color="#14b8a6", order=7),
    KanbanStage(id="inspection-overdue", name="Inspection overdue", color="#f97316", order=8),
    KanbanStage(id="inspection-done", name="Inspection done", color="#84cc16", order=9),
    KanbanStage(id="extended", name="Rental extended", color="#8b5cf6", order=10),
    KanbanStage(id="overdue", name="Rental overdue", color="#ef4444", order=11),
    KanbanStage(id="incident", name="Incident", color="#dc2626", order=12),
    KanbanStage(id="returned", name="Moped returned", color="#0ea5e9", order=13),
    KanbanStage(id="completed", name="Rental completed", color="#6b7280", order=14),
]

DEFAULT_FIELD_GROUPS = [
    FieldGroup(id="basic", name="Main", order=0),
    FieldGroup(id="stats", name="Statistics", order=1),
]

DEFAULT_CUSTOM_FIELDS = [
    CustomField(id="budget", name="Deal budget", type=FieldType.NUMBER, required=True, group_id="basic"),
    CustomField(id="brief", name="Brief", type=FieldType.TEXT, group_id="basic"),
    CustomField(id="kp", name="Commercial proposal", type=FieldType.TEXT, required=True, group_id="basic"),
    CustomField(
        id="objections",
        name="Objections",
        type=FieldType.LIST,
        options=["Price", "Quality", "Timing"],
        group_id="basic",
    ),
    CustomField(id="requisites", name="Company details", type=FieldType.TEXT, group_id="basic"),
    CustomField(id="invoice", name="Invoice", type=FieldType.TEXT, group_id="basic"),
    CustomField(
        id="rejection-reason",
        name="Rejection reasons",
        type=FieldType.LIST,
        options=["Too expensive", "Not a fit", "Found another", "Changed mind", "No answer", "Other"],
        group_id="basic",
    ),
]


def _copies(records):
    return lambda: [record.model_copy(deep=True) for record in records]


def renumber(records: Sequence[T]) -> List[T]:
    """Return ``records`` with ``order`` set densely from 0 in list order."""
    return [record.model_copy(update={"order": index}) for index, record in enumerate(records)]


def add_stage(
    stages: Sequence[KanbanStage], name: str, color: Optional[str] = None
) -> List[KanbanStage]:
    """Append a new stage named ``name`` at the end of the pipeline."""
    name = name.strip()
    if not name:
        raise ValueError("stage name must not be blank")
    stage = KanbanStage(
        id=f"stage-{uuid.uuid4().hex[:12]}",
        name=name,
        color=color or random.choice(STAGE_COLORS),
        order=len(stages),
    )
    return renumber([*stages, stage])


def delete_stage(stages: Sequence[KanbanStage], stage_id: str) -> List[KanbanStage]:
    """Remove ``stage_id``; the remaining stages are renumbered from 0."""
    return renumber([stage for stage in stages if stage.id != stage_id])


def move_stage(
    stages: Sequence[KanbanStage], stage_id: str, position: int
) -> List[KanbanStage]:
    """Move ``stage_id`` to ``position`` and renumber."""
    ordered = list(stages)
    index = next((i for i, stage in enumerate(ordered) if stage.id == stage_id), None)
    if index is None:
        return renumber(ordered)
    stage = ordered.pop(index)
    ordered.insert(max(0, min(position, len(ordered))), stage)
    return renumber(ordered)


class StageService(RecordService[KanbanStage]):
    kind = "stages"
    collection = "kanban_stages"
    mapper = mappers.STAGES
    order_by = "order_num"
    descending = False

    def defaults(self):
        return _copies(DEFAULT_STAGES)

    async def fetch_all(self) -> List[KanbanStage]:
        rows = await self.list_rows()
        if rows:
            return self.parse_rows(rows)
        for stage in DEFAULT_STAGES:
            await self.source.insert(self.collection, self.mapper.to_row(stage.model_dump()))
        logger.info("default_stages_seeded", count=len(DEFAULT_STAGES))
        return _copies(DEFAULT_STAGES)()


class CustomFieldService(RecordService[CustomField]):
    kind = "fields"
    collection = "kanban_custom_fields"
    mapper = mappers.CUSTOM_FIELDS
    order_by = "id"
    descending = False

    def defaults(self):
        return _copies(DEFAULT_CUSTOM_FIELDS)


class FieldGroupService(RecordService[FieldGroup]):
    kind = "groups"
    collection = "kanban_field_groups"
    mapper = mappers.FIELD_GROUPS
    order_by = "order_num"
    descending = False

    def defaults(self):
        return _copies(DEFAULT_FIELD_GROUPS)


class PipelineService:
    """Read and replace the pipeline configuration.

    Args:
        source: Remote data source.
        store: Key/value store holding the cache entries.
        clock: Time source for cache expiry.
        policy: Cache policy shared by the configuration kinds.
        deals: Deal service, whose cache is dropped when stages are removed.
    """

    def __init__(
        self,
        source: DataSource,
        store: KeyValueStore,
        clock: Clock,
        policy: CachePolicy,
        deals: DealService,
    ):
        self.source = source
        self.deals = deals
        self.stages = StageService(source, store, clock, policy)
        self.fields = CustomFieldService(source, store, clock, policy)
        self.groups = FieldGroupService(source, store, clock, policy)

    async def get_stages(self) -> List[KanbanStage]:
        return await self.stages.get_all()

    async def get_custom_fields(self) -> List[CustomField]:
        return await self.fields.get_all()

    async def get_field_groups(self) -> List[FieldGroup]:
        return await self.groups.get_all()

    async def save_stages(self, stages: Sequence[KanbanStage]) -> bool:
        """Replace the stage list.

        Deals on removed stages move to the first remaining stage; the other
        stages are inserted or updated in place.
        """
        stages = renumber(stages)
        keep = [stage.id for stage in stages]
        removed: List[str] = []
        try:
            existing = await self.source.list(self.stages.collection)
            removed = [row["id"] for row in existing if row["id"] not in keep]
            if removed:
                fallback = keep[0] if keep else FALLBACK_STAGE_ID
                moved = await self.source.update_where(
                    "deals", "stage", removed, {"stage": fallback}
                )
                await self.source.delete_where(self.stages.collection, "id", removed)
                logger.info("stages_removed", stages=removed, deals_moved=moved, target=fallback)
            for stage in stages:
                await self.source.upsert(
                    self.stages.collection, self.stages.mapper.to_row(stage.model_dump())
                )
        except RemoteError as exc:
            logger.error("stages_save_failed", error=str(exc))
            return False
        finally:
            await self.stages.cache.invalidate()
            if removed:
                await self.deals.cache.invalidate()
        return True

    async def _replace(self, service: RecordService, records: Sequence) -> bool:
        try:
            existing = await self.source.list(service.collection)
            await self.source.delete_where(
                service.collection, "id", [row["id"] for row in existing]
            )
            for record in records:
                await self.source.insert(
                    service.collection, service.mapper.to_row(record.model_dump(mode="json"))
                )
        except RemoteError as exc:
            logger.error(f"{service.kind}_save_failed", error=str(exc))
            return False
        finally:
            await service.cache.invalidate()
        return True

    async def save_custom_fields(self, fields: Sequence[CustomField]) -> bool:
        """Replace every custom field definition with ``fields``."""
        return await self._replace(self.fields, fields)

    async def save_field_groups(self, groups: Sequence[FieldGroup]) -> bool:
        """Replace every field group with ``groups``."""
        return await self._replace(self.groups, renumber(groups))
