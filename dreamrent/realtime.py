"""Live deal board fed by the deals change feed."""

from typing import Dict, List, Optional, Sequence

import structlog
from pydantic import ValidationError

from . import mappers
from .datasource import ChangeEvent, ChangeType, DataSource
from .schemas import BoardColumn, Deal, KanbanStage
from .signals import Subscription

logger = structlog.get_logger(__name__)


def fold_deal_event(deals: List[Deal], event: ChangeEvent) -> List[Deal]:
    """Apply one change event to a deal list and return the new list.

    Created and updated rows replace the deal with the same id, or are
    prepended when it is unknown. Deleted rows remove the deal; an unknown
    id leaves the list unchanged. Applying the same event twice has the same
    effect as applying it once.
    """
    if event.type == ChangeType.DELETED:
        deal_id = (event.old or {}).get("id")
        return [deal for deal in deals if deal.id != deal_id]
    if event.new is None:
        return deals
    deal = mappers.DEALS.parse(event.new)
    if any(existing.id == deal.id for existing in deals):
        return [deal if existing.id == deal.id else existing for existing in deals]
    return [deal, *deals]


class DealBoard:
    """In-memory deal list kept current from the change feed."""

    collection = "deals"

    def __init__(self, deals: Optional[Sequence[Deal]] = None):
        self.deals: List[Deal] = list(deals or [])
        self._subscription: Optional[Subscription] = None

    def load(self, deals: Sequence[Deal]) -> None:
        self.deals = list(deals)

    def apply(self, event: ChangeEvent) -> None:
        try:
            self.deals = fold_deal_event(self.deals, event)
        except ValidationError as exc:
            logger.error("deal_event_rejected", type=event.type.value, error=str(exc))

    def attach(self, source: DataSource) -> Subscription:
        """Subscribe to the deals change feed; close the result to detach."""
        self.close()
        self._subscription = source.subscribe(self.collection, self.apply)
        return self._subscription

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    def by_stage(self, stages: Sequence[KanbanStage]) -> List[BoardColumn]:
        """Group the deals per stage, in stage order."""
        columns: Dict[str, List[Deal]] = {stage.id: [] for stage in stages}
        for deal in self.deals:
            if deal.stage in columns:
                columns[deal.stage].append(deal)
        ordered = sorted(stages, key=lambda stage: stage.order)
        return [BoardColumn(stage=stage, deals=columns[stage.id]) for stage in ordered]
