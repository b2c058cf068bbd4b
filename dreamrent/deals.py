"""Deal routes and the live kanban board, gated by the mopeds/rentals tab."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from . import schemas
from .container import Services
from .dependencies import get_services, require_tab_access, unavailable
from .permissions import AccessLevel, Section, Tab
from .session import Session

router = APIRouter(prefix="/deals", tags=["deals"])

can_view = require_tab_access(Section.MOPEDS, Tab.RENTALS, AccessLevel.VIEW)
can_edit = require_tab_access(Section.MOPEDS, Tab.RENTALS, AccessLevel.EDIT)


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Deal not found")


@router.get("/", response_model=List[schemas.Deal])
async def list_deals(
    services: Services = Depends(get_services),
    session: Session = Depends(can_view),
):
    return await services.deals.get_deals()


@router.get("/board", response_model=List[schemas.BoardColumn])
async def get_board(
    services: Services = Depends(get_services),
    session: Session = Depends(can_view),
):
    """
    Return the kanban board: one column per stage, in stage order.

    Deals come from the live board, which follows the deals change feed
    without refetching.
    """
    stages = await services.pipeline.get_stages()
    return services.board.by_stage(stages)


@router.get("/stage/{stage_id}", response_model=List[schemas.Deal])
async def list_deals_by_stage(
    stage_id: str,
    services: Services = Depends(get_services),
    session: Session = Depends(can_view),
):
    return await services.deals.get_deals_by_stage(stage_id)


@router.get("/{deal_id}", response_model=schemas.Deal)
async def get_deal(
    deal_id: str,
    services: Services = Depends(get_services),
    session: Session = Depends(can_view),
):
    deal = await services.deals.get_deal_by_id(deal_id)
    if deal is None:
        raise _not_found()
    return deal


@router.post("/", response_model=schemas.Deal, status_code=status.HTTP_201_CREATED)
async def create_deal(
    deal_in: schemas.DealCreate,
    services: Services = Depends(get_services),
    session: Session = Depends(can_edit),
):
    deal = await services.deals.create_deal(deal_in)
    if deal is None:
        raise unavailable()
    return deal


@router.patch("/{deal_id}", response_model=schemas.Deal)
async def update_deal(
    deal_id: str,
    deal_in: schemas.DealUpdate,
    services: Services = Depends(get_services),
    session: Session = Depends(can_edit),
):
    """
    Partially update a deal.

    Contact snapshot fields are stored on the deal only; use the commit
    route to write them back to the contact records.
    """
    if await services.deals.get_deal_by_id(deal_id) is None:
        raise _not_found()
    deal = await services.deals.update_deal(deal_id, deal_in)
    if deal is None:
        raise unavailable()
    return deal


@router.post("/{deal_id}/stage", response_model=schemas.Deal)
async def move_deal(
    deal_id: str,
    move: schemas.StageMove,
    services: Services = Depends(get_services),
    session: Session = Depends(can_edit),
):
    """
    Move a deal to another stage.

    Args:
        deal_id (str): Deal to move.
        move (StageMove): Target stage id.

    Returns:
        Deal: The moved deal.
    """
    if await services.deals.get_deal_by_id(deal_id) is None:
        raise _not_found()
    deal = await services.deals.move_deal_to_stage(deal_id, move.stage)
    if deal is None:
        raise unavailable()
    return deal


@router.post("/{deal_id}/contacts/{role}", response_model=schemas.ContactCommit)
async def commit_contact(
    deal_id: str,
    role: schemas.ContactRole,
    services: Services = Depends(get_services),
    session: Session = Depends(can_edit),
):
    """
    Commit the primary or emergency contact snapshot of a deal.

    A matching contact (approximate name or exact phone) is pulled into the
    snapshot; otherwise a new contact is created from it.

    Returns:
        ContactCommit: Deal, contact and whether the contact was created.
    """
    if await services.deals.get_deal_by_id(deal_id) is None:
        raise _not_found()
    result = await services.deals.commit_contact(deal_id, role, created_by=session.username)
    if result is None:
        raise unavailable()
    return result


@router.delete("/{deal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_deal(
    deal_id: str,
    services: Services = Depends(get_services),
    session: Session = Depends(can_edit),
):
    if not await services.deals.delete_deal(deal_id):
        raise _not_found()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
