"""Moped inventory routes, gated by the mopeds/inventory tab."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from . import schemas
from .container import Services
from .dependencies import get_services, require_tab_access, unavailable
from .permissions import AccessLevel, Section, Tab
from .session import Session

router = APIRouter(prefix="/mopeds", tags=["mopeds"])

can_view = require_tab_access(Section.MOPEDS, Tab.INVENTORY, AccessLevel.VIEW)
can_edit = require_tab_access(Section.MOPEDS, Tab.INVENTORY, AccessLevel.EDIT)


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Moped not found")


@router.get("/", response_model=List[schemas.Moped])
async def list_mopeds(
    services: Services = Depends(get_services),
    session: Session = Depends(can_view),
):
    """
    Retrieve the inventory ordered by brand.

    Cached entries may lack photos when the inventory is too large to
    cache in full; the detail route always reads the data source.
    """
    return await services.mopeds.get_mopeds()


@router.put("/", response_model=List[schemas.Moped])
async def save_mopeds(
    mopeds: List[schemas.Moped],
    services: Services = Depends(get_services),
    session: Session = Depends(can_edit),
):
    """Write back a batch of edited mopeds."""
    if not await services.mopeds.save_mopeds(mopeds):
        raise unavailable()
    return await services.mopeds.get_mopeds()


@router.get("/by-plate/{license_plate}", response_model=schemas.Moped)
async def get_moped_by_plate(
    license_plate: str,
    services: Services = Depends(get_services),
    session: Session = Depends(can_view),
):
    moped = await services.mopeds.find_moped_by_license_plate(license_plate)
    if moped is None:
        raise _not_found()
    return moped


@router.get("/{moped_id}", response_model=schemas.Moped)
async def get_moped(
    moped_id: str,
    services: Services = Depends(get_services),
    session: Session = Depends(can_view),
):
    moped = await services.mopeds.get_moped_by_id(moped_id)
    if moped is None:
        moped = await services.mopeds.get_moped_by_id_cached(moped_id)
    if moped is None:
        raise _not_found()
    return moped


@router.post("/", response_model=schemas.Moped, status_code=status.HTTP_201_CREATED)
async def create_moped(
    moped_in: schemas.MopedCreate,
    services: Services = Depends(get_services),
    session: Session = Depends(can_edit),
):
    """
    Add a moped to the inventory.

    Args:
        moped_in (MopedCreate): Moped data; mileage may be free text.
        services (Services): Service container.
        session (Session): Operator session with edit access.

    Returns:
        Moped: Created moped.
    """
    if moped_in.created_by is None:
        moped_in.created_by = session.username
    moped = await services.mopeds.add_moped(moped_in)
    if moped is None:
        raise unavailable()
    return moped


@router.patch("/{moped_id}", response_model=schemas.Moped)
async def update_moped(
    moped_id: str,
    moped_in: schemas.MopedUpdate,
    services: Services = Depends(get_services),
    session: Session = Depends(can_edit),
):
    if await services.mopeds.get_moped_by_id(moped_id) is None:
        raise _not_found()
    moped = await services.mopeds.update_moped(moped_id, moped_in)
    if moped is None:
        raise unavailable()
    return moped


@router.delete("/{moped_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_moped(
    moped_id: str,
    services: Services = Depends(get_services),
    session: Session = Depends(can_edit),
):
    if not await services.mopeds.delete_moped(moped_id):
        raise _not_found()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
