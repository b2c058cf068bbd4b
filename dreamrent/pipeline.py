"""Pipeline configuration routes: stages, custom fields and field groups."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from . import schemas
from .container import Services
from .dependencies import get_services, require_tab_access, unavailable
from .permissions import AccessLevel, Section, Tab
from .services.pipeline import add_stage, delete_stage
from .session import Session

router = APIRouter(prefix="/pipeline", tags=["pipeline"])

can_view = require_tab_access(Section.MOPEDS, Tab.RENTALS, AccessLevel.VIEW)
can_edit = require_tab_access(Section.MOPEDS, Tab.RENTALS, AccessLevel.EDIT)


@router.get("/stages", response_model=List[schemas.KanbanStage])
async def list_stages(
    services: Services = Depends(get_services),
    session: Session = Depends(can_view),
):
    return await services.pipeline.get_stages()


@router.put("/stages", response_model=List[schemas.KanbanStage])
async def replace_stages(
    stages: List[schemas.KanbanStage],
    services: Services = Depends(get_services),
    session: Session = Depends(can_edit),
):
    """
    Replace the stage list.

    Stages are renumbered in list order. Deals on removed stages move to the
    first stage of the new list.
    """
    if not stages:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="The pipeline needs at least one stage",
        )
    if not await services.pipeline.save_stages(stages):
        raise unavailable()
    return await services.pipeline.get_stages()


@router.post("/stages", response_model=List[schemas.KanbanStage], status_code=status.HTTP_201_CREATED)
async def create_stage(
    stage_in: schemas.StageCreate,
    services: Services = Depends(get_services),
    session: Session = Depends(can_edit),
):
    stages = add_stage(await services.pipeline.get_stages(), stage_in.name, stage_in.color)
    if not await services.pipeline.save_stages(stages):
        raise unavailable()
    return await services.pipeline.get_stages()


@router.delete("/stages/{stage_id}", response_model=List[schemas.KanbanStage])
async def remove_stage(
    stage_id: str,
    services: Services = Depends(get_services),
    session: Session = Depends(can_edit),
):
    """
    Delete a stage and renumber the remaining ones from 0.

    Raises:
        HTTPException: 404 for an unknown stage, 409 for the last stage.
    """
    current = await services.pipeline.get_stages()
    if not any(stage.id == stage_id for stage in current):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Stage not found")
    stages = delete_stage(current, stage_id)
    if not stages:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="The last stage cannot be deleted"
        )
    if not await services.pipeline.save_stages(stages):
        raise unavailable()
    return await services.pipeline.get_stages()


@router.get("/fields", response_model=List[schemas.CustomField])
async def list_custom_fields(
    services: Services = Depends(get_services),
    session: Session = Depends(can_view),
):
    return await services.pipeline.get_custom_fields()


@router.put("/fields", response_model=List[schemas.CustomField])
async def replace_custom_fields(
    fields: List[schemas.CustomField],
    services: Services = Depends(get_services),
    session: Session = Depends(can_edit),
):
    if not await services.pipeline.save_custom_fields(fields):
        raise unavailable()
    return await services.pipeline.get_custom_fields()


@router.get("/groups", response_model=List[schemas.FieldGroup])
async def list_field_groups(
    services: Services = Depends(get_services),
    session: Session = Depends(can_view),
):
    return await services.pipeline.get_field_groups()


@router.put("/groups", response_model=List[schemas.FieldGroup])
async def replace_field_groups(
    groups: List[schemas.FieldGroup],
    services: Services = Depends(get_services),
    session: Session = Depends(can_edit),
):
    if not await services.pipeline.save_field_groups(groups):
        raise unavailable()
    return await services.pipeline.get_field_groups()
