"""User management routes, gated by the ``users`` section."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from . import schemas
from .container import Services
from .dependencies import get_services, http_error, require_permission
from .permissions import Section
from .session import Session

router = APIRouter(prefix="/users", tags=["users"])

require_users = require_permission(Section.USERS)


@router.get("/", response_model=List[schemas.UserOut])
async def list_users(
    services: Services = Depends(get_services),
    session: Session = Depends(require_users),
):
    return await services.users.get_users()


@router.get("/{user_id}", response_model=schemas.UserOut)
async def get_user(
    user_id: str,
    services: Services = Depends(get_services),
    session: Session = Depends(require_users),
):
    user = await services.users.get_user_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.post("/", response_model=schemas.UserOut, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_in: schemas.UserCreate,
    services: Services = Depends(get_services),
    session: Session = Depends(require_users),
):
    """
    Create a dashboard user.

    Args:
        user_in (UserCreate): Name, email, password and grants.
        services (Services): Service container.
        session (Session): Operator session with the ``users`` grant.

    Raises:
        HTTPException: 409 if the email is taken, 503 if the data source
            is unreachable.

    Returns:
        UserOut: Created user.
    """
    result = await services.users.add_user(user_in)
    if not result.success:
        raise http_error(result.error)
    return result.user


@router.patch("/{user_id}", response_model=schemas.UserOut)
async def update_user(
    user_id: str,
    user_in: schemas.UserUpdate,
    services: Services = Depends(get_services),
    session: Session = Depends(require_users),
):
    """
    Partially update a user.

    The email of the protected administrator cannot be changed and its
    grants always stay complete, whatever the payload says.
    """
    result = await services.users.update_user(user_id, user_in)
    if not result.success:
        raise http_error(result.error)
    return result.user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    services: Services = Depends(get_services),
    session: Session = Depends(require_users),
):
    """
    Delete a user.

    Raises:
        HTTPException: 403 for the protected administrator or the caller's
            own account, 404 if the user does not exist.
    """
    result = await services.users.delete_user(user_id, acting_user_id=session.user.id)
    if not result.success:
        raise http_error(result.error)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
