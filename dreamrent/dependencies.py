"""FastAPI dependencies gating routes on the operator session."""

from fastapi import Depends, HTTPException, Request, status

from .container import Services
from .errors import RemoteUnavailableError, StoreError
from .permissions import AccessLevel, Section, Tab
from .session import Session

LOGIN_PATH = "/auth/login"


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_session(services: Services = Depends(get_services)) -> Session:
    return services.session


def require_authenticated(session: Session = Depends(get_session)) -> Session:
    """
    Ensure an operator is logged in.

    Raises:
        HTTPException: ``303 See Other`` pointing at the login entry point.
    """
    if not session.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_303_SEE_OTHER,
            detail="Not authenticated",
            headers={"Location": LOGIN_PATH},
        )
    return session


def require_permission(section: Section):
    """Build a dependency requiring the ``section`` grant."""

    def dependency(session: Session = Depends(require_authenticated)) -> Session:
        if not session.has_permission(section):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have access to this section",
            )
        return session

    return dependency


def require_tab_access(section: Section, tab: Tab, level: AccessLevel = AccessLevel.VIEW):
    """Build a dependency requiring ``level`` access on ``section``/``tab``."""

    def dependency(session: Session = Depends(require_authenticated)) -> Session:
        if not session.has_tab_access(section, tab, level):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{level.value.capitalize()} access to this tab is required",
            )
        return session

    return dependency


def http_error(error: StoreError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.message)


def unavailable() -> HTTPException:
    return http_error(RemoteUnavailableError())
