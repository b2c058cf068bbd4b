"""Login entry point and session routes."""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi_limiter.depends import RateLimiter

from . import schemas
from .core import get_settings
from .dependencies import get_session, require_authenticated
from .session import Session

router = APIRouter(prefix="/auth", tags=["auth"])
settings = get_settings()

login_limiter = RateLimiter(
    times=settings.LOGIN_RATE_LIMIT_TIMES, seconds=settings.LOGIN_RATE_LIMIT_SECONDS
)


@router.get("/login")
def login_entry(session: Session = Depends(get_session)):
    """
    Login entry point that gated routes redirect to.

    Returns:
        dict: Whether an operator is logged in and how to log in.
    """
    return {
        "authenticated": session.is_authenticated,
        "msg": "POST email and password to /auth/login",
    }


@router.post(
    "/login",
    response_model=schemas.UserOut,
    dependencies=[Depends(login_limiter)],
)
async def login(credentials: schemas.LoginRequest, session: Session = Depends(get_session)):
    """
    Log an operator in with email and password.

    Args:
        credentials (LoginRequest): Email (any casing) and password.
        session (Session): Operator session.

    Raises:
        HTTPException: If the credentials do not match a user.

    Returns:
        UserOut: The logged-in user.
    """
    if not await session.login(credentials.email, credentials.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password"
        )
    return session.user


@router.post("/logout")
async def logout(session: Session = Depends(get_session)):
    """End the operator session."""
    await session.logout()
    return {"msg": "Logged out"}


@router.get("/me", response_model=schemas.UserOut)
def read_me(session: Session = Depends(require_authenticated)):
    return session.user
