"""Operator session of the dashboard.

The session survives restarts through two markers in the key/value store:
``currentUserId`` (the logged-in user id) and ``isAuthenticated``. One
:class:`Session` is built at startup and handed to the routers through
FastAPI dependencies.
"""

from enum import Enum
from typing import Any, Optional

import structlog

from .errors import StorageError
from .permissions import AccessLevel, normalize_email
from .schemas import User
from .services.users import UserService
from .signals import Signals, Subscription
from .storage import KeyValueStore

logger = structlog.get_logger(__name__)

CURRENT_USER_KEY = "currentUserId"
AUTH_FLAG_KEY = "isAuthenticated"


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


class Session:
    """Current user resolution, login/logout and permission predicates.

    Args:
        users: Credential and permission store.
        store: Key/value store holding the session markers.
        signals: ``auth_changed`` is emitted on login and logout; the session
            listens to ``users_changed`` to pick up edits of its own user.
    """

    def __init__(self, users: UserService, store: KeyValueStore, signals: Signals):
        self.users = users
        self.store = store
        self.signals = signals
        self.state = AuthState.UNAUTHENTICATED
        self.user: Optional[User] = None
        self._subscription: Optional[Subscription] = None

    @property
    def is_authenticated(self) -> bool:
        return self.state == AuthState.AUTHENTICATED and self.user is not None

    @property
    def username(self) -> Optional[str]:
        if self.user is None:
            return None
        return self.user.name or self.user.email

    def attach(self) -> Subscription:
        """Re-run :meth:`restore` whenever the user list changes."""
        if self._subscription is None or self._subscription.closed:
            self._subscription = self.signals.users_changed.subscribe(
                lambda _: self.restore()
            )
        return self._subscription

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.close()

    async def _get_marker(self, key: str) -> Optional[str]:
        try:
            return await self.store.get(key)
        except StorageError as exc:
            logger.warning("session_marker_read_failed", key=key, error=str(exc))
            return None

    async def _set_markers(self, user_id: str) -> None:
        try:
            await self.store.set(AUTH_FLAG_KEY, "true")
            await self.store.set(CURRENT_USER_KEY, user_id)
        except StorageError as exc:
            logger.warning("session_marker_write_failed", error=str(exc))

    def _set_state(self, user: Optional[User]) -> None:
        self.user = user
        self.state = AuthState.AUTHENTICATED if user is not None else AuthState.UNAUTHENTICATED

    async def restore(self) -> AuthState:
        """Resolve the current user from the persisted markers.

        When the authenticated flag is set but the stored id no longer
        resolves, the protected admin is used and the marker rewritten.
        """
        flag = await self._get_marker(AUTH_FLAG_KEY)
        user_id = await self._get_marker(CURRENT_USER_KEY)
        user = await self.users.get_user_by_id(user_id)
        if flag == "true" and user is None:
            admin_email = normalize_email(self.users.settings.PROTECTED_ADMIN_EMAIL)
            for candidate in await self.users.get_users():
                if normalize_email(candidate.email) == admin_email:
                    user = candidate
                    break
        if flag == "true" and user is not None:
            if user_id != user.id:
                await self._set_markers(user.id)
            self._set_state(user)
        else:
            self._set_state(None)
        return self.state

    async def login(self, email: str, password: str) -> bool:
        user = await self.users.find_user_by_credentials(email, password)
        if user is None:
            logger.info("login_rejected")
            return False
        await self._set_markers(user.id)
        self._set_state(user)
        logger.info("login_succeeded", user_id=user.id)
        await self.signals.auth_changed.emit(self.user)
        return True

    async def logout(self) -> None:
        try:
            await self.store.delete(AUTH_FLAG_KEY, CURRENT_USER_KEY)
        except StorageError as exc:
            logger.warning("session_marker_delete_failed", error=str(exc))
        self._set_state(None)
        await self.signals.auth_changed.emit(None)

    def has_permission(self, section: Any) -> bool:
        if not self.is_authenticated:
            return False
        return self.users.has_permission(self.user, section)

    def has_tab_access(self, section: Any, tab: Any, level: Any = AccessLevel.VIEW) -> bool:
        if not self.is_authenticated:
            return False
        return self.users.has_tab_access(self.user, section, tab, level)
