"""Credential and permission store.

Users live in the remote data source. The user list is cached like every
other entity kind and additionally mirrored into the legacy ``crm_users``
snapshot, which is what credential checks fall back to while the data
source is unreachable.

The protected super-admin (``PROTECTED_ADMIN_EMAIL``) always holds every
section and ``edit`` on every tab. The grants are re-asserted whenever a
user record is read or written, so corrupted stored permissions can never
lock the administrator out.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import structlog
from passlib.context import CryptContext
from pydantic import ValidationError

from .. import mappers
from ..cache import CachePolicy, EntityCache, first_hit
from ..clock import Clock
from ..core import Settings
from ..datasource import DataSource, Row
from ..errors import (
    DuplicateEmailError,
    NotFoundError,
    ProtectedAccountError,
    ProtectedFieldError,
    RemoteError,
    RemoteUnavailableError,
    SelfDeleteError,
    StorageError,
    StoreError,
)
from ..permissions import (
    AccessLevel,
    all_sections,
    full_tab_permissions,
    has_permission,
    has_tab_access,
    is_protected_email,
    normalize_email,
)
from ..schemas import User, UserCreate, UserUpdate
from ..signals import Signals
from ..storage import KeyValueStore

logger = structlog.get_logger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

LEGACY_USERS_KEY = "crm_users"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Compare a plain password with its hashed value."""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


def get_password_hash(password: str) -> str:
    """Generate a password hash using the configured context."""
    return pwd_context.hash(password)


@dataclass
class UserResult:
    """Outcome of a user write: the affected user or the reason it failed."""

    user: Optional[User] = None
    error: Optional[StoreError] = None

    @property
    def success(self) -> bool:
        return self.error is None


class UserService:
    """User records, credential checks and grant evaluation.

    Args:
        source: Remote data source.
        store: Key/value store holding the cache and the legacy snapshot.
        clock: Time source for cache expiry.
        policy: Cache policy of the users list.
        signals: Channels on which ``users_changed`` is announced.
        settings: Provides the protected admin identity.
    """

    collection = "users"

    def __init__(
        self,
        source: DataSource,
        store: KeyValueStore,
        clock: Clock,
        policy: CachePolicy,
        signals: Signals,
        settings: Settings,
    ):
        self.source = source
        self.store = store
        self.signals = signals
        self.settings = settings
        self.cache: EntityCache[User] = EntityCache(
            "users", User, store, self._fetch_users, clock, policy
        )

    # protected admin

    def is_protected(self, user: Optional[User]) -> bool:
        return user is not None and is_protected_email(
            user.email, self.settings.PROTECTED_ADMIN_EMAIL
        )

    def _enforce(self, user: User) -> User:
        if not self.is_protected(user):
            return user
        return user.model_copy(
            update={
                "permissions": all_sections(),
                "tab_permissions": full_tab_permissions(),
            }
        )

    def _parse(self, row: Row) -> User:
        return self._enforce(mappers.USERS.parse(row))

    def _parse_valid(self, row: Row) -> Optional[User]:
        try:
            return self._parse(row)
        except ValidationError as exc:
            logger.error("user_row_invalid", id=row.get("id"), error=str(exc))
            return None

    def _parse_rows(self, rows: List[Row]) -> List[User]:
        return [user for user in map(self._parse_valid, rows) if user is not None]

    def _full_grants(self, values: Dict[str, Any]) -> Dict[str, Any]:
        if is_protected_email(values.get("email"), self.settings.PROTECTED_ADMIN_EMAIL):
            values["permissions"] = all_sections()
            values["tab_permissions"] = full_tab_permissions()
        return values

    async def ensure_protected_admin(self) -> Optional[User]:
        """Make sure the protected admin exists with full grants.

        Returns:
            User | None: The admin record, or ``None`` if the data source is
            unreachable.
        """
        email = normalize_email(self.settings.PROTECTED_ADMIN_EMAIL)
        try:
            rows = await self.source.find(self.collection, equals={"email": email})
            if rows:
                admin = self._parse(rows[0])
                stored = mappers.USERS.parse(rows[0])
                if stored.permissions != admin.permissions or stored.tab_permissions != admin.tab_permissions:
                    await self.source.update(
                        self.collection,
                        admin.id,
                        mappers.USERS.to_row(self._full_grants({"email": email})),
                    )
                    logger.info("protected_admin_grants_restored", user_id=admin.id)
                return admin
            values = self._full_grants(
                {
                    "name": self.settings.PROTECTED_ADMIN_NAME,
                    "email": email,
                    "password_hash": get_password_hash(self.settings.PROTECTED_ADMIN_PASSWORD),
                }
            )
            row = await self.source.insert(self.collection, mappers.USERS.to_row(values))
        except (RemoteError, ValidationError) as exc:
            logger.error("protected_admin_bootstrap_failed", error=str(exc))
            return None
        await self.cache.invalidate()
        logger.info("protected_admin_created", user_id=row["id"])
        return self._parse(row)

    # reads

    async def _fetch_users(self) -> List[User]:
        rows = await self.source.list(self.collection, order_by="created_at")
        users = self._parse_rows(rows)
        await self._write_snapshot(users)
        return users

    async def _write_snapshot(self, users: List[User]) -> None:
        data = json.dumps([user.model_dump(mode="json", by_alias=True) for user in users])
        try:
            await self.store.set(LEGACY_USERS_KEY, data)
        except StorageError as exc:
            logger.warning("users_snapshot_write_failed", error=str(exc))

    async def _read_snapshot(self) -> Optional[List[User]]:
        try:
            raw = await self.store.get(LEGACY_USERS_KEY)
        except StorageError as exc:
            logger.warning("users_snapshot_read_failed", error=str(exc))
            return None
        if raw is None:
            return None
        try:
            return [self._enforce(User.model_validate(item)) for item in json.loads(raw)]
        except (ValueError, TypeError, ValidationError) as exc:
            logger.error("users_snapshot_corrupt", error=str(exc))
            return None

    async def get_users(self) -> List[User]:
        return [self._enforce(user) for user in await self.cache.get_list()]

    async def get_user_by_id(self, user_id: Optional[str]) -> Optional[User]:
        if not user_id:
            return None
        for user in await self.get_users():
            if user.id == user_id:
                return user
        return None

    async def find_user_by_credentials(self, email: str, password: str) -> Optional[User]:
        """Return the user matching ``email`` and ``password``.

        The email is trimmed and compared case-insensitively. The data
        source is consulted first; while it is unreachable the legacy
        snapshot is used instead.
        """
        email = normalize_email(email or "")
        if not email or not password:
            return None

        async def remote() -> Optional[List[User]]:
            try:
                rows = await self.source.find(self.collection, equals={"email": email})
            except RemoteError as exc:
                logger.error("credential_lookup_failed", error=str(exc))
                return None
            return self._parse_rows(rows)

        candidates = await first_hit([remote, self._read_snapshot], [])
        for user in candidates:
            if normalize_email(user.email) == email and verify_password(password, user.password_hash):
                return user
        return None

    # writes

    async def _changed(self) -> None:
        await self.cache.invalidate()
        await self.signals.users_changed.emit(None)

    async def _email_taken(self, email: str, exclude_id: Optional[str] = None) -> bool:
        rows = await self.source.find(self.collection, equals={"email": email})
        return any(row["id"] != exclude_id for row in rows)

    async def add_user(self, data: UserCreate) -> UserResult:
        email = normalize_email(data.email)
        values = data.model_dump(exclude={"password"})
        values["email"] = email
        values["password_hash"] = get_password_hash(data.password)
        values = self._full_grants(values)
        try:
            if await self._email_taken(email):
                return UserResult(error=DuplicateEmailError())
            row = await self.source.insert(self.collection, mappers.USERS.to_row(values))
        except RemoteError as exc:
            logger.error("user_create_failed", error=str(exc))
            return UserResult(error=RemoteUnavailableError())
        await self._changed()
        return UserResult(user=self._parse(row))

    async def update_user(self, user_id: str, data: UserUpdate) -> UserResult:
        changes = {
            key: value
            for key, value in data.model_dump(exclude_unset=True).items()
            if value is not None
        }
        try:
            row = await self.source.get(self.collection, user_id)
            if row is None:
                return UserResult(error=NotFoundError())
            current = self._parse_valid(row)
            if current is None:
                return UserResult(error=NotFoundError())
            if "email" in changes:
                email = normalize_email(changes["email"])
                if email != normalize_email(current.email):
                    if self.is_protected(current):
                        return UserResult(error=ProtectedFieldError())
                    if await self._email_taken(email, exclude_id=user_id):
                        return UserResult(error=DuplicateEmailError())
                changes["email"] = email
            if "password" in changes:
                changes["password_hash"] = get_password_hash(changes.pop("password"))
            changes = self._full_grants({"email": current.email, **changes})
            updated = await self.source.update(
                self.collection, user_id, mappers.USERS.to_row(changes)
            )
        except RemoteError as exc:
            logger.error("user_update_failed", id=user_id, error=str(exc))
            return UserResult(error=RemoteUnavailableError())
        if updated is None:
            return UserResult(error=NotFoundError())
        await self._changed()
        return UserResult(user=self._parse(updated))

    async def delete_user(self, user_id: str, acting_user_id: Optional[str]) -> UserResult:
        try:
            row = await self.source.get(self.collection, user_id)
            if row is None:
                return UserResult(error=NotFoundError())
            user = self._parse_valid(row)
            if is_protected_email(row.get("email"), self.settings.PROTECTED_ADMIN_EMAIL):
                return UserResult(error=ProtectedAccountError())
            if acting_user_id is not None and user_id == acting_user_id:
                return UserResult(error=SelfDeleteError())
            await self.source.delete(self.collection, user_id)
        except RemoteError as exc:
            logger.error("user_delete_failed", id=user_id, error=str(exc))
            return UserResult(error=RemoteUnavailableError())
        await self._changed()
        return UserResult(user=user)

    # grants

    def has_permission(self, user: Optional[User], section: Any) -> bool:
        if user is None:
            return False
        return has_permission(user.permissions, section, protected=self.is_protected(user))

    def has_tab_access(
        self,
        user: Optional[User],
        section: Any,
        tab: Any,
        level: Any = AccessLevel.VIEW,
    ) -> bool:
        if user is None:
            return False
        return has_tab_access(
            user.permissions,
            user.tab_permissions,
            section,
            tab,
            level,
            protected=self.is_protected(user),
        )

