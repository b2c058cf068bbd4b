"""Error types shared by the data layer and the routers.

Expected failures (validation, protected accounts, an unreachable data
source) are returned to callers as ``StoreError`` values. Routers turn them
into HTTP responses; services never raise them.
"""

from fastapi import status


class RemoteError(Exception):
    """The remote data source could not complete an operation."""


class StorageError(Exception):
    """The local key/value store failed an operation."""


class StorageQuotaError(StorageError):
    """The key/value store refused a write because it is out of space."""


class StoreError(Exception):
    """Base class for user-facing store errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    message: str = "Request could not be completed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class DuplicateEmailError(StoreError):
    status_code = status.HTTP_409_CONFLICT
    message = "A user with this email already exists"


class NotFoundError(StoreError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "User not found"


class ProtectedFieldError(StoreError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "The email of the default administrator cannot be changed"


class ProtectedAccountError(StoreError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "The default administrator cannot be deleted"


class SelfDeleteError(StoreError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "You cannot delete your own account"


class RemoteUnavailableError(StoreError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    message = "Could not save, check your connection"
