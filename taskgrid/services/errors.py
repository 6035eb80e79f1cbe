"""Failure kinds raised by the access-control engine."""


class AccessError(Exception):
    """Base class for access-control failures."""

    code = "access_error"
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ForbiddenError(AccessError):
    """Caller lacks the required grade on the resource."""

    code = "forbidden"


class NotFoundError(AccessError):
    """Resource, share or user does not exist."""

    code = "not_found"


class AlreadyOwnerError(AccessError):
    """Grantee already owns the resource."""

    code = "already_owner"


class DuplicateShareError(AccessError):
    """A share for this (resource, user) pair already exists."""

    code = "duplicate_share"


class NoChangeError(AccessError):
    """Update requested the grade the share already has."""

    code = "no_change"


class InvalidTargetError(AccessError):
    """Target user cannot receive the resource in its current state."""

    code = "invalid_target"


class ConflictError(AccessError):
    """Lock contention or a concurrent write on the same resource."""

    code = "conflict"
    retryable = True
