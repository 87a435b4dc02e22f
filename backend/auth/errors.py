"""Exceptions raised by the authorization core."""

from typing import Optional


class AuthError(Exception):
    """Base class for authorization-core failures."""


class InvalidArgumentError(AuthError, ValueError):
    """A required field is missing or a referenced record does not exist.

    Raised before any mutation happens.
    """


class ForbiddenError(InvalidArgumentError):
    """The operation is refused in the record's current state."""


class IllegalStateError(AuthError, RuntimeError):
    """Stored data is missing a field that must be present at this point."""


class OperationFailedError(AuthError):
    """A transactional unit failed and was rolled back."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause

    def __str__(self):
        base = super().__str__()
        if self.cause is None:
            return base
        return f"{base}: {type(self.cause).__name__}: {self.cause}"


def check_argument(condition: bool, message: str, *args) -> None:
    """Raise :class:`InvalidArgumentError` with ``message % args`` unless ``condition``."""
    if not condition:
        raise InvalidArgumentError(message % args if args else message)


def check_state(condition: bool, message: str, *args) -> None:
    """Raise :class:`IllegalStateError` with ``message % args`` unless ``condition``."""
    if not condition:
        raise IllegalStateError(message % args if args else message)
