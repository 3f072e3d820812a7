"""Domain errors raised by the store and the lifecycle services.

Each error carries the HTTP status the API layer answers with; services
raise them and never retry.
"""

from __future__ import annotations


class ArenaError(Exception):
    """Base error for every failure surfaced by the arena services."""

    status_code = 400

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__class__.__doc__ or self.__class__.__name__)
        self.message = str(self.args[0])


class NotEligible(ArenaError):
    """The actor does not meet the preconditions for this action."""

    status_code = 409


class AlreadyMember(ArenaError):
    """User is already an active member of this team."""

    status_code = 409


class AlreadySubmitted(ArenaError):
    """A solution was already submitted for this challenge."""

    status_code = 409


class TeamFull(ArenaError):
    """Team is full."""

    status_code = 409


class Forbidden(ArenaError):
    """Not allowed."""

    status_code = 403


class AuthenticationError(ArenaError):
    """Not authenticated."""

    status_code = 401


class NotFound(ArenaError):
    """Not found."""

    status_code = 404


class InvalidRequest(ArenaError):
    """Invalid request."""

    status_code = 400


class InvalidTransition(ArenaError):
    """Status transition is not allowed."""

    status_code = 409


class StoreError(ArenaError):
    """The backing store or identity provider failed."""

    status_code = 503


class ConflictError(StoreError):
    """The document changed since it was read."""

    status_code = 409


class IdentityError(StoreError):
    """The identity provider rejected the login."""

    status_code = 502


__all__ = [
    "AlreadyMember",
    "AlreadySubmitted",
    "ArenaError",
    "AuthenticationError",
    "ConflictError",
    "Forbidden",
    "IdentityError",
    "InvalidRequest",
    "InvalidTransition",
    "NotEligible",
    "NotFound",
    "StoreError",
    "TeamFull",
]
