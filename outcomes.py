"""
Request outcomes.

Every route resolves to exactly one of these values. Expected failures
(validation, ownership, missing documents, storage faults met while
validating) are returned up the call chain instead of raised, and
`main.respond` is the only place that turns them into HTTP responses.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Ok:
    """Successful read, update or delete."""
    body: Any
    status_code: int = 200


@dataclass(frozen=True)
class Created:
    """Successful creation. Carries a message only, not the new document id."""
    body: Any
    status_code: int = 201


@dataclass(frozen=True)
class Failure:
    """
    Base class for all rejected requests.

    Attributes:
        message: Single human-readable message surfaced to the caller
        code: Stable error code for clients
        status_code: HTTP status the route layer answers with
    """
    message: str
    code: str = field(default="INTERNAL_ERROR")
    status_code: int = field(default=500)


@dataclass(frozen=True)
class ClientInputError(Failure):
    """Malformed request, e.g. an empty body."""
    code: str = field(default="BAD_REQUEST")
    status_code: int = field(default=400)


@dataclass(frozen=True)
class ValidationFailure(Failure):
    """A business rule rejected the payload."""
    code: str = field(default="VALIDATION_ERROR")
    status_code: int = field(default=422)


@dataclass(frozen=True)
class AuthorizationFailure(Failure):
    """The caller is acting on a record it does not own."""
    code: str = field(default="FORBIDDEN")
    status_code: int = field(default=403)


@dataclass(frozen=True)
class NotFoundFailure(Failure):
    """The target document does not exist."""
    code: str = field(default="NOT_FOUND")
    status_code: int = field(default=404)


@dataclass(frozen=True)
class StorageFailure(Failure):
    """The database raised while a rule or mutation was running."""
    code: str = field(default="DATABASE_ERROR")
    status_code: int = field(default=500)
