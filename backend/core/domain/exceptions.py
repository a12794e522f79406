"""
core.domain.exceptions — Domain-specific exception hierarchy.

These exceptions represent business-rule violations inside service layers.
They are deliberately **not** DRF exceptions so that the domain layer stays
framework-agnostic.  The global DRF exception handler in
``core.domain.exception_handler`` maps them to HTTP responses.

Mapping cheatsheet
------------------
┌─────────────────────┬──────────────────────────────┬──────┐
│ Domain Exception    │ Meaning                      │ Code │
├─────────────────────┼──────────────────────────────┼──────┤
│ DomainError         │ validation failure           │ 400  │
│ PermissionDenied    │ role does not allow the op   │ 403  │
│ NotFound            │ missing or invisible record  │ 404  │
│ Conflict            │ clashes with current state   │ 409  │
│ InvalidTransition   │ illegal status change        │ 409  │
│ StorageFailure      │ blob store rejected the op   │ 502  │
│ DeliveryFailure     │ one e-mail could not be sent │  —   │
└─────────────────────┴──────────────────────────────┴──────┘

``DeliveryFailure`` never reaches a view: the notification dispatcher
records it per recipient and logs it.

Usage inside a service::

    from core.domain.exceptions import InvalidTransition

    if new_status not in ALLOWED_TRANSITIONS[current_status]:
        raise InvalidTransition(current=current_status, target=new_status)
"""

from __future__ import annotations


class DomainError(Exception):
    """
    Base class for all domain / business-rule errors.

    Raised directly for input that fails a business validation rule
    (blank title, unknown assignee, ...).  Converted to 400 Bad Request.
    """

    def __init__(self, message: str = "A business rule was violated.") -> None:
        self.message = message
        super().__init__(self.message)


class PermissionDenied(DomainError):
    """
    The authenticated user's role does not allow this operation.

    Maps to HTTP 403.
    """

    def __init__(self, message: str = "You do not have permission to perform this action.") -> None:
        super().__init__(message)


class NotFound(DomainError):
    """
    The requested resource does not exist (or is not visible to the
    requesting user given their role scope).

    Maps to HTTP 404.
    """

    def __init__(self, message: str = "The requested resource was not found.") -> None:
        super().__init__(message)


class Conflict(DomainError):
    """
    The operation conflicts with the current state of the resource.

    Typical usage: rewriting an append-only activity entry.
    Maps to HTTP 409.
    """

    def __init__(self, message: str = "The operation conflicts with the current state.") -> None:
        super().__init__(message)


class InvalidTransition(Conflict):
    """
    A case status change that the lifecycle state machine does not allow.

    Inherits from ``Conflict`` because an invalid transition IS a conflict
    with the resource's current state.  Maps to HTTP 409.

    Example::

        raise InvalidTransition(
            current="archived",
            target="closed",
            reason="Archived cases can only be reopened.",
        )
    """

    def __init__(
        self,
        message: str | None = None,
        *,
        current: str | None = None,
        target: str | None = None,
        reason: str | None = None,
    ) -> None:
        if message is None:
            parts = ["Invalid state transition"]
            if current and target:
                parts.append(f"from '{current}' to '{target}'")
            message = " ".join(parts) + "."
            if reason:
                message = f"{message} {reason}"
        super().__init__(message)
        self.current = current
        self.target = target
        self.reason = reason


class StorageFailure(DomainError):
    """
    The blob store failed to put, get or delete an object.

    Maps to HTTP 502.
    """

    def __init__(self, message: str = "The document storage backend failed.", *, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class DeliveryFailure(DomainError):
    """
    A single notification could not be delivered to one recipient.

    Never propagated out of a dispatch; kept on the per-recipient
    outcome so callers can inspect what went wrong.
    """

    def __init__(self, message: str = "Notification delivery failed.", *, recipient: str | None = None) -> None:
        super().__init__(message)
        self.recipient = recipient
