"""
core.domain — Shared domain utilities for cross-app service layers.

Modules
-------
exceptions         Domain-specific exceptions that map cleanly to HTTP responses.
exception_handler  DRF exception handler for the exceptions above.
access             Centralised role-based access policy for cases and notes.
transactions       ``transaction.atomic`` / ``select_for_update`` / savepoint helpers.
notifications      Case event outbox, recipient resolution and concurrent delivery.

Usage from any app::

    from core.domain.exceptions import DomainError, InvalidTransition
    from core.domain.access import can_edit, role_of, scope_case_queryset
    from core.domain.transactions import best_effort, lock_for_update
    from core.domain.notifications import NotificationEvent, NotificationOutbox
"""
