"""
core.domain.transactions — Helpers for primary/secondary write boundaries.

A case mutation is the *primary* effect and must be all-or-nothing.
Activity entries and notifications are *secondary* effects: they must
never roll back the mutation that triggered them.  The helpers here
wrap ``transaction.atomic`` / ``select_for_update`` / savepoints into
reusable patterns so every service applies the same rules.

Usage::

    from core.domain.transactions import best_effort, lock_for_update

    with transaction.atomic():
        case = lock_for_update(Case, case_id)
        ...
        best_effort(
            lambda: ActivityLog.objects.create(...),
            description="activity entry for case %s" % case.case_number,
        )
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from django.db import DatabaseError, models, transaction

from core.domain.exceptions import DomainError, NotFound

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=models.Model)


def run_in_atomic(fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """
    Execute ``fn(*args, **kwargs)`` inside ``transaction.atomic()``.

    Convenient when a service function should be fully atomic but you
    don't want to decorate the function itself.

    Raises:
        Any exception raised by ``fn`` — the transaction is rolled back.
    """
    with transaction.atomic():
        return fn(*args, **kwargs)


def lock_for_update(model_class: type[M], pk: Any, *, queryset=None) -> M:
    """
    Acquire a row-level lock on the given model instance.

    Convenience wrapper around ``select_for_update().get(pk=pk)``
    that must be called inside an ``atomic()`` block.

    Args:
        model_class: The Django model class.
        pk:          Primary key value.
        queryset:    Optional pre-filtered queryset (e.g. role-scoped)
                     to lock from instead of the default manager.

    Returns:
        The locked model instance.

    Raises:
        NotFound: If no row with that PK exists in ``queryset``.
    """
    qs = queryset if queryset is not None else model_class.objects.all()
    try:
        return qs.select_for_update().get(pk=pk)
    except model_class.DoesNotExist:
        raise NotFound(f"{model_class.__name__} with pk={pk} does not exist.")


def best_effort(fn: Callable[[], T], *, description: str) -> T | None:
    """
    Run a secondary write inside its own savepoint.

    If ``fn`` fails with a database or domain error the savepoint is
    rolled back, the failure is logged with its traceback, and ``None``
    is returned.  The enclosing (primary) transaction stays usable.

    Args:
        fn:          Zero-argument callable performing the write.
        description: Human-readable label used in the log line.

    Returns:
        Whatever ``fn`` returns, or ``None`` on failure.
    """
    try:
        with transaction.atomic():
            return fn()
    except (DatabaseError, DomainError):
        logger.exception("Secondary write failed: %s", description)
        return None
