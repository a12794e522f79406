"""
Case number allocation.

Numbers look like ``SI-202410-007``: configurable prefix, the ``YYYYMM``
period of creation, and a zero-padded counter that restarts every
month.  The counter lives in ``CaseNumberSequence`` and is advanced
under a row lock, so two concurrent creators can never be handed the
same number.
"""

from __future__ import annotations

import datetime
import logging

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .models import CaseNumberSequence

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "SI"


def format_case_number(prefix: str, period: str, value: int) -> str:
    return f"{prefix}-{period}-{value:03d}"


@transaction.atomic
def generate_case_number(
    *,
    now: datetime.datetime | None = None,
    prefix: str | None = None,
) -> str:
    """
    Allocate the next case number for the current month.

    Parameters
    ----------
    now : datetime, optional
        Clock override; defaults to ``timezone.now()``.  The period is
        taken from its UTC calendar month.
    prefix : str, optional
        Overrides ``settings.CASE_NUMBER_PREFIX``.

    Returns
    -------
    str
        A number that has never been returned before.
    """
    now = now or timezone.now()
    if timezone.is_aware(now):
        now = now.astimezone(datetime.timezone.utc)
    period = now.strftime("%Y%m")
    prefix = prefix or getattr(settings, "CASE_NUMBER_PREFIX", DEFAULT_PREFIX)

    CaseNumberSequence.objects.get_or_create(period=period)
    sequence = CaseNumberSequence.objects.select_for_update().get(period=period)
    sequence.last_value += 1
    sequence.save(update_fields=["last_value"])

    number = format_case_number(prefix, period, sequence.last_value)
    logger.debug("Allocated case number %s", number)
    return number
