"""
core.domain.notifications — Case event fan-out over e-mail.

Centralises notification delivery so every case mutation uses one
consistent entry-point rather than sending mail itself.

Pipeline per event
------------------
    event received → recipients resolved → content rendered
        → one send per recipient, concurrently → outcomes aggregated

Design decisions
----------------
* **Outbox** — services never send mail.  A mutation returns the
  ``NotificationEvent`` objects it produced and hands them to
  ``NotificationOutbox.publish``, which registers a
  ``transaction.on_commit`` callback.  A rolled-back mutation therefore
  never notifies anybody.
* **Database work stays on the committing thread** — recipient lookup
  and template rendering happen in ``NotificationDispatcher.prepare``.
  Only the mail sends run on worker threads, so no ORM connection is
  ever opened from a pool thread.
* **Partial failure is normal** — every recipient gets exactly one
  attempt.  A failed or timed-out send becomes a failed
  ``DeliveryOutcome``; the dispatch itself never raises because of it.

Usage::

    from core.domain.notifications import NotificationEvent, NotificationOutbox

    NotificationOutbox.publish([
        NotificationEvent(CASE_CREATED, case_id=case.pk, actor_id=user.pk),
    ])
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING, Any, Iterable, Protocol

from django.apps import apps
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import EmailMultiAlternatives, get_connection
from django.db import transaction
from django.template.loader import render_to_string

from core.domain.exceptions import DeliveryFailure, DomainError

if TYPE_CHECKING:
    from cases.models import Case

logger = logging.getLogger(__name__)

# ── Event types ─────────────────────────────────────────────────────
CASE_CREATED = "case_created"
CASE_ASSIGNED = "case_assigned"
CASE_STATUS_CHANGED = "case_status_changed"
CASE_UPDATED = "case_updated"

EVENT_TYPES = frozenset({CASE_CREATED, CASE_ASSIGNED, CASE_STATUS_CHANGED, CASE_UPDATED})

# event_type → subject template
_SUBJECTS: dict[str, str] = {
    CASE_CREATED: "New Case Created: {case_number}",
    CASE_ASSIGNED: "Case Assigned to You: {case_number}",
    CASE_STATUS_CHANGED: "Case Status Updated: {case_number}",
    CASE_UPDATED: "Case Updated: {case_number}",
}

_DEFAULTS = {
    "MAX_WORKERS": 8,
    "SEND_TIMEOUT": 15.0,
    "RUN_IN_BACKGROUND": True,
}


def notification_settings() -> dict[str, Any]:
    """Return ``settings.NOTIFICATIONS`` merged over the defaults."""
    return {**_DEFAULTS, **getattr(settings, "NOTIFICATIONS", {})}


# ═══════════════════════════════════════════════════════════════════
#  Value objects
# ═══════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class NotificationEvent:
    """Something happened to a case that people may need to hear about."""

    event_type: str
    case_id: int
    actor_id: int | None = None
    message: str = ""

    def __post_init__(self) -> None:
        if self.event_type not in EVENT_TYPES:
            raise DomainError(f"Unknown notification event type '{self.event_type}'.")


@dataclass(frozen=True)
class Recipient:
    email: str
    name: str = ""


@dataclass(frozen=True)
class RenderedMessage:
    recipient: Recipient
    subject: str
    text_body: str
    html_body: str


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of the single send attempt made for one recipient."""

    recipient: str
    success: bool
    error: str = ""


@dataclass
class PreparedDispatch:
    """An event whose recipients are resolved and messages rendered."""

    event: NotificationEvent
    case_number: str = ""
    messages: list[RenderedMessage] = field(default_factory=list)


@dataclass
class DispatchResult:
    """Aggregated per-recipient outcome of one dispatch."""

    event_type: str
    case_number: str = ""
    outcomes: list[DeliveryOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> list[DeliveryOutcome]:
        return [o for o in self.outcomes if o.success]

    @property
    def failed(self) -> list[DeliveryOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def ok(self) -> bool:
        return not self.failed


# ═══════════════════════════════════════════════════════════════════
#  Mail collaborator
# ═══════════════════════════════════════════════════════════════════


class Mailer(Protocol):
    """Sends one message to one address; raises on failure."""

    def send(
        self,
        *,
        to_address: str,
        subject: str,
        body: str,
        html_body: str | None = None,
    ) -> None:
        ...


class DjangoMailer:
    """``Mailer`` backed by Django's configured ``EMAIL_BACKEND``."""

    def __init__(self, from_email: str | None = None) -> None:
        self.from_email = from_email or settings.DEFAULT_FROM_EMAIL

    def send(
        self,
        *,
        to_address: str,
        subject: str,
        body: str,
        html_body: str | None = None,
    ) -> None:
        # One connection per send: backends are not shared across threads.
        connection = get_connection(fail_silently=False)
        message = EmailMultiAlternatives(
            subject=subject,
            body=body,
            from_email=self.from_email,
            to=[to_address],
            connection=connection,
        )
        if html_body:
            message.attach_alternative(html_body, "text/html")
        if message.send() != 1:
            raise DeliveryFailure(
                f"Mail backend accepted no message for {to_address}.",
                recipient=to_address,
            )


# ═══════════════════════════════════════════════════════════════════
#  Dispatcher
# ═══════════════════════════════════════════════════════════════════


class NotificationDispatcher:
    """
    Resolves, renders and delivers notifications for case events.

    Parameters
    ----------
    mailer : Mailer, optional
        Mail collaborator.  Defaults to ``DjangoMailer``.
    max_workers : int, optional
        Upper bound on concurrent sends.  Defaults to
        ``NOTIFICATIONS["MAX_WORKERS"]``.
    send_timeout : float, optional
        Seconds to wait for the whole batch of sends.  Sends still
        running afterwards are reported as failed.  Defaults to
        ``NOTIFICATIONS["SEND_TIMEOUT"]``.
    """

    def __init__(
        self,
        mailer: Mailer | None = None,
        *,
        max_workers: int | None = None,
        send_timeout: float | None = None,
    ) -> None:
        conf = notification_settings()
        self.mailer = mailer or DjangoMailer()
        self.max_workers = max(1, max_workers or conf["MAX_WORKERS"])
        self.send_timeout = send_timeout if send_timeout is not None else conf["SEND_TIMEOUT"]

    # ── Public API ──────────────────────────────────────────────────

    def dispatch(self, event: NotificationEvent) -> DispatchResult:
        """Prepare and deliver ``event``.  Never raises for delivery failures."""
        return self.send(self.prepare(event))

    def prepare(self, event: NotificationEvent) -> PreparedDispatch:
        """
        Resolve recipients and render one message per recipient.

        Touches the database, so it must run on a thread that owns a
        connection (the request thread).  A case that no longer exists
        yields an empty dispatch.
        """
        case = self._load_case(event.case_id)
        if case is None:
            logger.warning(
                "Skipping %s notification: case %s no longer exists.",
                event.event_type,
                event.case_id,
            )
            return PreparedDispatch(event=event)

        recipients = self.resolve_recipients(event.event_type, case)
        actor = self._load_actor(event.actor_id)
        messages = [self.render(event, case, recipient, actor=actor) for recipient in recipients]
        return PreparedDispatch(event=event, case_number=case.case_number, messages=messages)

    def send(self, prepared: PreparedDispatch) -> DispatchResult:
        """Deliver every prepared message and aggregate the outcomes."""
        result = DispatchResult(
            event_type=prepared.event.event_type,
            case_number=prepared.case_number,
        )
        if not prepared.messages:
            logger.debug(
                "No recipients for %s on case %s.",
                prepared.event.event_type,
                prepared.case_number or prepared.event.case_id,
            )
            return result

        result.outcomes = self.deliver(prepared.messages)
        logger.info(
            "Dispatched %s for case %s: %d sent, %d failed.",
            result.event_type,
            result.case_number,
            len(result.succeeded),
            len(result.failed),
        )
        return result

    # ── Recipient resolution ────────────────────────────────────────

    def resolve_recipients(self, event_type: str, case: Case) -> list[Recipient]:
        """
        Decide who hears about ``event_type`` on ``case``.

        * ``case_created``        — every active admin and investigator.
        * ``case_assigned``       — the current assignee.
        * ``case_status_changed`` — creator and assignee, deduplicated.
        * ``case_updated``        — nobody.

        Users without an e-mail address are skipped.
        """
        if event_type == CASE_CREATED:
            User = get_user_model()
            users = (
                User.objects
                .filter(is_active=True, role__in=["admin", "investigator"])
                .exclude(email="")
                .order_by("pk")
            )
            return self._dedupe(users)

        if event_type == CASE_ASSIGNED:
            return self._dedupe([case.assigned_to])

        if event_type == CASE_STATUS_CHANGED:
            return self._dedupe([case.created_by, case.assigned_to])

        return []

    @staticmethod
    def _dedupe(users: Iterable[Any]) -> list[Recipient]:
        seen: set[str] = set()
        recipients: list[Recipient] = []
        for user in users:
            if user is None or not user.email:
                continue
            key = user.email.strip().lower()
            if key in seen:
                continue
            seen.add(key)
            recipients.append(Recipient(email=user.email, name=user.display_name))
        return recipients

    # ── Rendering ───────────────────────────────────────────────────

    def render(
        self,
        event: NotificationEvent,
        case: Case,
        recipient: Recipient,
        *,
        actor: Any = None,
    ) -> RenderedMessage:
        """Fill the event's subject and templates for one recipient."""
        context = {
            "case": case,
            "recipient": recipient,
            "actor_name": actor.display_name if actor is not None else "",
            "created_by_name": case.created_by.display_name if case.created_by_id else "Unknown",
            "message": event.message,
        }
        template_base = f"notifications/{event.event_type}"
        return RenderedMessage(
            recipient=recipient,
            subject=_SUBJECTS[event.event_type].format(case_number=case.case_number),
            text_body=render_to_string(f"{template_base}.txt", context),
            html_body=render_to_string(f"{template_base}.html", context),
        )

    # ── Delivery ────────────────────────────────────────────────────

    def deliver(self, messages: list[RenderedMessage]) -> list[DeliveryOutcome]:
        """
        Send every message concurrently and wait for all of them.

        Returns one outcome per message, in the same order.  Nothing is
        retried and no failure short-circuits the others.
        """
        if not messages:
            return []

        executor = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(messages)),
            thread_name_prefix="notify-send",
        )
        try:
            futures = [executor.submit(self._send_one, message) for message in messages]
            _, pending = wait(futures, timeout=self.send_timeout)

            outcomes: list[DeliveryOutcome] = []
            for message, future in zip(messages, futures):
                address = message.recipient.email
                if future in pending:
                    future.cancel()
                    outcome = DeliveryOutcome(
                        recipient=address,
                        success=False,
                        error=f"Timed out after {self.send_timeout}s.",
                    )
                else:
                    error = future.exception()
                    if error is None:
                        outcome = DeliveryOutcome(recipient=address, success=True)
                    else:
                        outcome = DeliveryOutcome(recipient=address, success=False, error=str(error))
                if not outcome.success:
                    logger.warning(
                        "Delivery to %s failed (%s): %s",
                        address,
                        message.subject,
                        outcome.error,
                    )
                outcomes.append(outcome)
            return outcomes
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _send_one(self, message: RenderedMessage) -> None:
        try:
            self.mailer.send(
                to_address=message.recipient.email,
                subject=message.subject,
                body=message.text_body,
                html_body=message.html_body,
            )
        except DeliveryFailure:
            raise
        except Exception as exc:
            raise DeliveryFailure(str(exc) or exc.__class__.__name__, recipient=message.recipient.email) from exc

    # ── Lookups ─────────────────────────────────────────────────────

    @staticmethod
    def _load_case(case_id: int) -> Case | None:
        Case = apps.get_model("cases", "Case")
        return (
            Case.objects
            .select_related("created_by", "assigned_to")
            .filter(pk=case_id)
            .first()
        )

    @staticmethod
    def _load_actor(actor_id: int | None) -> Any:
        if actor_id is None:
            return None
        return get_user_model().objects.filter(pk=actor_id).first()


# ═══════════════════════════════════════════════════════════════════
#  Outbox
# ═══════════════════════════════════════════════════════════════════


class NotificationOutbox:
    """
    Post-commit hand-off between case mutations and the dispatcher.

    All methods are classmethods — the only state is the lazily created
    background executor shared by the process.
    """

    _executor: ThreadPoolExecutor | None = None
    _executor_lock = threading.Lock()

    @classmethod
    def publish(
        cls,
        events: Iterable[NotificationEvent],
        *,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        """
        Queue ``events`` for dispatch once the current transaction commits.

        Outside a transaction the callback runs immediately.
        """
        events = list(events)
        if not events:
            return
        transaction.on_commit(partial(cls.flush, events, dispatcher=dispatcher))

    @classmethod
    def flush(
        cls,
        events: list[NotificationEvent],
        *,
        dispatcher: NotificationDispatcher | None = None,
    ) -> list[DispatchResult]:
        """
        Prepare every event on this thread, then deliver inline or in
        the background depending on ``NOTIFICATIONS["RUN_IN_BACKGROUND"]``.

        Returns the results of inline deliveries (empty when running in
        the background).  A failure on one event is logged and does not
        stop the others.
        """
        dispatcher = dispatcher or NotificationDispatcher()
        background = notification_settings()["RUN_IN_BACKGROUND"]
        results: list[DispatchResult] = []

        for event in events:
            try:
                prepared = dispatcher.prepare(event)
            except Exception:
                logger.exception(
                    "Could not prepare %s notification for case %s.",
                    event.event_type,
                    event.case_id,
                )
                continue

            if background:
                future = cls._get_executor().submit(dispatcher.send, prepared)
                future.add_done_callback(partial(cls._log_background_failure, event))
            else:
                results.append(dispatcher.send(prepared))
        return results

    @staticmethod
    def _log_background_failure(event: NotificationEvent, future: Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(
                "Background dispatch of %s for case %s failed.",
                event.event_type,
                event.case_id,
                exc_info=error,
            )

    @classmethod
    def _get_executor(cls) -> ThreadPoolExecutor:
        with cls._executor_lock:
            if cls._executor is None:
                cls._executor = ThreadPoolExecutor(
                    max_workers=2,
                    thread_name_prefix="notify-outbox",
                )
            return cls._executor
