"""
Payment State Machine

Applies a payment decision to exactly one payable resource (lesson booking,
handledar booking or package purchase). Used by the admin dashboard, the
emailed Swish action links, the Django admin and the reminder command.

Decisions:
    confirm  payment_status=paid, status=confirmed. Package purchases get
             paid_at and one credit grant per package content line. Open
             invoices of the resource are marked paid. The owner receives
             "payment confirmed" and "booking confirmed" notifications.
    deny     payment_status=failed, status=cancelled. No credits change.
    remind   no state change. One reminder to the owner's contact address,
             silently skipped when there is none.

Confirming an already paid resource changes nothing: the prior status is
read under a row lock inside the transaction, so credits are granted at
most once per resource.

Notifications are sent after the transaction has committed. Their failures
are logged and never undo the state change.

Author: Trafikskola Development Team
Version: 1.0.0
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Optional
from urllib.parse import quote

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from core.bookings.models import PaymentStatus
from core.credits.ledger import CreditLedger
from core.invoices.services import InvoiceSequencer
from core.payments.exceptions import InvalidDecision, OperationTimedOut
from core.payments.kinds import Decision, ResourceKind
from core.payments.notifier import Notification, get_notifier
from core.payments.resources import PayableResource, load_resource
from core.payments.tokens import get_action_token_codec

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_METHOD = "swish"
MODERATION_PATH = "/betalning/swish/moderera"


@dataclass
class ApplyResult:
    resource_kind: str
    resource_id: str
    decision: str
    previous_status: str
    payment_status: str
    already_applied: bool = False
    credits_granted: int = 0
    notifications_attempted: int = 0
    notifications_sent: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def check_deadline(deadline: Optional[datetime]) -> None:
    if deadline is not None and timezone.now() >= deadline:
        raise OperationTimedOut(details={"deadline": deadline.isoformat()})


def _parse(kind, decision):
    try:
        return ResourceKind.parse(kind), Decision.parse(decision)
    except ValueError as e:
        raise InvalidDecision(str(e)) from e


class PaymentStateMachine:
    def __init__(self, ledger=None, notifier=None, codec=None, invoices=None):
        self.ledger = ledger or CreditLedger()
        self.notifier = notifier or get_notifier()
        self.invoices = invoices or InvoiceSequencer()
        self._codec = codec

    @property
    def codec(self):
        if self._codec is None:
            self._codec = get_action_token_codec()
        return self._codec

    def apply(
        self,
        kind,
        resource_id,
        decision,
        deadline: Optional[datetime] = None,
        payment_method: Optional[str] = None,
    ) -> ApplyResult:
        """
        Apply ``decision`` to the resource.

        Raises:
            InvalidDecision: unknown kind or decision
            ResourceNotFound: no such resource ("Bokning saknas" / "Order saknas")
            OperationTimedOut: the deadline passed before commit (rolled back)
        """
        kind, decision = _parse(kind, decision)

        if decision == Decision.REMIND:
            return self._remind(kind, resource_id, deadline)

        with transaction.atomic():
            resource = load_resource(kind, resource_id, for_update=True)
            result = ApplyResult(
                resource_kind=kind.value,
                resource_id=str(resource.pk),
                decision=decision.value,
                previous_status=resource.payment_status,
                payment_status=resource.payment_status,
            )

            if decision == Decision.CONFIRM:
                self._confirm(resource, result, payment_method or DEFAULT_PAYMENT_METHOD)
            else:
                resource.set_payment_status(PaymentStatus.FAILED)

            result.payment_status = resource.payment_status
            check_deadline(deadline)

        logger.info(
            f"Applied {decision.value} to {kind.value} {result.resource_id}: "
            f"{result.previous_status} -> {result.payment_status}, "
            f"credits granted={result.credits_granted}"
        )

        if decision == Decision.CONFIRM and not result.already_applied:
            self._notify_confirmed(resource, result)
        return result

    def _confirm(self, resource: PayableResource, result: ApplyResult, payment_method: str) -> None:
        if resource.payment_status == PaymentStatus.PAID:
            result.already_applied = True
            logger.info(
                f"{resource.kind.value} {resource.pk} is already paid, skipping confirmation"
            )
            return

        resource.set_payment_status(PaymentStatus.PAID, payment_method=payment_method)

        lines = resource.credit_lines()
        owner = resource.owner
        if lines and owner is None:
            logger.warning(f"{resource.kind.value} {resource.pk} has credits but no owner")
            lines = []

        package = getattr(resource.instance, "package", None)
        for target, quantity in lines:
            self.ledger.grant(owner, target, quantity, package=package)
            result.credits_granted += quantity

        self.invoices.mark_paid_for_resource(resource.kind, resource.pk, payment_method)

    def _send(self, notification: Notification, result: ApplyResult) -> None:
        result.notifications_attempted += 1
        try:
            sent = self.notifier.send(
                notification.to,
                notification.subject,
                notification.body,
                notification.kind,
                notification.related_user_id,
            )
        except Exception:
            logger.exception(f"Notifier raised while sending {notification.kind}")
            sent = False
        if sent:
            result.notifications_sent += 1

    def _notify_confirmed(self, resource: PayableResource, result: ApplyResult) -> None:
        contact = resource.owner_contact()
        if contact is None:
            logger.info(f"No contact for {resource.kind.value} {resource.pk}, skipping confirmation mail")
            return

        greeting = f"Hej {contact.name}!" if contact.name else "Hej!"
        self._send(
            Notification(
                to=contact.email,
                subject="Betalning bekräftad",
                body=(
                    f"{greeting}\n\nVi har tagit emot din betalning för "
                    f"{resource.display_name} ({resource.amount} kr).\n"
                ),
                kind="payment_confirmed",
                related_user_id=contact.user_id,
            ),
            result,
        )
        self._send(
            Notification(
                to=contact.email,
                subject="Bokning bekräftad",
                body=f"{greeting}\n\nDin bokning är bekräftad: {resource.display_name}.\n",
                kind="booking_confirmed",
                related_user_id=contact.user_id,
            ),
            result,
        )

    def _remind(self, kind: ResourceKind, resource_id, deadline) -> ApplyResult:
        resource = load_resource(kind, resource_id)
        result = ApplyResult(
            resource_kind=kind.value,
            resource_id=str(resource.pk),
            decision=Decision.REMIND.value,
            previous_status=resource.payment_status,
            payment_status=resource.payment_status,
        )

        contact = resource.owner_contact()
        if contact is None:
            logger.info(f"No contact for {kind.value} {resource.pk}, reminder skipped")
            return result

        check_deadline(deadline)
        greeting = f"Hej {contact.name}!" if contact.name else "Hej!"
        self._send(
            Notification(
                to=contact.email,
                subject="Påminnelse om betalning",
                body=(
                    f"{greeting}\n\nVi har ännu inte fått betalningen för "
                    f"{resource.display_name} ({resource.amount} kr).\n"
                    f"Betala här: {resource.payment_url()}\n"
                ),
                kind=f"{kind.value}_payment_reminder",
                related_user_id=contact.user_id,
            ),
            result,
        )
        return result

    def apply_token(self, token, decision=None) -> ApplyResult:
        """
        Public path for emailed action links.

        The decision is the explicit one if given, else the token's
        suggested decision, else confirm.
        """
        action = self.codec.consume(token)
        chosen = decision or action.suggested_decision or Decision.CONFIRM
        try:
            return self.apply(action.resource_kind, action.resource_id, chosen)
        except Exception:
            # nothing was committed, so the link stays usable
            self.codec.release(token)
            raise

    def describe_token(self, token) -> dict:
        """Read-only preview for the moderation page."""
        action = self.codec.decode(token)
        resource = load_resource(action.resource_kind, action.resource_id)
        return {
            "type": action.resource_kind.session_type,
            "item": resource.describe(),
            "suggestedDecision": (
                action.suggested_decision.value if action.suggested_decision else None
            ),
        }

    def build_action_links(self, kind, resource_id) -> dict:
        """Signed confirm/deny links for the admin verification mail."""
        kind = _parse(kind, Decision.CONFIRM)[0]
        resource = load_resource(kind, resource_id)
        base = getattr(settings, "FRONTEND_URL", "").rstrip("/")

        links = {}
        for decision in (Decision.CONFIRM, Decision.DENY):
            token = self.codec.encode(kind, resource.pk, decision)
            links[decision.value] = f"{base}{MODERATION_PATH}?token={quote(token, safe='')}"
        links["item"] = resource.describe()
        return links
