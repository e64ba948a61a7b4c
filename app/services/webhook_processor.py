"""
Webhook processing for payment provider events.

Every delivery is verified, parsed, checked against the receipt table and then
dispatched to one handler. The handler's state changes and the receipt row are
committed together: either the event is fully applied and remembered, or
nothing is written and the provider redelivers.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core import config
from app.core.errors import DuplicateEvent, InvalidSignature
from app.core.tier_catalog import plan_for_price_id
from app.db.base import utcnow
from app.db.models.billing_customer import BillingCustomer
from app.db.models.payment import Payment, PaymentStatus
from app.db.models.subscription import SubscriptionTier, BillingPeriod, PaymentProvider
from app.db.models.user import User
from app.db.models.webhook_event import WebhookEventReceipt
from app.schemas.webhook_events import (
    CheckoutCompleted,
    InvoicePayment,
    PaymentFailed,
    PaymentSucceeded,
    SubscriptionChanged,
    SubscriptionDeleted,
    UnhandledEvent,
    WebhookEvent,
    parse_event,
)
from app.services.payment_provider import PaymentProviderClient
from app.services.subscription_store import SubscriptionStore

logger = logging.getLogger(__name__)


@dataclass
class WebhookResult:
    event_id: str
    event_type: str
    duplicate: bool = False


def _enum_or_none(enum_cls, value: Optional[str]):
    if not value:
        return None
    try:
        return enum_cls(value.upper())
    except ValueError:
        return None


class WebhookProcessor:
    def __init__(
        self,
        db: Session,
        provider: PaymentProviderClient,
        price_ids: Optional[Dict[Tuple[str, str], Optional[str]]] = None,
    ):
        self.db = db
        self.provider = provider
        self.price_ids = price_ids if price_ids is not None else config.STRIPE_PRICE_IDS
        self.store = SubscriptionStore(db)
        self._handlers: Dict[type, Callable] = {
            CheckoutCompleted: self._on_checkout_completed,
            SubscriptionChanged: self._on_subscription_changed,
            SubscriptionDeleted: self._on_subscription_deleted,
            PaymentSucceeded: self._on_payment_succeeded,
            PaymentFailed: self._on_payment_failed,
            UnhandledEvent: self._on_unhandled,
        }

    def process(self, raw_payload: Union[bytes, str], signature_header: Optional[str]) -> WebhookResult:
        """
        Verify, deduplicate and apply one webhook delivery.

        Args:
            raw_payload: Exact request body as received
            signature_header: Value of the provider signature header

        Returns:
            WebhookResult; duplicate=True when the event was already processed

        Raises:
            InvalidSignature: Signature missing or wrong; nothing is written
            UnparseableEvent: Body is not a valid event; nothing is written
            Any handler error after rollback, so the provider retries
        """
        if not self.provider.verify_webhook_signature(raw_payload, signature_header):
            raise InvalidSignature("Invalid webhook signature")

        event = parse_event(raw_payload)
        try:
            self._apply(event, raw_payload)
        except DuplicateEvent as e:
            logger.info(f"{e.message}: event_id={event.event_id}, type={event.event_type}")
            return WebhookResult(event.event_id, event.event_type, duplicate=True)
        return WebhookResult(event.event_id, event.event_type)

    def _apply(self, event: WebhookEvent, raw_payload: Union[bytes, str]) -> None:
        """Run the handler and store the receipt in one commit; DuplicateEvent when already handled."""
        if self._already_processed(event.event_id):
            raise DuplicateEvent("Duplicate webhook event ignored")

        logger.info(f"Processing webhook event: event_id={event.event_id}, type={event.event_type}")
        try:
            self._handlers[type(event)](event)
            self.db.add(WebhookEventReceipt(
                external_event_id=event.event_id,
                event_type=event.event_type,
                status="PROCESSED",
                raw_payload=self._as_text(raw_payload),
                processed_at=utcnow(),
            ))
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            # A concurrent delivery of the same event won the receipt insert
            if self._already_processed(event.event_id):
                raise DuplicateEvent("Concurrent duplicate webhook event") from e
            raise
        except Exception:
            self.db.rollback()
            logger.exception(f"Webhook handler failed: event_id={event.event_id}, type={event.event_type}")
            raise

    def _already_processed(self, event_id: str) -> bool:
        return self.db.query(WebhookEventReceipt.id).filter(
            WebhookEventReceipt.external_event_id == event_id
        ).first() is not None

    @staticmethod
    def _as_text(raw_payload: Union[bytes, str]) -> str:
        if isinstance(raw_payload, bytes):
            return raw_payload.decode("utf-8", errors="replace")
        return raw_payload

    # ---- handlers ----------------------------------------------------

    def _on_checkout_completed(self, event: CheckoutCompleted) -> None:
        if not event.external_subscription_id:
            logger.warning(f"Checkout without subscription ignored: event_id={event.event_id}")
            return

        user_id = self._resolve_checkout_user(event)
        if user_id is None:
            logger.error(
                f"Checkout completed for unknown user - dropped: event_id={event.event_id}, "
                f"customer_id={event.customer_id}"
            )
            return

        if event.customer_id:
            self._remember_customer(user_id, event.customer_id, event.customer_email)

        self.store.upsert_on_checkout_completed(
            user_id=user_id,
            customer_id=event.customer_id,
            external_subscription_id=event.external_subscription_id,
            tier=_enum_or_none(SubscriptionTier, event.tier),
            billing_period=_enum_or_none(BillingPeriod, event.billing_period),
            event_at=event.created,
        )

    def _on_subscription_changed(self, event: SubscriptionChanged) -> None:
        plan = plan_for_price_id(event.price_id, self.price_ids)
        if event.price_id and not plan:
            logger.warning(f"Unrecognized price_id={event.price_id} on subscription_id={event.external_subscription_id}")
        tier, billing_period = plan if plan else (None, None)

        self.store.apply_provider_update(
            event.external_subscription_id,
            status=event.status,
            cancel_at_period_end=event.cancel_at_period_end,
            period_start=event.period_start,
            period_end=event.period_end,
            tier=tier,
            billing_period=billing_period,
            trial_start=event.trial_start,
            trial_end=event.trial_end,
            canceled_at=event.canceled_at,
            event_at=event.created,
        )

    def _on_subscription_deleted(self, event: SubscriptionDeleted) -> None:
        self.store.apply_provider_deletion(event.external_subscription_id, event_at=event.created)

    def _on_payment_succeeded(self, event: PaymentSucceeded) -> None:
        self._record_payment(event, PaymentStatus.SUCCEEDED)
        if event.external_subscription_id:
            self.store.mark_payment_recovered(event.external_subscription_id, event_at=event.created)

    def _on_payment_failed(self, event: PaymentFailed) -> None:
        self._record_payment(event, PaymentStatus.FAILED)
        if event.external_subscription_id:
            self.store.mark_past_due(event.external_subscription_id, event_at=event.created)
        else:
            logger.warning(f"invoice.payment_failed without subscription: invoice_id={event.invoice_id}")

    def _on_unhandled(self, event: UnhandledEvent) -> None:
        logger.info(f"Unhandled webhook event type acknowledged: type={event.event_type}")

    # ---- helpers -----------------------------------------------------

    def _resolve_checkout_user(self, event: CheckoutCompleted) -> Optional[int]:
        if event.user_id is not None:
            if self.db.get(User, event.user_id):
                return event.user_id
            logger.warning(f"Checkout metadata references missing user_id={event.user_id}")

        if event.customer_id:
            mapping = self.db.query(BillingCustomer).filter(
                BillingCustomer.customer_id == event.customer_id
            ).first()
            if mapping:
                return mapping.user_id

        if event.customer_email:
            user = self.db.query(User).filter(User.email == event.customer_email).first()
            if user:
                return user.id
        return None

    def _remember_customer(self, user_id: int, customer_id: str, email: Optional[str]) -> None:
        owner = self.db.query(BillingCustomer).filter(BillingCustomer.customer_id == customer_id).first()
        if owner and owner.user_id != user_id:
            logger.error(f"customer_id={customer_id} already mapped to user_id={owner.user_id}, not remapping")
            return

        existing = owner or self.db.query(BillingCustomer).filter(BillingCustomer.user_id == user_id).first()
        if existing:
            if existing.customer_id != customer_id:
                logger.warning(
                    f"Customer id changed for user_id={user_id}: {existing.customer_id} -> {customer_id}"
                )
                existing.customer_id = customer_id
            return

        if not email:
            user = self.db.get(User, user_id)
            email = user.email if user else ""
        self.db.add(BillingCustomer(user_id=user_id, customer_id=customer_id, email=email))
        self.db.flush()

    def _resolve_payment_user(self, event: InvoicePayment) -> Tuple[Optional[int], Optional[int]]:
        """(user_id, subscription row id) for an invoice event."""
        row = self.store.get_by_external_id(event.external_subscription_id)
        if row:
            return row.user_id, row.id
        if event.customer_id:
            mapping = self.db.query(BillingCustomer).filter(
                BillingCustomer.customer_id == event.customer_id
            ).first()
            if mapping:
                return mapping.user_id, None
        return None, None

    def _record_payment(self, event: InvoicePayment, status: PaymentStatus) -> None:
        user_id, subscription_row_id = self._resolve_payment_user(event)
        if user_id is None:
            logger.warning(
                f"Payment for unknown customer not recorded: invoice_id={event.invoice_id}, "
                f"customer_id={event.customer_id}"
            )
            return

        exists = self.db.query(Payment.id).filter(
            Payment.provider == PaymentProvider.STRIPE.value,
            Payment.external_payment_id == event.invoice_id,
            Payment.status == status.value,
        ).first()
        if exists:
            return

        self.db.add(Payment(
            user_id=user_id,
            subscription_id=subscription_row_id,
            external_payment_id=event.invoice_id,
            provider=PaymentProvider.STRIPE.value,
            amount=event.amount,
            currency=event.currency,
            status=status.value,
            description=event.description,
            invoice_id=event.invoice_id,
            receipt_url=event.receipt_url,
        ))
        self.db.flush()
        logger.info(
            f"Payment recorded: user_id={user_id}, invoice_id={event.invoice_id}, "
            f"amount={event.amount} {event.currency}, status={status.value}"
        )
