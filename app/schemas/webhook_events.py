"""
Webhook payload parsing.

Raw provider payloads are validated once at ingestion with pydantic and turned
into one typed event per supported event type, so handlers never dig through
untyped dictionaries.
"""
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from app.core.errors import UnparseableEvent
from app.db.models.subscription import SubscriptionStatus

CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_CREATED = "customer.subscription.created"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"
PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
PAYMENT_FAILED = "invoice.payment_failed"

# Provider statuses folded onto the four lifecycle states
PROVIDER_STATUS_MAP: Dict[str, SubscriptionStatus] = {
    "trialing": SubscriptionStatus.TRIALING,
    "active": SubscriptionStatus.ACTIVE,
    "past_due": SubscriptionStatus.PAST_DUE,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "incomplete": SubscriptionStatus.PAST_DUE,
    "paused": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELED,
    "incomplete_expired": SubscriptionStatus.CANCELED,
}

ZERO_DECIMAL_CURRENCIES = {"bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga", "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf"}


def _expandable_id(value: Any) -> Any:
    # Expanded objects arrive as dicts; keep only their id
    if isinstance(value, dict):
        return value.get("id")
    return value


def from_timestamp(value: Optional[int]) -> Optional[datetime]:
    """Provider epoch seconds to naive UTC."""
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)


# ---------------------------------------------------------------------------
# Raw provider objects
# ---------------------------------------------------------------------------

class EventData(BaseModel):
    object: Dict[str, Any]


class EventEnvelope(BaseModel):
    id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    created: Optional[int] = None
    data: EventData


class CheckoutSessionObject(BaseModel):
    id: str
    customer: Optional[str] = None
    subscription: Optional[str] = None
    customer_email: Optional[str] = None
    client_reference_id: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)

    @field_validator("customer", "subscription", mode="before")
    @classmethod
    def collapse_expanded_ids(cls, value):
        return _expandable_id(value)


class PriceObject(BaseModel):
    id: str


class SubscriptionItemObject(BaseModel):
    price: Optional[PriceObject] = None
    current_period_start: Optional[int] = None
    current_period_end: Optional[int] = None


class SubscriptionItemList(BaseModel):
    data: List[SubscriptionItemObject] = Field(default_factory=list)


class SubscriptionObject(BaseModel):
    id: str
    customer: Optional[str] = None
    status: str
    cancel_at_period_end: bool = False
    current_period_start: Optional[int] = None
    current_period_end: Optional[int] = None
    trial_start: Optional[int] = None
    trial_end: Optional[int] = None
    canceled_at: Optional[int] = None
    items: Optional[SubscriptionItemList] = None

    @field_validator("customer", mode="before")
    @classmethod
    def collapse_expanded_ids(cls, value):
        return _expandable_id(value)

    @property
    def first_item(self) -> Optional[SubscriptionItemObject]:
        if self.items and self.items.data:
            return self.items.data[0]
        return None


class InvoiceObject(BaseModel):
    id: str
    customer: Optional[str] = None
    subscription: Optional[str] = None
    amount_paid: int = 0
    amount_due: int = 0
    currency: str = "cad"
    payment_intent: Optional[str] = None
    hosted_invoice_url: Optional[str] = None
    description: Optional[str] = None
    parent: Optional[Dict[str, Any]] = None

    @field_validator("customer", "subscription", "payment_intent", mode="before")
    @classmethod
    def collapse_expanded_ids(cls, value):
        return _expandable_id(value)

    @property
    def subscription_id(self) -> Optional[str]:
        if self.subscription:
            return self.subscription
        # Newer API versions nest the subscription under parent.subscription_details
        details = (self.parent or {}).get("subscription_details") or {}
        return _expandable_id(details.get("subscription"))


# ---------------------------------------------------------------------------
# Parsed events (one type per supported event)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProviderEvent:
    event_id: str
    event_type: str
    created: Optional[datetime]


@dataclass(frozen=True)
class CheckoutCompleted(ProviderEvent):
    customer_id: Optional[str]
    external_subscription_id: Optional[str]
    customer_email: Optional[str]
    user_id: Optional[int]
    tier: Optional[str]
    billing_period: Optional[str]


@dataclass(frozen=True)
class SubscriptionChanged(ProviderEvent):
    external_subscription_id: str
    customer_id: Optional[str]
    status: SubscriptionStatus
    cancel_at_period_end: bool
    period_start: Optional[datetime]
    period_end: Optional[datetime]
    trial_start: Optional[datetime]
    trial_end: Optional[datetime]
    canceled_at: Optional[datetime]
    price_id: Optional[str]


@dataclass(frozen=True)
class SubscriptionDeleted(ProviderEvent):
    external_subscription_id: str


@dataclass(frozen=True)
class InvoicePayment(ProviderEvent):
    invoice_id: str
    customer_id: Optional[str]
    external_subscription_id: Optional[str]
    amount: Decimal
    currency: str
    payment_intent_id: Optional[str]
    receipt_url: Optional[str]
    description: Optional[str]


@dataclass(frozen=True)
class PaymentSucceeded(InvoicePayment):
    pass


@dataclass(frozen=True)
class PaymentFailed(InvoicePayment):
    pass


@dataclass(frozen=True)
class UnhandledEvent(ProviderEvent):
    pass


WebhookEvent = Union[
    CheckoutCompleted,
    SubscriptionChanged,
    SubscriptionDeleted,
    PaymentSucceeded,
    PaymentFailed,
    UnhandledEvent,
]


def _to_major_units(amount: int, currency: str) -> Decimal:
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return Decimal(amount)
    return (Decimal(amount) / Decimal(100)).quantize(Decimal("0.01"))


def _parse_user_id(session: CheckoutSessionObject) -> Optional[int]:
    raw = session.metadata.get("user_id") or session.client_reference_id
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _build_event(envelope: EventEnvelope) -> WebhookEvent:
    base = dict(
        event_id=envelope.id,
        event_type=envelope.type,
        created=from_timestamp(envelope.created),
    )
    obj = envelope.data.object

    if envelope.type == CHECKOUT_COMPLETED:
        session = CheckoutSessionObject.model_validate(obj)
        return CheckoutCompleted(
            **base,
            customer_id=session.customer,
            external_subscription_id=session.subscription,
            customer_email=session.customer_email,
            user_id=_parse_user_id(session),
            tier=session.metadata.get("tier"),
            billing_period=session.metadata.get("billing_period"),
        )

    if envelope.type in (SUBSCRIPTION_CREATED, SUBSCRIPTION_UPDATED):
        sub = SubscriptionObject.model_validate(obj)
        status = PROVIDER_STATUS_MAP.get(sub.status.lower())
        if status is None:
            raise ValueError(f"Unknown subscription status: {sub.status}")
        item = sub.first_item
        period_start = sub.current_period_start or (item.current_period_start if item else None)
        period_end = sub.current_period_end or (item.current_period_end if item else None)
        return SubscriptionChanged(
            **base,
            external_subscription_id=sub.id,
            customer_id=sub.customer,
            status=status,
            cancel_at_period_end=sub.cancel_at_period_end,
            period_start=from_timestamp(period_start),
            period_end=from_timestamp(period_end),
            trial_start=from_timestamp(sub.trial_start),
            trial_end=from_timestamp(sub.trial_end),
            canceled_at=from_timestamp(sub.canceled_at),
            price_id=item.price.id if item and item.price else None,
        )

    if envelope.type == SUBSCRIPTION_DELETED:
        sub = SubscriptionObject.model_validate({"status": "canceled", **obj})
        return SubscriptionDeleted(**base, external_subscription_id=sub.id)

    if envelope.type in (PAYMENT_SUCCEEDED, PAYMENT_FAILED):
        invoice = InvoiceObject.model_validate(obj)
        amount = invoice.amount_paid if envelope.type == PAYMENT_SUCCEEDED else invoice.amount_due
        event_cls = PaymentSucceeded if envelope.type == PAYMENT_SUCCEEDED else PaymentFailed
        return event_cls(
            **base,
            invoice_id=invoice.id,
            customer_id=invoice.customer,
            external_subscription_id=invoice.subscription_id,
            amount=_to_major_units(amount, invoice.currency),
            currency=invoice.currency.upper(),
            payment_intent_id=invoice.payment_intent,
            receipt_url=invoice.hosted_invoice_url,
            description=invoice.description,
        )

    return UnhandledEvent(**base)


def parse_event(raw_payload: Union[bytes, str]) -> WebhookEvent:
    """
    Parse a raw webhook body into a typed event.

    Raises:
        UnparseableEvent: If the body is not JSON or misses required fields
    """
    try:
        body = json.loads(raw_payload)
        envelope = EventEnvelope.model_validate(body)
        return _build_event(envelope)
    except (ValueError, TypeError, ValidationError) as e:
        raise UnparseableEvent(f"Invalid webhook payload: {e}") from e
