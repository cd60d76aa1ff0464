"""
Paddle webhook event types.

A validated webhook body is parsed exactly once into a ``PaddleWebhookEvent``
whose ``data`` is the variant matching its ``event_type``. Handlers then work
with typed attributes instead of reaching into nested dicts.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from core.exceptions import PayloadValidationError

logger = logging.getLogger(__name__)


class WebhookEventType(StrEnum):
    """Paddle webhook event types handled by the synchronizer."""

    SUBSCRIPTION_CREATED = "subscription.created"
    SUBSCRIPTION_UPDATED = "subscription.updated"
    SUBSCRIPTION_CANCELED = "subscription.canceled"
    TRANSACTION_COMPLETED = "transaction.completed"


class _PaddleModel(BaseModel):
    """Base for Paddle payload fragments: unknown fields are kept, ids coerced to str."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True, populate_by_name=True)


class CustomData(_PaddleModel):
    """Metadata echoed back by Paddle; carries our internal user id."""

    user_id: str = Field(alias="userId")
    email: Optional[str] = None
    full_name: Optional[str] = None


class EventItem(_PaddleModel):
    """A subscription or transaction line item."""

    product_id: Optional[str] = None
    price_id: Optional[str] = None
    quantity: Optional[int] = None


class BillingPeriod(_PaddleModel):
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None


class TransactionTotals(_PaddleModel):
    total: Optional[str] = None


class TransactionDetails(_PaddleModel):
    totals: Optional[TransactionTotals] = None


class EventData(_PaddleModel):
    """Data of any event; unrecognized event types keep their fields untouched as extras."""

    custom_data: CustomData


class BillingEventData(EventData):
    """Fields shared by subscription and transaction events."""

    id: Optional[str] = None
    customer_id: Optional[str] = None
    status: Optional[str] = None
    items: list[EventItem] = Field(default_factory=list)
    product_id: Optional[str] = None

    @field_validator("items", mode="before")
    @classmethod
    def null_items_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    def resolve_product_id(self) -> Optional[str]:
        """First non-empty of items[0].product_id, items[0].price_id, product_id."""
        first = self.items[0] if self.items else None
        candidates = (
            first.product_id if first else None,
            first.price_id if first else None,
            self.product_id,
        )
        for candidate in candidates:
            if candidate:
                return candidate
        return None


class SubscriptionEventData(BillingEventData):
    """Data for subscription.created / updated / canceled."""

    id: str
    current_billing_period: Optional[BillingPeriod] = None

    @property
    def period_start(self) -> Optional[datetime]:
        return self.current_billing_period.starts_at if self.current_billing_period else None

    @property
    def period_end(self) -> Optional[datetime]:
        return self.current_billing_period.ends_at if self.current_billing_period else None


class TransactionEventData(BillingEventData):
    """Data for transaction.completed."""

    subscription_id: Optional[str] = None
    currency_code: Optional[str] = None
    details: Optional[TransactionDetails] = None

    @property
    def total(self) -> Optional[str]:
        if self.details and self.details.totals:
            return self.details.totals.total
        return None

    @property
    def is_one_time_purchase(self) -> bool:
        return not self.subscription_id and len(self.items) > 0


PaddleEventData = Union[SubscriptionEventData, TransactionEventData, EventData]

_DATA_VARIANTS: dict[str, type[EventData]] = {
    WebhookEventType.SUBSCRIPTION_CREATED.value: SubscriptionEventData,
    WebhookEventType.SUBSCRIPTION_UPDATED.value: SubscriptionEventData,
    WebhookEventType.SUBSCRIPTION_CANCELED.value: SubscriptionEventData,
    WebhookEventType.TRANSACTION_COMPLETED.value: TransactionEventData,
}


class _Envelope(_PaddleModel):
    event_type: str
    event_id: str
    occurred_at: Optional[datetime] = None


@dataclass
class PaddleWebhookEvent:
    """A Paddle notification with its typed data variant."""

    event_type: str
    event_id: str
    occurred_at: Optional[datetime]
    data: PaddleEventData
    payload: dict[str, Any]

    @property
    def user_id(self) -> str:
        return self.data.custom_data.user_id

    @classmethod
    def from_webhook_payload(cls, payload: dict[str, Any]) -> "PaddleWebhookEvent":
        """
        Build the event from a structurally validated payload.

        Raises:
            PayloadValidationError: If a field has the wrong shape for its variant
        """
        event_type = str(payload.get("event_type"))
        data_model = _DATA_VARIANTS.get(event_type, EventData)

        try:
            envelope = _Envelope.model_validate(payload)
            data = data_model.model_validate(payload.get("data"))
        except PydanticValidationError as e:
            details = [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            ]
            logger.warning("Webhook payload failed %s parsing: %s", event_type, details)
            raise PayloadValidationError("Invalid payload structure", details) from e

        return cls(
            event_type=envelope.event_type,
            event_id=envelope.event_id,
            occurred_at=envelope.occurred_at,
            data=data,
            payload=payload,
        )
