"""
Module: connectors.payment_provider

Payment provider contract and an in-process provider that settles intents on
confirmation. Amounts are in rupees; providers convert to minor units themselves.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field

from services.exceptions import PaymentIntentNotFoundError

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"
REQUIRES_CONFIRMATION = "requires_confirmation"
FAILED = "failed"


class PaymentIntent(BaseModel):
    payment_intent_id: str
    client_secret: str
    amount: float = Field(ge=0)
    currency: str = "inr"
    status: str = REQUIRES_CONFIRMATION
    metadata: dict[str, str] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


@runtime_checkable
class PaymentProvider(Protocol):
    async def create_intent(self, amount: float, currency: str, metadata: dict[str, str]) -> PaymentIntent: ...

    async def confirm(self, payment_intent_id: str) -> PaymentIntent: ...

    async def get_status(self, payment_intent_id: str) -> PaymentIntent: ...


class InMemoryPaymentProvider:
    """
    Dictionary-backed provider. With ``decline=True`` every confirmation fails, as
    a card decline would.
    """

    def __init__(self, decline: bool = False):
        self._intents: dict[str, PaymentIntent] = {}
        self.decline = decline

    async def create_intent(self, amount: float, currency: str, metadata: dict[str, str]) -> PaymentIntent:
        intent_id = f"pi_{uuid.uuid4().hex[:24]}"
        intent = PaymentIntent(
            payment_intent_id=intent_id,
            client_secret=f"{intent_id}_secret_{uuid.uuid4().hex[:12]}",
            amount=round(amount, 2),
            currency=currency,
            metadata=dict(metadata),
        )
        self._intents[intent_id] = intent
        logger.debug(f"Created payment intent {intent_id} for {amount:.2f} {currency}")
        return intent.model_copy()

    async def confirm(self, payment_intent_id: str) -> PaymentIntent:
        intent = self._lookup(payment_intent_id)
        if intent.status == REQUIRES_CONFIRMATION:
            intent.status = FAILED if self.decline else SUCCEEDED
        return intent.model_copy()

    async def get_status(self, payment_intent_id: str) -> PaymentIntent:
        return self._lookup(payment_intent_id).model_copy()

    def _lookup(self, payment_intent_id: str) -> PaymentIntent:
        intent = self._intents.get(payment_intent_id)
        if intent is None:
            raise PaymentIntentNotFoundError(payment_intent_id)
        return intent
