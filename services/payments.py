"""
Payment coordination for orders.

Only ``payment_details`` is ever written here; shipment status belongs to the
workflow engine.
"""

import logging
from typing import Any

from connectors.payment_provider import SUCCEEDED, PaymentIntent, PaymentProvider
from connectors.store import LogisticsStore
from models.enums import OrderStatus, PaymentMethod, PaymentStatus
from models.events import LogisticsEvent
from models.order import Order, utcnow
from utils.event_bus import EventBus

from .exceptions import OrderNotFoundError, OrderValidationError, PaymentFailedError
from .workflow import STATUS_CHANGED

logger = logging.getLogger(__name__)


class PaymentCoordinator:
    def __init__(self, store: LogisticsStore, provider: PaymentProvider):
        self.store = store
        self.provider = provider

    def register(self, event_bus: EventBus) -> None:
        """Settle cash-on-delivery orders when they are delivered."""
        event_bus.subscribe(STATUS_CHANGED, self.handle_status_changed)

    async def _owned_order(self, order_id: str, customer_id: str | None) -> Order:
        order = await self.store.get_order(order_id)
        if order is None or (customer_id is not None and order.customer_id != customer_id):
            raise OrderNotFoundError(order_id)
        return order

    async def create_payment_intent(
        self,
        order_id: str,
        customer_id: str | None = None,
        amount: float | None = None,
        currency: str = "inr",
    ) -> PaymentIntent:
        order = await self._owned_order(order_id, customer_id)
        if order.payment_details.payment_status == PaymentStatus.PAID:
            raise OrderValidationError(f"Order {order_id} is already paid", order_id=order_id)
        if amount is None:
            rate = order.shipping_details.rate
            amount = rate.total if rate else order.payment_details.total_value

        intent = await self.provider.create_intent(
            amount, currency, {"order_id": order.order_id, "customer_id": order.customer_id}
        )

        def bind(target: Order) -> None:
            target.payment_details.payment_intent_id = intent.payment_intent_id

        await self.store.update_order(order_id, bind)
        logger.info(f"Payment intent {intent.payment_intent_id} created for order {order_id} ({amount:.2f})")
        return intent

    async def confirm_payment(self, order_id: str, payment_intent_id: str, customer_id: str | None = None) -> Order:
        """Confirm with the provider and mark the order PAID, or FAILED and raise."""
        await self._owned_order(order_id, customer_id)
        intent = await self.provider.confirm(payment_intent_id)

        if intent.status != SUCCEEDED:

            def mark_failed(target: Order) -> None:
                target.payment_details.payment_status = PaymentStatus.FAILED

            await self.store.update_order(order_id, mark_failed)
            logger.warning(f"Payment {payment_intent_id} for order {order_id} failed: {intent.status}")
            raise PaymentFailedError(payment_intent_id, intent.status)

        def mark_paid(target: Order) -> None:
            payment = target.payment_details
            payment.payment_status = PaymentStatus.PAID
            payment.payment_intent_id = payment_intent_id
            payment.transaction_id = payment_intent_id
            payment.paid_at = utcnow()

        order = await self.store.update_order(order_id, mark_paid)
        logger.info(f"Payment {payment_intent_id} confirmed for order {order_id}")
        return order

    async def get_payment_status(self, payment_intent_id: str) -> dict[str, Any]:
        intent = await self.provider.get_status(payment_intent_id)
        return {"status": intent.status, "amount": intent.amount, "currency": intent.currency}

    async def handle_status_changed(self, event: LogisticsEvent) -> None:
        if event.payload.get("status") != OrderStatus.DELIVERED.value:
            return
        order_id = event.payload["order_id"]
        order = await self.store.get_order(order_id)
        if order is None:
            return
        payment = order.payment_details
        if payment.method != PaymentMethod.COD or payment.payment_status == PaymentStatus.PAID:
            return

        def collect_cod(target: Order) -> None:
            target.payment_details.payment_status = PaymentStatus.PAID
            target.payment_details.paid_at = target.shipping_details.delivered_at or utcnow()

        await self.store.update_order(order_id, collect_cod)
        logger.info(f"COD amount {payment.cod_amount} collected for order {order_id}")
