import pytest

from connectors.payment_provider import (
    FAILED,
    REQUIRES_CONFIRMATION,
    SUCCEEDED,
    InMemoryPaymentProvider,
    PaymentProvider,
)
from services.exceptions import PaymentIntentNotFoundError


def test_provider_satisfies_protocol():
    assert isinstance(InMemoryPaymentProvider(), PaymentProvider)


@pytest.mark.asyncio
async def test_intent_lifecycle():
    provider = InMemoryPaymentProvider()

    intent = await provider.create_intent(785.884, "inr", {"order_id": "order_1"})

    assert intent.payment_intent_id.startswith("pi_")
    assert intent.client_secret.startswith(f"{intent.payment_intent_id}_secret_")
    assert intent.amount == 785.88
    assert intent.status == REQUIRES_CONFIRMATION
    confirmed = await provider.confirm(intent.payment_intent_id)
    assert confirmed.status == SUCCEEDED
    assert (await provider.get_status(intent.payment_intent_id)).status == SUCCEEDED


@pytest.mark.asyncio
async def test_declining_provider_fails_confirmation():
    provider = InMemoryPaymentProvider(decline=True)
    intent = await provider.create_intent(100, "inr", {})

    assert (await provider.confirm(intent.payment_intent_id)).status == FAILED


@pytest.mark.asyncio
async def test_unknown_intent():
    provider = InMemoryPaymentProvider()
    with pytest.raises(PaymentIntentNotFoundError):
        await provider.confirm("pi_missing")
    with pytest.raises(PaymentIntentNotFoundError):
        await provider.get_status("pi_missing")
