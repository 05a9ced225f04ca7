"""Tests for the Stripe gateway wrapper."""

from unittest.mock import MagicMock

import pytest
import stripe

from exceptions import UpstreamUnavailableError
from payments import PaymentGateway, to_cents


@pytest.fixture
def gateway():
    gw = PaymentGateway("sk_test_not_real", currency="usd", timeout_seconds=5)
    gw._client = MagicMock()
    return gw


@pytest.mark.parametrize("price, cents", [(5, 500), (5.99, 599), (0.1, 10), (12.5, 1250)])
def test_to_cents(price, cents):
    assert to_cents(price) == cents


def test_create_intent_returns_client_secret(gateway):
    gateway._client.payment_intents.create.return_value = MagicMock(id="pi_1", client_secret="pi_1_secret")
    assert gateway.create_intent(500) == "pi_1_secret"
    gateway._client.payment_intents.create.assert_called_once_with(
        params={"amount": 500, "currency": "usd", "payment_method_types": ["card"]}
    )


def test_stripe_errors_become_upstream_unavailable(gateway):
    gateway._client.payment_intents.create.side_effect = stripe.APIConnectionError("network down")
    with pytest.raises(UpstreamUnavailableError) as exc_info:
        gateway.create_intent(500)
    assert exc_info.value.service == "stripe"
