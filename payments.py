"""Stripe payment intents."""

import logging

import stripe
from fastapi import Request

from config import Settings
from exceptions import UpstreamUnavailableError

logger = logging.getLogger(__name__)


class PaymentGateway:
    """
    Creates card payment intents and hands back the client secret.

    Completion happens in the browser; the backend only learns about it when
    the client calls /save-payment-info.
    """

    def __init__(self, api_key: str, currency: str = "usd", timeout_seconds: int = 10):
        self.currency = currency
        self._client = stripe.StripeClient(
            api_key,
            http_client=stripe.RequestsClient(timeout=timeout_seconds),
            max_network_retries=0,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "PaymentGateway":
        return cls(
            settings.stripe_secret_key,
            currency=settings.payment_currency,
            timeout_seconds=settings.payment_timeout_seconds,
        )

    def create_intent(self, amount_cents: int) -> str:
        try:
            intent = self._client.payment_intents.create(
                params={
                    "amount": amount_cents,
                    "currency": self.currency,
                    "payment_method_types": ["card"],
                }
            )
        except stripe.StripeError as e:
            logger.error("Stripe payment intent failed: %s", e)
            raise UpstreamUnavailableError(
                message="Payment service is temporarily unavailable. Please try again later.",
                service="stripe",
                context={"stripe_error": type(e).__name__},
            )
        logger.info("Created payment intent %s for %d %s", intent.id, amount_cents, self.currency)
        return intent.client_secret


def to_cents(price: float) -> int:
    return int(round(price * 100))


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway
