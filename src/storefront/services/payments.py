"""Payment-intent provider contract.

The payment provider is an external collaborator. Orders ask it for an
intent when they are created; the provider later reports the outcome
through the payment webhook.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    client_secret: str
    amount: float


class PaymentIntentProvider(Protocol):
    async def create_payment_intent(self, amount: float) -> PaymentIntent: ...


class LocalPaymentIntentProvider:
    """Issues provider-shaped intent ids without calling out.

    Used for local runs and tests, where payment outcomes are delivered by
    hand through the webhook or the payment-success endpoint.
    """

    async def create_payment_intent(self, amount: float) -> PaymentIntent:
        intent_id = f"pi_{secrets.token_hex(12)}"
        return PaymentIntent(
            id=intent_id,
            client_secret=f"{intent_id}_secret_{secrets.token_hex(8)}",
            amount=amount,
        )
