import logging
import time
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

import razorpay
import requests
from razorpay.errors import BadRequestError, GatewayError, ServerError

from config import Settings
from errors import DependencyError, ValidationError

logger = logging.getLogger(__name__)

CURRENCY = "INR"


def to_minor_units(amount: Any) -> int:
    """Rupees to paise. Rejects missing, non-numeric and non-positive amounts."""
    if amount is None or isinstance(amount, bool):
        raise ValidationError("Amount is required")
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValidationError("Amount must be a number")
    if not value.is_finite() or value <= 0:
        raise ValidationError("Amount must be greater than zero")
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentGateway:
    """Creates orders through the Razorpay client."""

    def __init__(self, key_id: Optional[str], key_secret: Optional[str], client=None):
        self.key_id = key_id
        self.key_secret = key_secret
        if client is None and key_id and key_secret:
            client = razorpay.Client(auth=(key_id, key_secret))
        self.client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "PaymentGateway":
        return cls(settings.razorpay_key_id, settings.razorpay_key_secret)

    def create_order(self, amount: Any) -> dict:
        minor = to_minor_units(amount)
        if self.client is None:
            raise DependencyError("Payment gateway not configured")

        options = {
            "amount": minor,
            "currency": CURRENCY,
            "receipt": f"order_rcptid_{int(time.time() * 1000)}",
        }
        try:
            order = self.client.order.create(data=options)
        except (BadRequestError, GatewayError, ServerError, requests.RequestException):
            logger.exception("Error creating payment order")
            raise DependencyError("Payment gateway error")

        return {"id": order["id"], "amount": order["amount"], "currency": order["currency"]}
