"""Payment gateway client and signature checks."""

from coursehub.payments.gateway import (
    GatewayOrder,
    GatewayUnavailableError,
    PaymentGatewayError,
    RazorpayGateway,
)
from coursehub.payments.security import verify_payment_signature


__all__ = [
    "GatewayOrder",
    "GatewayUnavailableError",
    "PaymentGatewayError",
    "RazorpayGateway",
    "verify_payment_signature",
]
