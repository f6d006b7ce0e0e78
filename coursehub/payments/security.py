"""Payment signature verification.

Razorpay signs a successful checkout with
HMAC-SHA256(key_secret, "<order_id>|<payment_id>"); the check itself is done
by the Razorpay SDK utility.
"""

from functools import lru_cache

import razorpay
from razorpay.errors import SignatureVerificationError


@lru_cache(maxsize=4)
def get_razorpay_client(key_id: str, key_secret: str) -> razorpay.Client:
    """SDK client used for local signature checks only; no API calls."""
    return razorpay.Client(auth=(key_id, key_secret))


def verify_payment_signature(
    order_id: str,
    payment_id: str,
    signature: str,
    key_id: str | None,
    key_secret: str | None,
) -> bool:
    """Check a checkout signature against the configured key secret."""
    if not (order_id and payment_id and signature and key_secret):
        return False

    client = get_razorpay_client(key_id or "", key_secret)
    try:
        client.utility.verify_payment_signature(
            {
                "razorpay_order_id": order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature,
            }
        )
    except SignatureVerificationError:
        return False
    return True
