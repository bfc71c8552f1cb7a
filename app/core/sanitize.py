"""Input sanitization for request bodies."""
from typing import Any

import nh3

# Cryptographic values: any markup stripping would corrupt a valid signature,
# so these are only whitespace trimmed.
PRESERVE_FIELDS = frozenset({
    "signature",
    "orderId",
    "paymentId",
    "order_id",
    "payment_id",
    "webhookSignature",
    "x-razorpay-signature",
    "x-pinelabs-signature",
})


def sanitize_string(value: Any, preserve: bool = False) -> Any:
    """
    Strip all HTML from a string and trim surrounding whitespace.

    With preserve=True the value is only trimmed. Non-string values are
    returned unchanged. Sanitizing an already sanitized value is a no-op.
    """
    if not isinstance(value, str):
        return value
    if preserve:
        return value.strip()
    return nh3.clean(value, tags=set(), attributes={}).strip()


def trim_string(value: Any) -> Any:
    return sanitize_string(value, preserve=True)


def sanitize_object(obj: Any, field_path: str = "") -> Any:
    """Recursively sanitize every string in a decoded JSON value."""
    if obj is None:
        return obj
    if isinstance(obj, str):
        return sanitize_string(obj, preserve=field_path in PRESERVE_FIELDS)
    if isinstance(obj, list):
        return [sanitize_object(item, f"{field_path}[{i}]") for i, item in enumerate(obj)]
    if isinstance(obj, dict):
        sanitized = {}
        for key, value in obj.items():
            path = f"{field_path}.{key}" if field_path else key
            sanitized[key] = sanitize_object(value, path)
        return sanitized
    return obj
