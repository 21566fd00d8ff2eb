"""Identifier generators for orders and shipments."""

import random
import string
import time
import uuid

__all__ = [
    "generate_order_id",
    "generate_seller_order_id",
    "generate_awb",
    "generate_tracking_id",
]

_ALPHANUMERIC = string.ascii_uppercase + string.digits


def generate_order_id() -> str:
    return f"order_{uuid.uuid4().hex[:16]}"


def generate_seller_order_id(now_ms: int | None = None) -> str:
    """ORD-<epoch millis>-<6 random chars>. Uniqueness is enforced by the store."""
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(random.choices(_ALPHANUMERIC, k=6))
    return f"ORD-{timestamp}-{suffix}"


def generate_awb() -> str:
    """Airway bill number: AWB + last 6 digits of the clock + 3 random digits."""
    timestamp = str(int(time.time() * 1000))
    return f"AWB{timestamp[-6:]}{random.randint(0, 999):03d}"


def generate_tracking_id() -> str:
    return "TRK" + "".join(random.choices(_ALPHANUMERIC, k=10))
