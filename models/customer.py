"""
Customer dataclass for order ownership and loyalty analytics.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class Customer:
    """
    Data model for a shipping customer.

    Credentials live with the authentication layer; only the order back-references
    matter to the workflow.
    """

    customer_id: str
    name: str = ""
    email: str = ""
    phone: str = ""
    loyalty_points: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    order_history: list[str] = field(default_factory=list)  # order ids, append-only
