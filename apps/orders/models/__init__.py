"""
Orders app models, split per file and re-exported here so that
`from apps.orders.models import Order` keeps working.
"""

from .order import Order, OrderStatus, PaymentMethod
from .item import OrderItem, PriceType
from .payment import OrderPayment
from .timeline import OrderTimeline

__all__ = [
    "Order",
    "OrderStatus",
    "PaymentMethod",
    "OrderItem",
    "PriceType",
    "OrderPayment",
    "OrderTimeline",
]
