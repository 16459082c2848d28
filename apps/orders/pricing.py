"""
Money and line-item arithmetic for orders.

Everything here is pure: Decimals in, Decimals out, no database access.
Amounts are quantized to 2 places with ROUND_HALF_UP.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Iterable

from apps.utils.exceptions import InvalidInput

from .models.order import OrderStatus

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInput(f"'{value}' is not a valid amount.", value=value)
    if not amount.is_finite():
        raise InvalidInput(f"'{value}' is not a valid amount.", value=value)
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineInput:
    unit_price: Decimal
    quantity: int
    discount: Decimal = ZERO


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    discount_total: Decimal
    total_price: Decimal


def _validate_line(unit_price, discount, quantity):
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidInput("Quantity must be a whole number.", field="quantity", value=quantity)
    if quantity < 1:
        raise InvalidInput("Quantity must be at least 1.", field="quantity", value=quantity)
    if unit_price < 0:
        raise InvalidInput("Unit price cannot be negative.", field="unit_price", value=unit_price)
    if discount < 0:
        raise InvalidInput("Discount cannot be negative.", field="discount_amount", value=discount)


def compute_line(unit_price, discount, quantity) -> Decimal:
    """
    line_total = max(0, (unit_price - discount) * quantity)
    """
    unit_price = to_money(unit_price)
    discount = to_money(discount)
    _validate_line(unit_price, discount, quantity)
    return max(ZERO, (unit_price - discount) * quantity).quantize(CENT)


def compute_order_totals(items: Iterable[LineInput], order_discount=ZERO) -> OrderTotals:
    order_discount = to_money(order_discount)
    if order_discount < 0:
        raise InvalidInput("Order discount cannot be negative.", field="order_discount", value=order_discount)

    subtotal = ZERO
    discount_total = ZERO
    lines_total = ZERO
    for line in items:
        lines_total += compute_line(line.unit_price, line.discount, line.quantity)
        subtotal += to_money(line.unit_price) * line.quantity
        discount_total += to_money(line.discount) * line.quantity

    return OrderTotals(
        subtotal=subtotal.quantize(CENT),
        discount_total=discount_total.quantize(CENT),
        total_price=max(ZERO, lines_total - order_discount).quantize(CENT),
    )


def compute_outstanding(total_price, paid_amount) -> Decimal:
    return max(ZERO, to_money(total_price) - to_money(paid_amount))


def derive_status(paid, outstanding, total, is_cancelled=False) -> str:
    """
    Order status as a pure function of the money fields.

        cancelled            -> CANCELLED (sticky)
        total <= 0 or
        outstanding <= 0     -> FULLY_PAID
        paid > 0             -> PARTIALLY_PAID
        otherwise            -> PENDING
    """
    if is_cancelled:
        return OrderStatus.CANCELLED
    if to_money(total) <= 0 or to_money(outstanding) <= 0:
        return OrderStatus.FULLY_PAID
    if to_money(paid) > 0:
        return OrderStatus.PARTIALLY_PAID
    return OrderStatus.PENDING
