"""Order rules shared by checkout, order pages and the admin back-office.

Amounts are Kenyan Shillings held as `Decimal` (or int) so that sums are
exact; nothing here rounds.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable, Union

from framel.app.common.errors import InsufficientStock, InvalidStatus, ValidationFailed

Amount = Union[int, Decimal]

ORDER_ID_PREFIX = "FRM"

ORDER_STATUSES = frozenset({"processing", "confirmed", "dispatched", "delivered", "cancelled"})
PAYMENT_STATUSES = frozenset({"pending", "completed", "failed"})

# Display order for status pickers.
ORDER_STATUS_CHOICES = ("processing", "confirmed", "dispatched", "delivered", "cancelled")
CANCELLABLE_STATUSES = frozenset({"processing", "confirmed"})


def generate_order_id(day: date, sequence: int) -> str:
    """Build the customer-facing order id, e.g. ``FRM-20250114-0007``.

    Uniqueness relies on the caller never reusing a sequence number within
    the same day. Sequences above 9999 widen the suffix instead of being cut.
    """
    if sequence < 0:
        raise ValidationFailed("Order sequence number must not be negative", {"sequence": sequence})
    return f"{ORDER_ID_PREFIX}-{day:%Y%m%d}-{sequence:04d}"


def as_decimal(value) -> Decimal:
    """Exact Decimal for an API amount; floats go through their repr."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def compute_subtotal(lines: Iterable) -> Decimal:
    return sum((as_decimal(line.unit_price) * line.quantity for line in lines), Decimal(0))


def compute_total(subtotal: Amount, delivery_fee: Amount) -> Amount:
    return subtotal + delivery_fee


def delivery_fee_for(subtotal: Amount, flat_fee: Amount) -> Amount:
    """Flat delivery fee, waived for an empty cart."""
    return flat_fee if subtotal > 0 else 0


def adjust_stock_on_place(current_stock: int, order_quantity: int) -> int:
    if order_quantity > current_stock:
        raise InsufficientStock(available=current_stock, requested=order_quantity)
    return current_stock - order_quantity


def adjust_stock_on_cancel(current_stock: int, cancelled_quantity: int) -> int:
    return current_stock + cancelled_quantity


def is_valid_order_status(value) -> bool:
    return isinstance(value, str) and value in ORDER_STATUSES


def is_valid_payment_status(value) -> bool:
    return isinstance(value, str) and value in PAYMENT_STATUSES


def require_valid_order_status(value) -> str:
    if not is_valid_order_status(value):
        raise InvalidStatus(value, ORDER_STATUSES)
    return value


def require_valid_payment_status(value) -> str:
    if not is_valid_payment_status(value):
        raise InvalidStatus(value, PAYMENT_STATUSES)
    return value


def can_cancel(status: str, payment_status: str) -> bool:
    """Customers may cancel unpaid orders that have not left the shop."""
    return status in CANCELLABLE_STATUSES and payment_status != "completed"
