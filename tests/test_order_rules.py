import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import pytest

from framel.app.common.errors import InsufficientStock, InvalidStatus, ValidationFailed
from framel.modules.orders.rules import (
    adjust_stock_on_cancel,
    adjust_stock_on_place,
    can_cancel,
    compute_subtotal,
    compute_total,
    delivery_fee_for,
    generate_order_id,
    is_valid_order_status,
    is_valid_payment_status,
    require_valid_order_status,
    require_valid_payment_status,
)

ORDER_ID = re.compile(r"^FRM-\d{8}-\d{4}$")


@dataclass
class Line:
    unit_price: object
    quantity: int


# ORD-001: order id format and padding
def test_order_id_format():
    assert generate_order_id(date(2025, 1, 14), 7) == "FRM-20250114-0007"
    assert generate_order_id(date(2024, 12, 31), 0) == "FRM-20241231-0000"
    for n in (0, 1, 42, 999, 9999):
        assert ORDER_ID.match(generate_order_id(date(2025, 3, 9), n))


def test_order_id_unique_per_sequence():
    day = date(2025, 2, 1)
    ids = {generate_order_id(day, n) for n in range(500)}
    assert len(ids) == 500


def test_order_id_widens_past_9999():
    assert generate_order_id(date(2025, 1, 1), 12345) == "FRM-20250101-12345"


def test_order_id_rejects_negative_sequence():
    with pytest.raises(ValidationFailed):
        generate_order_id(date(2025, 1, 1), -1)


# ORD-002: money
def test_subtotal_and_total():
    lines = [Line(1000, 2), Line(500, 1), Line(750, 3)]
    assert compute_subtotal(lines) == 4750
    assert compute_total(5000, 300) == 5300


def test_subtotal_is_exact_for_fractional_prices():
    lines = [Line(0.1, 3), Line(Decimal("0.20"), 1)]
    assert compute_subtotal(lines) == Decimal("0.5")


def test_subtotal_of_nothing_is_zero():
    assert compute_subtotal([]) == 0


def test_delivery_fee_waived_for_empty_cart():
    assert delivery_fee_for(0, 500) == 0
    assert delivery_fee_for(1500, 500) == 500


# ORD-003: stock
def test_stock_adjustments():
    assert adjust_stock_on_place(50, 5) == 45
    assert adjust_stock_on_place(5, 5) == 0
    assert adjust_stock_on_cancel(45, 5) == 50


def test_insufficient_stock():
    with pytest.raises(InsufficientStock) as info:
        adjust_stock_on_place(3, 5)
    assert info.value.status_code == 409
    assert info.value.details == {"available": 3, "requested": 5}


# ORD-004: statuses
@pytest.mark.parametrize("status", ["processing", "confirmed", "dispatched", "delivered", "cancelled"])
def test_valid_order_statuses(status):
    assert is_valid_order_status(status)


@pytest.mark.parametrize("status", ["pending", "shipped", "Processing", "", None, 3])
def test_invalid_order_statuses(status):
    assert not is_valid_order_status(status)


def test_payment_statuses():
    assert is_valid_payment_status("pending")
    assert is_valid_payment_status("completed")
    assert not is_valid_payment_status("paid")
    assert not is_valid_payment_status("FAILED")


def test_require_status_raises_invalid_status():
    assert require_valid_order_status("dispatched") == "dispatched"
    with pytest.raises(InvalidStatus) as info:
        require_valid_order_status("shipped")
    assert info.value.code == "invalid_status"
    assert "processing" in info.value.details["allowed"]
    with pytest.raises(InvalidStatus):
        require_valid_payment_status("refunded")


def test_can_cancel():
    assert can_cancel("processing", "pending")
    assert can_cancel("confirmed", "failed")
    assert not can_cancel("processing", "completed")
    assert not can_cancel("dispatched", "pending")
    assert not can_cancel("cancelled", "pending")
