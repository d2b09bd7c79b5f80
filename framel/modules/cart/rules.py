from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping

from framel.app.common.errors import ValidationFailed
from framel.modules.orders.rules import as_decimal, compute_subtotal, compute_total, delivery_fee_for

# Guest carts are kept in the cookie session as {product_id: quantity}.
QuantityMap = Dict[str, int]


@dataclass
class CartLine:
    product_id: str
    unit_price: Decimal
    quantity: int
    available_stock: int = 0
    name: str = ""
    image_url: str = ""

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def in_stock(self) -> bool:
        return self.quantity <= self.available_stock

    @classmethod
    def from_product(cls, product: Mapping[str, Any], quantity: int) -> "CartLine":
        images = product.get("imageURLs") or []
        return cls(
            product_id=str(product.get("id")),
            unit_price=as_decimal(product.get("price") or 0),
            quantity=int(quantity),
            available_stock=int(product.get("stock") or 0),
            name=product.get("name") or "",
            image_url=images[0] if images else "",
        )

    @classmethod
    def from_api(cls, item: Mapping[str, Any]) -> "CartLine":
        """Build a line from a remote cart item, with or without an embedded product."""
        product = item.get("product")
        if isinstance(product, Mapping):
            return cls.from_product(product, item.get("quantity") or 0)
        return cls(
            product_id=str(item.get("productId")),
            unit_price=as_decimal(item.get("price") or 0),
            quantity=int(item.get("quantity") or 0),
            available_stock=int(item.get("stock") or 0),
            name=item.get("name") or "",
        )


@dataclass
class CartSummary:
    lines: List[CartLine] = field(default_factory=list)
    subtotal: Decimal = Decimal(0)
    delivery_fee: Decimal = Decimal(0)
    total: Decimal = Decimal(0)

    @property
    def item_count(self) -> int:
        return item_count(self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [
                {
                    "productId": line.product_id,
                    "name": line.name,
                    "price": str(line.unit_price),
                    "quantity": line.quantity,
                    "lineTotal": str(line.line_total),
                }
                for line in self.lines
            ],
            "itemCount": self.item_count,
            "subtotal": str(self.subtotal),
            "deliveryFee": str(self.delivery_fee),
            "total": str(self.total),
        }


def summarize(lines: List[CartLine], flat_fee) -> CartSummary:
    lines = [line for line in lines if line.quantity > 0]
    subtotal = compute_subtotal(lines)
    fee = as_decimal(delivery_fee_for(subtotal, flat_fee))
    return CartSummary(lines=lines, subtotal=subtotal, delivery_fee=fee, total=compute_total(subtotal, fee))


def item_count(lines) -> int:
    return sum(line.quantity for line in lines)


def _check_quantity(quantity: int) -> int:
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise ValidationFailed("Quantity must be a whole number") from None
    return quantity


def add_line(cart: QuantityMap, product_id: str, quantity: int, max_items: int | None = None) -> QuantityMap:
    """Add to an existing line or start a new one. Returns a new map."""
    quantity = _check_quantity(quantity)
    if quantity < 1:
        raise ValidationFailed("Quantity must be at least 1", {"quantity": quantity})

    updated = dict(cart)
    key = str(product_id)
    updated[key] = updated.get(key, 0) + quantity
    if max_items is not None and sum(updated.values()) > max_items:
        raise ValidationFailed(f"A cart can hold at most {max_items} items", {"max_items": max_items})
    return updated


def set_line_quantity(cart: QuantityMap, product_id: str, quantity: int) -> QuantityMap:
    """Replace a line's quantity; zero or less drops the line."""
    quantity = _check_quantity(quantity)
    updated = dict(cart)
    key = str(product_id)
    if quantity <= 0:
        updated.pop(key, None)
    elif key in updated:
        updated[key] = quantity
    return updated


def remove_line(cart: QuantityMap, product_id: str) -> QuantityMap:
    updated = dict(cart)
    updated.pop(str(product_id), None)
    return updated


def merge_guest_cart(user_cart: QuantityMap, guest_cart: QuantityMap) -> QuantityMap:
    """Fold a guest cart into the user's cart, summing quantities per product."""
    merged = dict(user_cart)
    for product_id, quantity in guest_cart.items():
        if quantity > 0:
            merged[str(product_id)] = merged.get(str(product_id), 0) + quantity
    return merged


def availability_issues(lines: List[CartLine]) -> List[Dict[str, Any]]:
    issues = []
    for line in lines:
        if line.available_stock <= 0:
            issues.append({"productId": line.product_id, "issue": f"{line.name or line.product_id} is out of stock"})
        elif not line.in_stock:
            issues.append(
                {
                    "productId": line.product_id,
                    "issue": f"Only {line.available_stock} of {line.name or line.product_id} available",
                }
            )
    return issues
