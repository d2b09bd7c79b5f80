from __future__ import annotations

import logging
from typing import List, Optional

from flask import Blueprint, current_app, flash, redirect, render_template, request, session, url_for

from framel.app.common.auth import current_viewer
from framel.app.common.errors import NetworkFailure, ValidationFailed
from framel.app.common.json import ok
from framel.app.common.validation import safe_redirect_path
from framel.app.extensions import api
from framel.modules.cart.rules import (
    CartLine,
    CartSummary,
    add_line,
    availability_issues,
    merge_guest_cart,
    remove_line,
    set_line_quantity,
    summarize,
)

log = logging.getLogger(__name__)

bp = Blueprint("cart", __name__)

CART_KEY = "cart"


# for guests the cart lives in the cookie session as {product_id: quantity}
def get_guest_cart() -> dict:
    return dict(session.get(CART_KEY) or {})


def set_guest_cart(cart: dict) -> None:
    session[CART_KEY] = cart


def fetch_product(product_id: str) -> Optional[dict]:
    try:
        data = api.get(f"/products/{product_id}", anonymous=True) or {}
    except NetworkFailure as exc:
        if exc.upstream_status == 404:
            return None
        raise
    return data.get("product")


def _remote_lines() -> List[CartLine]:
    data = api.get("/cart") or {}
    cart = data.get("cart") if isinstance(data.get("cart"), dict) else data
    lines = [CartLine.from_api(item) for item in cart.get("items", [])]

    # remote items only carry productId/price/quantity; fill in names and stock
    for i, line in enumerate(lines):
        if not line.name:
            product = fetch_product(line.product_id)
            if product:
                lines[i] = CartLine.from_product(product, line.quantity)
    return lines


def _guest_lines() -> List[CartLine]:
    cart = get_guest_cart()
    lines = []
    for product_id, quantity in cart.items():
        product = fetch_product(product_id)
        if product is None:
            # product was removed from the catalogue
            cart = remove_line(cart, product_id)
            continue
        lines.append(CartLine.from_product(product, quantity))
    set_guest_cart(cart)
    return lines


def load_cart() -> CartSummary:
    lines = _remote_lines() if current_viewer().is_authenticated else _guest_lines()
    return summarize(lines, current_app.config["DELIVERY_FEE"])


def merge_guest_cart_into_account() -> None:
    """Push the guest cart into the signed-in user's remote cart.

    Each guest line leaves the cookie cart as soon as the API accepts it, so
    a failure part way through leaves only the unsaved lines behind.
    """
    guest = get_guest_cart()
    if not guest:
        return

    remote = {line.product_id: line.quantity for line in _remote_lines()}
    merged = merge_guest_cart(remote, guest)
    for product_id in guest:
        if product_id in remote:
            api.put(f"/cart/items/{product_id}", json={"quantity": merged[product_id]})
        else:
            api.post("/cart/items", json={"productId": product_id, "quantity": merged[product_id]})
        set_guest_cart(remove_line(get_guest_cart(), product_id))
    session.pop(CART_KEY, None)
    log.info("Merged %d guest cart line(s) into account cart", len(guest))



def _back_to_cart():
    return redirect(safe_redirect_path(request.form.get("next"), url_for("cart.view_cart")))


@bp.get("/cart")
def view_cart():
    try:
        summary = load_cart()
    except NetworkFailure as exc:
        log.error("Could not load cart: %s", exc)
        flash("We couldn't load your cart right now. Please try again.", "error")
        summary = CartSummary()
    return render_template("cart.html", cart=summary, issues=availability_issues(summary.lines))


@bp.post("/cart/add")
def add_to_cart():
    product_id = (request.form.get("product_id") or "").strip()
    quantity = request.form.get("quantity", 1)

    try:
        if not product_id:
            raise ValidationFailed("Product ID required")
        product = fetch_product(product_id)
        if product is None:
            raise ValidationFailed("Product not found")

        if current_viewer().is_authenticated:
            # validates quantity and count before the remote call
            add_line({}, product_id, quantity, current_app.config["MAX_CART_ITEMS"])
            api.post("/cart/items", json={"productId": product_id, "quantity": int(quantity)})
        else:
            cart = add_line(get_guest_cart(), product_id, quantity, current_app.config["MAX_CART_ITEMS"])
            line = CartLine.from_product(product, cart[product_id])
            if not line.in_stock:
                raise ValidationFailed(f"Only {line.available_stock} of {line.name} available")
            set_guest_cart(cart)
    except (ValidationFailed, NetworkFailure) as exc:
        flash(exc.message, "error")
        return _back_to_cart()

    flash(f"{product.get('name', 'Item')} added to cart", "success")
    return _back_to_cart()


@bp.post("/cart/update/<product_id>")
def update_cart_item(product_id: str):
    try:
        quantity = int(request.form.get("quantity", ""))
    except ValueError:
        flash("Quantity must be a whole number", "error")
        return _back_to_cart()

    try:
        if current_viewer().is_authenticated:
            if quantity <= 0:
                api.delete(f"/cart/items/{product_id}")
            else:
                api.put(f"/cart/items/{product_id}", json={"quantity": quantity})
        else:
            cart = get_guest_cart()
            if product_id not in cart and quantity > 0:
                flash("Item is not in your cart", "error")
                return _back_to_cart()
            set_guest_cart(set_line_quantity(cart, product_id, quantity))
    except NetworkFailure as exc:
        flash(exc.message, "error")
        return _back_to_cart()

    flash("Item removed from cart" if quantity <= 0 else "Cart updated", "success")
    return _back_to_cart()


@bp.post("/cart/remove/<product_id>")
def remove_cart_item(product_id: str):
    try:
        if current_viewer().is_authenticated:
            api.delete(f"/cart/items/{product_id}")
        else:
            set_guest_cart(remove_line(get_guest_cart(), product_id))
    except NetworkFailure as exc:
        flash(exc.message, "error")
        return _back_to_cart()

    flash("Item removed from cart", "success")
    return _back_to_cart()


@bp.post("/cart/clear")
def clear_cart():
    try:
        if current_viewer().is_authenticated:
            api.delete("/cart")
        else:
            session.pop(CART_KEY, None)
    except NetworkFailure as exc:
        flash(exc.message, "error")
    return _back_to_cart()


@bp.get("/api/cart/summary")
def cart_summary():
    return ok(load_cart().to_dict())
