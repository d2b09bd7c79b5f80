from __future__ import annotations

import logging
from datetime import date

from flask import Blueprint, abort, flash, redirect, render_template, request, session, url_for

from framel.app.common.auth import current_viewer, login_required
from framel.app.common.errors import InsufficientStock, NetworkFailure, ValidationFailed
from framel.app.common.json import ok
from framel.app.common.validation import form_data, normalize_kenyan_phone, require_fields
from framel.app.extensions import api
from framel.modules.cart.routes import load_cart
from framel.modules.cart.rules import availability_issues
from framel.modules.orders.rules import (
    ORDER_STATUS_CHOICES,
    adjust_stock_on_place,
    as_decimal,
    can_cancel,
    is_valid_order_status,
    is_valid_payment_status,
)

log = logging.getLogger(__name__)

bp = Blueprint("orders", __name__)

DELIVERY_FIELDS = ("recipientName", "phone", "street", "city", "county", "deliveryDate")
LAST_ORDER_KEY = "last_order_id"


def order_view(order: dict) -> dict:
    """Flatten an API order into what the templates need.

    The API calls the status `orderStatus`; older documents use `status`.
    Unknown values are shown as-is but flagged.
    """
    status = order.get("orderStatus") or order.get("status")
    payment_status = order.get("paymentStatus")
    return {
        **order,
        "status": status,
        "paymentStatus": payment_status,
        "status_known": is_valid_order_status(status),
        "payment_status_known": is_valid_payment_status(payment_status),
        "cancellable": can_cancel(status, payment_status),
        "subtotal": as_decimal(order.get("subtotal") or 0),
        "deliveryFee": as_decimal(order.get("deliveryFee") or 0),
        "total": as_decimal(order.get("total") or 0),
    }


def fetch_order(order_id: str) -> dict:
    try:
        data = api.get(f"/orders/{order_id}") or {}
    except NetworkFailure as exc:
        # the API answers 403 for someone else's order; don't leak that it exists
        if exc.upstream_status in (403, 404):
            abort(404)
        raise
    order = data.get("order")
    if not order:
        abort(404)
    return order_view(order)


@bp.get("/checkout")
@login_required
def checkout():
    cart = load_cart()
    if cart.is_empty:
        flash("Your cart is empty.", "info")
        return redirect(url_for("cart.view_cart"))
    viewer = current_viewer()
    defaults = {
        "recipientName": viewer.user.name if viewer.user else "",
        "phone": viewer.user.phone if viewer.user else "",
        "deliveryDate": date.today().isoformat(),
    }
    return render_template("checkout.html", cart=cart, issues=availability_issues(cart.lines), form=defaults)


@bp.post("/checkout")
@login_required
def place_order():
    details = form_data(request.form, DELIVERY_FIELDS + ("specialInstructions",))

    try:
        require_fields(details, DELIVERY_FIELDS)
        details["phone"] = normalize_kenyan_phone(details["phone"])

        cart = load_cart()
        if cart.is_empty:
            raise ValidationFailed("Your cart is empty.")
        for line in cart.lines:
            adjust_stock_on_place(line.available_stock, line.quantity)

        address = {k: details[k] for k in ("recipientName", "phone", "street", "city", "county")}
        if details["specialInstructions"]:
            address["specialInstructions"] = details["specialInstructions"]

        payload = {
            "items": [{"productId": line.product_id, "quantity": line.quantity} for line in cart.lines],
            "deliveryAddress": address,
            "deliveryDate": details["deliveryDate"],
            "paymentMethod": "mpesa",
        }
        data = api.post("/orders", json=payload) or {}
    except InsufficientStock as exc:
        flash(f"Some items are no longer available in that quantity ({exc.message}).", "error")
        return redirect(url_for("cart.view_cart"))
    except ValidationFailed as exc:
        flash(exc.message, "error")
        return render_template("checkout.html", cart=load_cart(), issues=[], form=details), 400
    except NetworkFailure as exc:
        flash(exc.message, "error")
        return redirect(url_for("orders.checkout"))

    order = data.get("order") or {}
    session[LAST_ORDER_KEY] = order.get("id")
    log.info("Order %s placed", order.get("orderId"))
    flash(f"Order {order.get('orderId', '')} placed.", "success")
    return redirect(url_for("orders.checkout_success", order=order.get("id")))


@bp.get("/checkout/success")
@login_required
def checkout_success():
    order_id = request.args.get("order") or session.get(LAST_ORDER_KEY)
    if not order_id:
        return redirect(url_for("orders.list_orders"))
    order = fetch_order(order_id)
    return render_template(
        "checkout_success.html",
        order=order,
        checkout_request_id=request.args.get("checkout_request_id"),
    )


@bp.post("/checkout/pay")
@login_required
def pay_order():
    order_id = (request.form.get("order_id") or "").strip()
    if not order_id:
        abort(400)
    order = fetch_order(order_id)

    try:
        phone = normalize_kenyan_phone(request.form.get("phone") or "")
        if order["paymentStatus"] == "completed":
            raise ValidationFailed("This order has already been paid.")
        data = api.post(
            "/payment/mpesa/initiate",
            json={"orderId": order_id, "phone": phone, "amount": int(order["total"])},
        ) or {}
    except (ValidationFailed, NetworkFailure) as exc:
        flash(exc.message, "error")
        return redirect(url_for("orders.checkout_success", order=order_id))

    flash("Check your phone and enter your M-Pesa PIN to complete payment.", "info")
    return redirect(
        url_for(
            "orders.checkout_success",
            order=order_id,
            checkout_request_id=data.get("checkoutRequestId") or data.get("CheckoutRequestID"),
        )
    )


@bp.get("/api/payment/status/<checkout_request_id>")
@login_required
def payment_status(checkout_request_id: str):
    data = api.get(f"/payment/mpesa/status/{checkout_request_id}") or {}
    status = data.get("paymentStatus") or data.get("status")
    if status is not None and not is_valid_payment_status(status):
        log.warning("Unexpected payment status %r for %s", status, checkout_request_id)
    return ok(data)


@bp.get("/orders")
@login_required
def list_orders():
    status = (request.args.get("status") or "").strip()
    params = {"page": request.args.get("page", 1, type=int)}
    if status:
        if is_valid_order_status(status):
            params["status"] = status
        else:
            flash(f"Unknown order status '{status}' ignored.", "info")
            status = ""

    data = api.get("/orders/user/me", params=params) or {}
    orders = [order_view(o) for o in data.get("orders", [])]
    return render_template(
        "orders.html",
        orders=orders,
        status=status,
        statuses=ORDER_STATUS_CHOICES,
        page=data.get("page", params["page"]),
        pages=data.get("pages") or data.get("totalPages") or 1,
    )


@bp.get("/orders/<order_id>")
@login_required
def order_detail(order_id: str):
    return render_template("order_detail.html", order=fetch_order(order_id))


@bp.post("/orders/<order_id>/cancel")
@login_required
def cancel_order(order_id: str):
    order = fetch_order(order_id)
    if not order["cancellable"]:
        flash(f"Cannot cancel an order that is {order['status']}.", "error")
        return redirect(url_for("orders.order_detail", order_id=order_id))

    try:
        api.post(f"/orders/{order_id}/cancel")
    except NetworkFailure as exc:
        flash(exc.message, "error")
    else:
        flash(f"Order {order.get('orderId', '')} cancelled.", "success")
    return redirect(url_for("orders.order_detail", order_id=order_id))
