"""Back-office pages. Every view requires elevated privilege."""

from __future__ import annotations

import logging

from flask import Blueprint, flash, redirect, render_template, request, url_for

from framel.app.common.auth import admin_required
from framel.app.common.errors import InvalidStatus, NetworkFailure, ValidationFailed
from framel.app.common.json import ok
from framel.app.common.session import ADMIN_ROLE
from framel.app.common.validation import form_data, parse_non_negative_int, require_fields
from framel.app.extensions import api
from framel.modules.orders.routes import order_view
from framel.modules.orders.rules import (
    ORDER_STATUS_CHOICES,
    as_decimal,
    is_valid_order_status,
    is_valid_payment_status,
    require_valid_order_status,
)

log = logging.getLogger(__name__)

bp = Blueprint("admin", __name__, url_prefix="/admin")
api_bp = Blueprint("admin_api", __name__, url_prefix="/api/admin")

USER_ROLES = ("customer", ADMIN_ROLE)
ANALYTICS_PERIODS = ("day", "week", "month", "year")
PRODUCTS_PER_PAGE = 50
PRODUCT_FIELDS = ("name", "description", "price", "category", "stock")


def _safe_get(path: str, default, **kwargs):
    """Dashboard widgets degrade to empty rather than failing the page."""
    try:
        return api.get(path, **kwargs) or default
    except NetworkFailure as exc:
        log.error("Admin widget %s failed: %s", path, exc)
        return default


@bp.get("/dashboard")
@admin_required
def dashboard():
    stats = _safe_get("/admin/dashboard/stats", {})
    recent = _safe_get("/admin/orders/recent", {}, params={"limit": 10}).get("orders", [])
    low_stock = _safe_get("/admin/inventory/low-stock", {}).get("products", [])
    return render_template(
        "admin/dashboard.html",
        stats=stats,
        recent_orders=[order_view(o) for o in recent],
        low_stock=low_stock,
    )


@bp.get("/analytics")
@admin_required
def analytics():
    period = request.args.get("period", "month")
    if period not in ANALYTICS_PERIODS:
        period = "month"
    sales = _safe_get("/admin/analytics/sales", {}, params={"period": period})
    top_products = _safe_get("/admin/analytics/top-products", {}, params={"limit": 10}).get("products", [])
    return render_template("admin/analytics.html", period=period, sales=sales, top_products=top_products)


@bp.get("/orders")
@admin_required
def orders():
    status = (request.args.get("status") or "").strip()
    payment_status = (request.args.get("paymentStatus") or "").strip()
    params = {"page": request.args.get("page", 1, type=int)}
    if is_valid_order_status(status):
        params["status"] = status
    if is_valid_payment_status(payment_status):
        params["paymentStatus"] = payment_status

    data = api.get("/orders", params=params) or {}
    return render_template(
        "admin/orders.html",
        orders=[order_view(o) for o in data.get("orders", [])],
        statuses=ORDER_STATUS_CHOICES,
        status=params.get("status", ""),
        payment_status=params.get("paymentStatus", ""),
        page=data.get("page", params["page"]),
        pages=data.get("pages") or 1,
    )


@bp.post("/orders/<order_id>/status")
@admin_required
def update_order_status(order_id: str):
    try:
        status = require_valid_order_status((request.form.get("status") or "").strip())
        api.patch(f"/orders/{order_id}/status", json={"status": status})
    except InvalidStatus as exc:
        flash(exc.message, "error")
    except NetworkFailure as exc:
        flash(exc.message, "error")
    else:
        flash(f"Order status updated to {status}", "success")
    return redirect(url_for("admin.orders"))


@bp.get("/products")
@admin_required
def products():
    page = request.args.get("page", 1, type=int)
    data = api.get("/products", params={"page": page, "limit": PRODUCTS_PER_PAGE}) or {}
    return render_template(
        "admin/products.html",
        products=data.get("products", []),
        page=page,
        pages=data.get("totalPages") or data.get("pages") or 1,
    )


def _product_payload(data: dict) -> dict:
    require_fields(data, PRODUCT_FIELDS)
    if len(data["name"]) < 3:
        raise ValidationFailed("Product name must be at least 3 characters")
    if len(data["description"]) < 10:
        raise ValidationFailed("Description must be at least 10 characters")
    try:
        price = as_decimal(data["price"])
    except ArithmeticError:
        raise ValidationFailed("Price must be a number") from None
    if not price.is_finite() or price <= 0:
        raise ValidationFailed("Price must be positive")
    stock = parse_non_negative_int(data["stock"], "Stock")
    return {
        "name": data["name"],
        "description": data["description"],
        "price": float(price),
        "category": data["category"],
        "stock": stock,
        "featured": bool(data.get("featured")),
    }


@bp.get("/products/new")
@admin_required
def new_product():
    return render_template("admin/product_form.html", form={}, product_id=None, categories=_categories())


@bp.post("/products/new")
@admin_required
def create_product():
    data = form_data(request.form, PRODUCT_FIELDS)
    data["featured"] = bool(request.form.get("featured"))
    try:
        api.post("/products", json=_product_payload(data))
    except (ValidationFailed, NetworkFailure) as exc:
        flash(exc.message, "error")
        return render_template("admin/product_form.html", form=data, product_id=None, categories=_categories()), 400

    flash(f"Product {data['name']} created", "success")
    return redirect(url_for("admin.products"))


@bp.get("/products/<product_id>/edit")
@admin_required
def edit_product(product_id: str):
    try:
        data = api.get(f"/products/{product_id}") or {}
    except NetworkFailure as exc:
        flash(exc.message, "error")
        return redirect(url_for("admin.products"))

    product = data.get("product") or {}
    category = product.get("category")
    if isinstance(category, dict):
        category = category.get("slug") or category.get("id")
    form = {field: product.get(field) for field in PRODUCT_FIELDS}
    form["category"] = category
    form["featured"] = bool(product.get("featured"))
    return render_template("admin/product_form.html", form=form, product_id=product_id, categories=_categories())


@bp.post("/products/<product_id>/edit")
@admin_required
def update_product(product_id: str):
    data = form_data(request.form, PRODUCT_FIELDS)
    data["featured"] = bool(request.form.get("featured"))
    try:
        api.put(f"/products/{product_id}", json=_product_payload(data))
    except (ValidationFailed, NetworkFailure) as exc:
        flash(exc.message, "error")
        return (
            render_template("admin/product_form.html", form=data, product_id=product_id, categories=_categories()),
            400,
        )

    flash(f"Product {data['name']} updated", "success")
    return redirect(url_for("admin.products"))


@bp.post("/products/<product_id>/featured")
@admin_required
def toggle_featured(product_id: str):
    try:
        data = api.patch(f"/products/{product_id}/featured") or {}
    except NetworkFailure as exc:
        flash(exc.message, "error")
    else:
        product = data.get("product") or {}
        if "featured" in product:
            flash("Product featured" if product["featured"] else "Product no longer featured", "success")
        else:
            flash("Featured flag updated", "success")
    return redirect(url_for("admin.products"))


@bp.post("/products/<product_id>/stock")
@admin_required
def update_stock(product_id: str):
    try:
        quantity = parse_non_negative_int(request.form.get("stock"), "Stock")
        api.patch(f"/products/{product_id}/stock", json={"quantity": quantity})
    except (ValidationFailed, NetworkFailure) as exc:
        flash(exc.message, "error")
    else:
        flash("Stock updated", "success")
    return redirect(url_for("admin.products"))


@bp.post("/products/<product_id>/delete")
@admin_required
def delete_product(product_id: str):
    try:
        api.delete(f"/products/{product_id}")
    except NetworkFailure as exc:
        flash(exc.message, "error")
    else:
        flash("Product deleted", "success")
    return redirect(url_for("admin.products"))


def _categories() -> list:
    data = _safe_get("/categories", {})
    return data.get("categories", []) if isinstance(data, dict) else data


@bp.get("/categories")
@admin_required
def categories():
    return render_template("admin/categories.html", categories=_categories())


@bp.post("/categories")
@admin_required
def create_category():
    data = form_data(request.form, ("name", "description"))
    try:
        require_fields(data, ("name",))
        api.post("/categories", json=data)
    except (ValidationFailed, NetworkFailure) as exc:
        flash(exc.message, "error")
    else:
        flash(f"Category {data['name']} created", "success")
    return redirect(url_for("admin.categories"))


@bp.post("/categories/<category_id>/delete")
@admin_required
def delete_category(category_id: str):
    try:
        api.delete(f"/categories/{category_id}")
    except NetworkFailure as exc:
        flash(exc.message, "error")
    else:
        flash("Category deleted", "success")
    return redirect(url_for("admin.categories"))


@bp.get("/users")
@admin_required
def users():
    data = api.get("/auth/users") or {}
    return render_template("admin/users.html", users=data.get("users", []), roles=USER_ROLES)


@bp.post("/users/<uid>/role")
@admin_required
def update_user_role(uid: str):
    role = (request.form.get("role") or "").strip()
    if role not in USER_ROLES:
        flash(f"Invalid role: {role}", "error")
        return redirect(url_for("admin.users"))
    try:
        api.put(f"/auth/users/{uid}/role", json={"role": role})
    except NetworkFailure as exc:
        flash(exc.message, "error")
    else:
        flash(f"Role updated to {role}", "success")
    return redirect(url_for("admin.users"))


@api_bp.get("/stats")
@admin_required
def stats():
    return ok(_safe_get("/admin/dashboard/stats", {}))
