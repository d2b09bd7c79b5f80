from __future__ import annotations

import logging

from flask import Blueprint, flash, redirect, render_template, request, url_for

from framel.app.common.auth import current_viewer, get_session_context, login_required
from framel.app.common.errors import NetworkFailure, ValidationFailed
from framel.app.common.session import User
from framel.app.common.validation import normalize_kenyan_phone
from framel.app.extensions import api
from framel.modules.orders.routes import order_view

log = logging.getLogger(__name__)

bp = Blueprint("account", __name__)

RECENT_ORDERS = 5


@bp.get("/dashboard")
@login_required
def dashboard():
    try:
        data = api.get("/orders/user/me", params={"limit": RECENT_ORDERS}) or {}
        orders = [order_view(o) for o in data.get("orders", [])]
        total_orders = data.get("total", len(orders))
    except NetworkFailure as exc:
        log.error("Could not load recent orders: %s", exc)
        orders, total_orders = [], 0
    return render_template("dashboard.html", viewer=current_viewer(), orders=orders, total_orders=total_orders)


@bp.get("/profile")
@login_required
def profile():
    return render_template("profile.html", user=current_viewer().user)


@bp.post("/profile")
@login_required
def profile_post():
    name = (request.form.get("name") or "").strip()
    phone = (request.form.get("phone") or "").strip()

    updates = {}
    try:
        if name:
            if len(name) < 2:
                raise ValidationFailed("Name must be at least 2 characters")
            updates["name"] = name
        if phone:
            updates["phone"] = normalize_kenyan_phone(phone)
        if not updates:
            raise ValidationFailed("Nothing to update")
        data = api.put("/auth/profile", json=updates) or {}
    except (ValidationFailed, NetworkFailure) as exc:
        flash(exc.message, "error")
        return redirect(url_for("account.profile"))

    user = data.get("user") if isinstance(data.get("user"), dict) else data
    current = current_viewer().user
    if user and current:
        get_session_context().update_profile(User.from_api({**current.to_dict(), **user}))
    flash("Profile updated successfully", "success")
    return redirect(url_for("account.profile"))
