from __future__ import annotations

from flask import Blueprint, flash, redirect, render_template, request, url_for

from framel.app.common.auth import login_required
from framel.app.common.errors import NetworkFailure
from framel.app.common.validation import safe_redirect_path
from framel.app.extensions import api

bp = Blueprint("wishlist", __name__)


def _back():
    return redirect(safe_redirect_path(request.form.get("next"), url_for("wishlist.view_wishlist")))


@bp.get("/wishlist")
@login_required
def view_wishlist():
    data = api.get("/wishlist") or {}
    wishlist = data.get("wishlist") or {}
    return render_template("wishlist.html", items=wishlist.get("items", []))


@bp.post("/wishlist/add")
@login_required
def add_to_wishlist():
    product_id = (request.form.get("product_id") or "").strip()
    if not product_id:
        flash("Product ID required", "error")
        return _back()
    try:
        api.post("/wishlist/items", json={"productId": product_id})
    except NetworkFailure as exc:
        flash(exc.message, "error")
    else:
        flash("Added to wishlist", "success")
    return _back()


@bp.post("/wishlist/remove/<product_id>")
@login_required
def remove_from_wishlist(product_id: str):
    try:
        api.delete(f"/wishlist/items/{product_id}")
    except NetworkFailure as exc:
        flash(exc.message, "error")
    else:
        flash("Removed from wishlist", "success")
    return _back()
