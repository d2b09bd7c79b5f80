from __future__ import annotations

import logging

from flask import Blueprint, flash, redirect, render_template, request, url_for

from framel.app.common.auth import get_session_context
from framel.app.common.errors import NetworkFailure, Unauthenticated, ValidationFailed
from framel.app.common.json import ok
from framel.app.common.validation import (
    form_data,
    is_valid_email,
    normalize_kenyan_phone,
    password_errors,
    require_fields,
    safe_redirect_path,
)
from framel.app.extensions import api
from framel.modules.cart.routes import merge_guest_cart_into_account

log = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)


def _next_url() -> str:
    target = request.form.get("next") or request.args.get("next")
    return safe_redirect_path(target, url_for("catalog.products"))


def _sign_in(email: str, password: str) -> bool:
    context = get_session_context()
    viewer = context.sign_in(email, password)
    if not viewer.is_authenticated:
        # signed in with the provider but the API has no profile for us
        context.logout()
        flash("We couldn't load your account. Please try again.", "error")
        return False

    try:
        merge_guest_cart_into_account()
    except NetworkFailure as exc:
        log.warning("Guest cart merge failed: %s", exc)
        flash("Some items from your cart could not be saved to your account.", "info")
    return True


@bp.get("/login")
def login():
    return render_template("login.html", next=request.args.get("next", ""))


@bp.post("/login")
def login_post():
    email = (request.form.get("email") or "").strip().lower()
    password = request.form.get("password") or ""

    if not is_valid_email(email) or not password:
        flash("Enter a valid email address and your password.", "error")
        return redirect(url_for("auth.login", next=request.form.get("next") or None))

    try:
        signed_in = _sign_in(email, password)
    except Unauthenticated:
        flash("Invalid email or password.", "error")
        signed_in = False
    except NetworkFailure as exc:
        flash(exc.message, "error")
        signed_in = False

    if not signed_in:
        return redirect(url_for("auth.login", next=request.form.get("next") or None))

    flash("Welcome back!", "success")
    return redirect(_next_url())


@bp.get("/register")
def register():
    return render_template("register.html", form={})


@bp.post("/register")
def register_post():
    data = form_data(request.form, ("name", "email", "phone"))
    data["email"] = data["email"].lower()
    password = request.form.get("password") or ""

    try:
        require_fields({**data, "password": password}, ("name", "email", "phone", "password"))
        if len(data["name"]) < 2:
            raise ValidationFailed("Name must be at least 2 characters")
        if not is_valid_email(data["email"]):
            raise ValidationFailed("Invalid email address")
        errors = password_errors(password)
        if errors:
            raise ValidationFailed(" ".join(errors))
        data["phone"] = normalize_kenyan_phone(data["phone"])

        api.post("/auth/register", json={**data, "password": password}, anonymous=True)
        signed_in = _sign_in(data["email"], password)
    except (ValidationFailed, NetworkFailure, Unauthenticated) as exc:
        flash(exc.message, "error")
        return render_template("register.html", form=data), 400

    if not signed_in:
        return redirect(url_for("auth.login"))
    flash("Account created successfully! Welcome to Framel.", "success")
    return redirect(url_for("catalog.products"))


@bp.get("/forgot-password")
def forgot_password():
    return render_template("forgot_password.html")


@bp.post("/forgot-password")
def forgot_password_post():
    email = (request.form.get("email") or "").strip().lower()
    if not is_valid_email(email):
        flash("Invalid email address", "error")
        return redirect(url_for("auth.forgot_password"))

    try:
        api.post("/auth/reset-password", json={"email": email}, anonymous=True)
    except NetworkFailure as exc:
        flash(exc.message, "error")
        return redirect(url_for("auth.forgot_password"))

    flash("Password reset email sent. Check your inbox.", "success")
    return redirect(url_for("auth.login"))


@bp.post("/logout")
def logout():
    get_session_context().logout()
    flash("Logged out successfully", "success")
    return redirect(url_for("catalog.home"))


@bp.get("/api/session")
def session_state():
    viewer = get_session_context().bootstrap()
    return ok(
        {
            "isAuthenticated": viewer.is_authenticated,
            "isAdmin": viewer.is_admin,
            "loading": viewer.loading,
            "user": viewer.user.to_dict() if viewer.user else None,
        }
    )
