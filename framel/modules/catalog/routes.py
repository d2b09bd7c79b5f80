from __future__ import annotations

import logging

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for

from framel.app.common.auth import login_required
from framel.app.common.errors import NetworkFailure, ValidationFailed
from framel.app.common.validation import parse_rating
from framel.app.extensions import api
from framel.modules.catalog.rules import average_rating, normalize_search_query

log = logging.getLogger(__name__)

bp = Blueprint("catalog", __name__)

MIN_REVIEW_LENGTH = 10


def _categories() -> list:
    try:
        data = api.get("/categories", anonymous=True) or {}
    except NetworkFailure as exc:
        log.error("Could not load categories: %s", exc)
        return []
    return data.get("categories", []) if isinstance(data, dict) else data


def _page_arg() -> int:
    try:
        return max(int(request.args.get("page", 1)), 1)
    except ValueError:
        return 1


@bp.get("/")
def home():
    try:
        featured = (api.get("/products/featured", params={"limit": 8}, anonymous=True) or {}).get("products", [])
    except NetworkFailure as exc:
        log.error("Could not load featured products: %s", exc)
        featured = []
    return render_template("home.html", featured=featured, categories=_categories())


@bp.get("/products")
def products():
    search = normalize_search_query(request.args.get("search"))
    category = (request.args.get("category") or "").strip()
    sort = (request.args.get("sort") or "").strip()
    page = _page_arg()

    params = {"page": page, "limit": current_app.config["ITEMS_PER_PAGE"]}
    if search:
        params["search"] = search
    if category:
        params["category"] = category
    if sort in ("price_asc", "price_desc"):
        params["sortBy"] = "price"
        params["sortOrder"] = "asc" if sort == "price_asc" else "desc"
    elif sort == "newest":
        params["sortBy"] = "date"
        params["sortOrder"] = "desc"
    elif sort == "rating":
        params["sortBy"] = "rating"
        params["sortOrder"] = "desc"

    try:
        data = api.get("/products", params=params, anonymous=True) or {}
    except NetworkFailure as exc:
        log.error("Could not load products: %s", exc)
        flash("We couldn't load products right now. Please try again.", "error")
        data = {}

    return render_template(
        "products.html",
        products=data.get("products", []),
        total_pages=data.get("totalPages") or data.get("pages") or 1,
        page=page,
        categories=_categories(),
        search=search,
        category=category,
        sort=sort,
    )


@bp.get("/products/category/<slug>")
def category_products(slug: str):
    try:
        data = api.get(f"/products/category/{slug}", anonymous=True) or {}
    except NetworkFailure as exc:
        if exc.upstream_status == 404:
            return render_template("404.html"), 404
        raise
    return render_template(
        "products.html",
        products=data.get("products", []),
        total_pages=1,
        page=1,
        categories=_categories(),
        search="",
        category=slug,
        sort="",
    )


@bp.get("/products/<product_id>")
def product_detail(product_id: str):
    try:
        product = (api.get(f"/products/{product_id}", anonymous=True) or {}).get("product")
    except NetworkFailure as exc:
        if exc.upstream_status == 404:
            return render_template("404.html"), 404
        raise
    if not product:
        return render_template("404.html"), 404

    try:
        reviews = (api.get(f"/reviews/product/{product_id}", anonymous=True) or {}).get("reviews", [])
    except NetworkFailure as exc:
        log.error("Could not load reviews for %s: %s", product_id, exc)
        reviews = []

    ratings = [r["rating"] for r in reviews if r.get("rating") is not None]
    avg_rating = average_rating(ratings) if ratings else None

    return render_template("product_detail.html", product=product, reviews=reviews, avg_rating=avg_rating)


@bp.post("/products/<product_id>/reviews")
@login_required
def post_review(product_id: str):
    comment = (request.form.get("comment") or "").strip()
    try:
        rating = parse_rating(request.form.get("rating"))
        if len(comment) < MIN_REVIEW_LENGTH:
            raise ValidationFailed(f"Review must be at least {MIN_REVIEW_LENGTH} characters.")
        api.post("/reviews", json={"productId": product_id, "rating": rating, "comment": comment})
    except ValidationFailed as exc:
        flash(exc.message, "error")
    except NetworkFailure as exc:
        flash(exc.message, "error")
    else:
        flash("Thanks! Your review was submitted.", "success")
    return redirect(url_for("catalog.product_detail", product_id=product_id))
