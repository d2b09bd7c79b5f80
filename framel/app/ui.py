"""Informational pages (no remote data)."""

from flask import Blueprint, render_template

ui_bp = Blueprint("ui", __name__)

@ui_bp.get("/about")
def about():
    return render_template("pages/about.html")

@ui_bp.get("/faq")
def faq():
    return render_template("pages/faq.html")

@ui_bp.get("/contact")
def contact():
    return render_template("pages/contact.html")

@ui_bp.get("/privacy")
def privacy():
    return render_template("pages/privacy.html")

@ui_bp.get("/terms")
def terms():
    return render_template("pages/terms.html")
