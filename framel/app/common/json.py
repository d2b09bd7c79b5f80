from __future__ import annotations

from flask import jsonify


def ok(data=None, status=200, message: str | None = None):
    """Success envelope matching the remote API: {"success": true, "data": ...}."""
    if data is None and message is None:
        return ("", 204 if status == 200 else status)
    payload = {"success": True, "data": data}
    if message:
        payload["message"] = message
    return jsonify(payload), status
