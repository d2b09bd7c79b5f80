"""HTTP client for the remote Framel REST API.

Every request carries the viewer's bearer token when a session exists.
A 401 from the API raises `Unauthenticated` (the app factory turns that
into a redirect to the login page); 403/404/500 are logged and raised as
`NetworkFailure` for the calling view to deal with.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

import requests
from flask import Flask

from framel.app.common.errors import NetworkFailure, Unauthenticated

log = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "An unexpected error occurred"


def error_message(response: requests.Response) -> str:
    """Pull the most useful human message out of an API error response."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return response.reason or DEFAULT_ERROR_MESSAGE


class RemoteApi:
    def __init__(self, app: Flask | None = None):
        self.base_url = ""
        self.timeout = 30.0
        self.http = requests.Session()
        # Returns the current bearer token (or None); wired up by the app factory.
        self.token_getter: Optional[Callable[[], Optional[str]]] = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self.base_url = app.config["API_URL"].rstrip("/")
        self.timeout = app.config.get("API_TIMEOUT", 30.0)
        app.extensions["framel.api"] = self

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        token: Optional[str] = None,
        anonymous: bool = False,
    ) -> Any:
        headers = {"Content-Type": "application/json"}
        if not anonymous:
            if token is None and self.token_getter is not None:
                token = self.token_getter()
            if token:
                headers["Authorization"] = f"Bearer {token}"

        try:
            response = self.http.request(
                method,
                self.url_for(path),
                params=params,
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            log.error("API %s %s failed: %s", method, path, exc)
            raise NetworkFailure(f"Could not reach the Framel API: {exc}") from exc

        status = response.status_code
        if status == 401:
            raise Unauthenticated(error_message(response))
        if status >= 400:
            if status == 403:
                log.error("Access forbidden: %s %s", method, path)
            elif status == 404:
                log.error("Resource not found: %s %s", method, path)
            elif status >= 500:
                log.error("Server error (%s): %s %s", status, method, path)
            else:
                log.warning("API %s %s returned %s", method, path, status)
            raise NetworkFailure(error_message(response), upstream_status=status)

        if status == 204 or not response.content:
            return None
        try:
            body = response.json()
        except ValueError as exc:
            log.error("API %s %s returned a malformed body: %s", method, path, exc)
            raise NetworkFailure("The Framel API returned an unreadable response") from exc
        # Standard envelope: {"success": bool, "message": str, "data": {...}}
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    def get(self, path: str, **kwargs: Any) -> Any:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> Any:
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs: Any) -> Any:
        return self.request("PUT", path, **kwargs)

    def patch(self, path: str, **kwargs: Any) -> Any:
        return self.request("PATCH", path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> Any:
        return self.request("DELETE", path, **kwargs)
