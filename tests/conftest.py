import os
import sys
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from framel.app.config import TestConfig
from framel.app.extensions import api, identity
from framel.app.factory import create_app

API_BASE = TestConfig.API_URL


@dataclass
class Call:
    method: str
    path: str
    params: Optional[Dict[str, Any]] = None
    json: Any = None
    data: Any = None
    headers: Dict[str, str] = field(default_factory=dict)


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None):
        self.status_code = status_code
        self._payload = payload
        self.content = b"" if payload is None else b"{}"
        self.reason = "OK" if status_code < 400 else "Error"

    def json(self):
        if self._payload is None:
            raise ValueError("no body")
        return self._payload


class FakeHttp:
    """Stands in for requests.Session in front of the remote API and identity provider.

    Routes are keyed by (METHOD, path) where path is relative to the API base
    (or the full URL for identity-provider calls). Unknown routes answer 404.
    """

    def __init__(self):
        self.routes: Dict[tuple, Any] = {}
        self.calls: list[Call] = []

    def add(self, method: str, path: str, data: Any = None, status: int = 200, raw: Any = None):
        if raw is not None:
            payload = raw
        elif status < 400:
            payload = {"success": True, "data": data}
        else:
            payload = {"success": False, "error": "Error", "message": data or "Request failed"}
        self.routes[(method, path)] = FakeResponse(status, payload)

    def fail(self, method: str, path: str, exc: Exception):
        self.routes[(method, path)] = exc

    def _respond(self, call: Call):
        self.calls.append(call)
        route = self.routes.get((call.method, call.path))
        if route is None:
            return FakeResponse(404, {"success": False, "message": "Not found"})
        if isinstance(route, Exception):
            raise route
        return route

    def request(self, method, url, params=None, json=None, headers=None, timeout=None):
        path = url[len(API_BASE):] if url.startswith(API_BASE) else url
        return self._respond(Call(method, path, params=params, json=json, headers=headers or {}))

    def post(self, url, params=None, json=None, data=None, timeout=None):
        return self._respond(Call("POST", url, params=params, json=json, data=data))

    def called(self, method: str, path: str) -> list:
        return [c for c in self.calls if c.method == method and c.path == path]


@pytest.fixture()
def fake_http():
    return FakeHttp()


@pytest.fixture()
def app(fake_http):
    app = create_app(TestConfig)
    api.http = fake_http
    identity.http = fake_http
    yield app


@pytest.fixture()
def client(app):
    with app.test_client() as client:
        yield client


def sign_in_as(client, role: str = "customer", uid: str = "u1", cache_profile: bool = True):
    """Put valid credentials (and optionally a cached profile) in the cookie session."""
    with client.session_transaction() as sess:
        sess["credentials"] = {
            "uid": uid,
            "email": f"{uid}@framel.test",
            "id_token": f"token-{uid}",
            "refresh_token": f"refresh-{uid}",
            "expires_at": time.time() + 3600,
        }
        if cache_profile:
            sess["user"] = {"uid": uid, "email": f"{uid}@framel.test", "name": "Wanjiru", "phone": "254712345678", "role": role}


def product(product_id: str = "p1", price: int = 1500, stock: int = 10, name: str = "Red Roses") -> dict:
    return {"id": product_id, "name": name, "price": price, "stock": stock, "imageURLs": []}
