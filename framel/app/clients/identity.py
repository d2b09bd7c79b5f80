"""Firebase identity provider, spoken to over its public REST endpoints."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict

import requests
from flask import Flask

from framel.app.common.errors import NetworkFailure, Unauthenticated

log = logging.getLogger(__name__)

SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"
TOKEN_URL = "https://securetoken.googleapis.com/v1/token"

# Refresh a little before the provider would reject the token.
EXPIRY_SKEW_SECONDS = 60

CREDENTIAL_ERRORS = {
    "EMAIL_NOT_FOUND",
    "INVALID_PASSWORD",
    "INVALID_LOGIN_CREDENTIALS",
    "INVALID_EMAIL",
    "USER_DISABLED",
}


@dataclass
class Credentials:
    uid: str
    email: str
    id_token: str
    refresh_token: str
    expires_at: float

    def expired(self, now: float | None = None) -> bool:
        now = time.time() if now is None else now
        return now >= self.expires_at - EXPIRY_SKEW_SECONDS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uid": self.uid,
            "email": self.email,
            "id_token": self.id_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Credentials":
        return cls(
            uid=data["uid"],
            email=data.get("email", ""),
            id_token=data["id_token"],
            refresh_token=data["refresh_token"],
            expires_at=float(data.get("expires_at", 0)),
        )


def _provider_error(response: requests.Response) -> str:
    try:
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return response.reason or "UNKNOWN"


class IdentityProvider:
    def __init__(self, app: Flask | None = None):
        self.api_key = ""
        self.timeout = 30.0
        self.http = requests.Session()
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self.api_key = app.config.get("FIREBASE_API_KEY", "")
        self.timeout = app.config.get("API_TIMEOUT", 30.0)
        app.extensions["framel.identity"] = self

    def _post(self, url: str, **kwargs: Any) -> requests.Response:
        try:
            return self.http.post(url, params={"key": self.api_key}, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            log.error("Identity provider unreachable: %s", exc)
            raise NetworkFailure("Could not reach the identity provider") from exc

    def sign_in(self, email: str, password: str) -> Credentials:
        response = self._post(
            SIGN_IN_URL,
            json={"email": email, "password": password, "returnSecureToken": True},
        )
        if response.status_code != 200:
            reason = _provider_error(response)
            if reason.split(":")[0].strip() in CREDENTIAL_ERRORS:
                raise Unauthenticated("Invalid email or password")
            log.error("Sign-in failed: %s", reason)
            raise NetworkFailure(f"Sign-in failed: {reason}", upstream_status=response.status_code)

        body = response.json()
        return Credentials(
            uid=body["localId"],
            email=body.get("email", email),
            id_token=body["idToken"],
            refresh_token=body["refreshToken"],
            expires_at=time.time() + int(body.get("expiresIn", 3600)),
        )

    def refresh_id_token(self, credentials: Credentials) -> Credentials:
        response = self._post(
            TOKEN_URL,
            data={"grant_type": "refresh_token", "refresh_token": credentials.refresh_token},
        )
        if response.status_code != 200:
            log.warning("Token refresh rejected: %s", _provider_error(response))
            raise Unauthenticated("Session expired, please log in again")

        body = response.json()
        return Credentials(
            uid=body.get("user_id", credentials.uid),
            email=credentials.email,
            id_token=body["id_token"],
            refresh_token=body.get("refresh_token", credentials.refresh_token),
            expires_at=time.time() + int(body.get("expires_in", 3600)),
        )
