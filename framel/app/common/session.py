"""Viewer session: an immutable snapshot plus the handle that mutates it.

`Session` is what the gate and templates read. `SessionContext` owns the
lifecycle: it starts out loading, is bootstrapped from the credentials kept
in the Flask cookie session, can refresh the viewer's privilege against the
remote API, and resets to unauthenticated on logout.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, MutableMapping, Optional

from framel.app.clients.api import RemoteApi
from framel.app.clients.identity import Credentials, IdentityProvider
from framel.app.common.errors import FramelError, NetworkFailure, RefreshFailure, Unauthenticated

log = logging.getLogger(__name__)

CREDENTIALS_KEY = "credentials"
PROFILE_KEY = "user"

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class User:
    uid: str
    email: str
    name: str = ""
    phone: str = ""
    role: str = "customer"

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "User":
        return cls(
            uid=str(data.get("uid") or data.get("id") or ""),
            email=data.get("email") or "",
            name=data.get("name") or data.get("displayName") or "",
            phone=data.get("phone") or "",
            role=data.get("role") or "customer",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"uid": self.uid, "email": self.email, "name": self.name, "phone": self.phone, "role": self.role}


@dataclass(frozen=True)
class Session:
    is_authenticated: bool = False
    is_admin: bool = False
    loading: bool = True
    user: Optional[User] = None

    @classmethod
    def for_user(cls, user: Optional[User]) -> "Session":
        if user is None:
            return cls(loading=False)
        return cls(is_authenticated=True, is_admin=user.is_admin, loading=False, user=user)


def _unwrap_profile(data: Any) -> Dict[str, Any]:
    if isinstance(data, dict) and isinstance(data.get("user"), dict):
        return data["user"]
    return data or {}


class SessionContext:
    def __init__(self, store: MutableMapping[str, Any], api: RemoteApi, identity: IdentityProvider):
        self._store = store
        self._api = api
        self._identity = identity
        self._session = Session()

    def current_session(self) -> Session:
        return self._session

    def credentials(self) -> Optional[Credentials]:
        raw = self._store.get(CREDENTIALS_KEY)
        if not raw:
            return None
        try:
            return Credentials.from_dict(raw)
        except (KeyError, TypeError, ValueError):
            log.warning("Discarding malformed credentials in session")
            self._store.pop(CREDENTIALS_KEY, None)
            return None

    def bearer_token(self) -> Optional[str]:
        creds = self.credentials()
        if creds is None:
            return None
        if creds.expired():
            try:
                creds = self._identity.refresh_id_token(creds)
            except Unauthenticated:
                self.logout()
                return None
            except NetworkFailure as exc:
                # try the old token; the API answers 401 if it really expired
                log.warning("Token refresh unavailable: %s", exc)
                return creds.id_token
            self._store[CREDENTIALS_KEY] = creds.to_dict()
        return creds.id_token

    def _fetch_profile(self, token: Optional[str]) -> User:
        data = self._api.get("/auth/profile", token=token)
        return User.from_api(_unwrap_profile(data))

    def bootstrap(self) -> Session:
        """Resolve the loading state from stored credentials.

        A cached profile is reused; otherwise the profile is fetched once.
        A failed fetch leaves the viewer unauthenticated.
        """
        if not self._session.loading:
            return self._session

        token = self.bearer_token()
        if token is None:
            self._session = Session(loading=False)
            return self._session

        cached = self._store.get(PROFILE_KEY)
        if cached:
            self._session = Session.for_user(User.from_api(cached))
            return self._session

        try:
            user = self._fetch_profile(token)
        except Unauthenticated:
            self.logout()
            return self._session
        except FramelError as exc:
            log.error("Error fetching user profile: %s", exc)
            user = None

        if user is not None:
            self._store[PROFILE_KEY] = user.to_dict()
        self._session = Session.for_user(user)
        return self._session

    def sign_in(self, email: str, password: str) -> Session:
        creds = self._identity.sign_in(email, password)
        self._store[CREDENTIALS_KEY] = creds.to_dict()
        self._store.pop(PROFILE_KEY, None)
        self._session = Session()
        return self.bootstrap()

    async def refresh_privilege(self) -> Session:
        """Re-read the viewer's profile and update the admin flag."""
        token = self.bearer_token()
        try:
            user = await asyncio.to_thread(self._fetch_profile, token)
        except Unauthenticated:
            # revoked token
            log.info("Profile rejected the session token, logging out")
            self.logout()
            return self._session
        except FramelError as exc:
            raise RefreshFailure(str(exc)) from exc

        self._store[PROFILE_KEY] = user.to_dict()
        self._session = replace(
            self._session,
            is_authenticated=True,
            is_admin=user.is_admin,
            loading=False,
            user=user,
        )
        log.info("Refreshed privileges for %s (admin=%s)", user.uid, user.is_admin)
        return self._session

    def update_profile(self, user: User) -> None:
        self._store[PROFILE_KEY] = user.to_dict()
        self._session = Session.for_user(user)

    def logout(self) -> None:
        self._store.pop(CREDENTIALS_KEY, None)
        self._store.pop(PROFILE_KEY, None)
        self._session = Session(loading=False)
