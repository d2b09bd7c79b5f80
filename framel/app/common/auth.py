"""View decorators that put the session gate in front of protected pages.

One gate is mounted per request. Page requests that are refused get a
silent redirect (login keeps a `next` parameter); requests under `/api`
get a JSON 401/403 instead.
"""

import asyncio
from functools import wraps
from typing import Any, Callable, TypeVar

from flask import g, has_request_context, redirect, render_template, request, session, url_for

from framel.app.common.errors import InsufficientPrivilege, Unauthenticated
from framel.app.common.gate import LOGIN, WAIT, SessionGate
from framel.app.common.session import SessionContext
from framel.app.extensions import api, identity

F = TypeVar("F", bound=Callable[..., Any])


def get_session_context() -> SessionContext:
    if "session_context" not in g:
        g.session_context = SessionContext(session, api, identity)
    return g.session_context


def current_bearer_token():
    if not has_request_context():
        return None
    return get_session_context().bearer_token()


def current_viewer():
    return get_session_context().bootstrap()


def _wants_json() -> bool:
    return request.path.startswith("/api/")


def _guard(fn: F, require_elevated: bool) -> F:
    @wraps(fn)
    def wrapper(*args, **kwargs):
        context = get_session_context()
        context.bootstrap()
        gate = SessionGate(context, require_elevated=require_elevated)
        decision = asyncio.run(gate.settle())

        if decision == WAIT:
            return render_template("loading.html"), 202
        if decision.is_redirect:
            if _wants_json():
                if decision.target == LOGIN:
                    raise Unauthenticated()
                raise InsufficientPrivilege()
            if decision.target == LOGIN:
                return redirect(url_for("auth.login", next=request.full_path.rstrip("?")))
            return redirect(url_for("catalog.home"))
        return fn(*args, **kwargs)

    return wrapper  # type: ignore


def login_required(fn: F) -> F:
    return _guard(fn, require_elevated=False)


def admin_required(fn: F) -> F:
    return _guard(fn, require_elevated=True)
