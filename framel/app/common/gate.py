"""Session gate for protected pages.

The access decision is a pure function of the session snapshot, whether
elevated privilege is required, and where the one-shot privilege refresh
stands. `SessionGate` holds that refresh state for a single mount, starts
the refresh at most once, and performs the redirect effect at most once
per distinct decision.

    Loading -> RefreshingPrivilege -> Deciding -> Redirecting | Rendering
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

from framel.app.common.errors import RefreshFailure
from framel.app.common.session import Session

log = logging.getLogger(__name__)

LOGIN = "login"
HOME = "home"


class RefreshState(Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"
    DONE = "done"
    FAILED = "failed"


SETTLED = frozenset({RefreshState.DONE, RefreshState.FAILED})


@dataclass(frozen=True)
class Decision:
    action: str
    target: Optional[str] = None

    @property
    def is_redirect(self) -> bool:
        return self.action == "redirect"


WAIT = Decision("wait")
ALLOW = Decision("allow")
REDIRECT_LOGIN = Decision("redirect", LOGIN)
REDIRECT_HOME = Decision("redirect", HOME)


class SessionHandle(Protocol):
    def current_session(self) -> Session: ...

    async def refresh_privilege(self) -> Session: ...


def needs_refresh(session: Session, require_elevated: bool, state: RefreshState) -> bool:
    return (
        not session.loading
        and require_elevated
        and session.is_authenticated
        and state is RefreshState.IDLE
    )


def decide(session: Session, require_elevated: bool, state: RefreshState) -> Decision:
    if session.loading:
        return WAIT
    if require_elevated and session.is_authenticated and state not in SETTLED:
        return WAIT
    if not session.is_authenticated:
        return REDIRECT_LOGIN
    # a failed refresh means privilege was never confirmed
    if require_elevated and (state is RefreshState.FAILED or not session.is_admin):
        return REDIRECT_HOME
    return ALLOW


class SessionGate:
    def __init__(
        self,
        context: SessionHandle,
        require_elevated: bool = False,
        navigate: Optional[Callable[[str], None]] = None,
        on_settled: Optional[Callable[[], None]] = None,
    ):
        self.context = context
        self.require_elevated = require_elevated
        self.navigate = navigate
        self.on_settled = on_settled
        self.refresh_state = RefreshState.IDLE
        self.mounted = True
        self._refresh_task: Optional[asyncio.Task] = None
        self._last_decision: Optional[Decision] = None

    @property
    def phase(self) -> str:
        if self.context.current_session().loading:
            return "loading"
        if self.refresh_state is RefreshState.REFRESHING:
            return "refreshing_privilege"
        if self._last_decision is None or self._last_decision is WAIT:
            return "deciding"
        return "redirecting" if self._last_decision.is_redirect else "rendering"

    def render(self) -> Decision:
        """Compute the decision for the current session and apply its effect.

        Must be called with a running event loop when a refresh may start.
        """
        session = self.context.current_session()
        if needs_refresh(session, self.require_elevated, self.refresh_state):
            self._start_refresh()
        decision = decide(session, self.require_elevated, self.refresh_state)
        self._apply(decision)
        return decision

    def _start_refresh(self) -> None:
        self.refresh_state = RefreshState.REFRESHING
        loop = asyncio.get_running_loop()
        self._refresh_task = loop.create_task(self._refresh())

    async def _refresh(self) -> None:
        try:
            await self.context.refresh_privilege()
        except RefreshFailure as exc:
            log.warning("Privilege refresh failed, treating viewer as non-admin: %s", exc)
            self.refresh_state = RefreshState.FAILED
        except Exception:
            log.exception("Privilege refresh raised unexpectedly, treating viewer as non-admin")
            self.refresh_state = RefreshState.FAILED
        else:
            self.refresh_state = RefreshState.DONE
        if self.mounted and self.on_settled is not None:
            self.on_settled()

    def _apply(self, decision: Decision) -> None:
        if decision == self._last_decision:
            return
        self._last_decision = decision
        if decision.is_redirect and self.mounted and self.navigate is not None:
            self.navigate(decision.target)

    async def settle(self) -> Decision:
        """Render until the outstanding refresh (if any) has finished."""
        decision = self.render()
        while self._refresh_task is not None and not self._refresh_task.done():
            await self._refresh_task
            decision = self.render()
        return decision

    def unmount(self) -> None:
        self.mounted = False
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_task.cancel()
