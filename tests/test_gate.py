import asyncio
from dataclasses import replace

from framel.app.common.errors import RefreshFailure
from framel.app.common.gate import (
    ALLOW,
    REDIRECT_HOME,
    REDIRECT_LOGIN,
    WAIT,
    RefreshState,
    SessionGate,
    decide,
)
from framel.app.common.session import Session, User

LOADING = Session()
ANONYMOUS = Session(loading=False)
CUSTOMER = Session.for_user(User(uid="u1", email="u1@framel.test"))
ADMIN = Session.for_user(User(uid="a1", email="a1@framel.test", role="admin"))


class FakeHandle:
    def __init__(self, session, becomes_admin=False, fail=False, error=None):
        self.session = session
        self.becomes_admin = becomes_admin
        self.fail = fail
        self.error = error
        self.calls = 0
        self.release = None

    def current_session(self):
        return self.session

    async def refresh_privilege(self):
        self.calls += 1
        if self.release is not None:
            await self.release.wait()
        if self.fail:
            raise RefreshFailure("profile unavailable")
        if self.error is not None:
            raise self.error
        self.session = replace(self.session, is_admin=self.becomes_admin)
        return self.session


# GATE-001: decision table
def test_decide_table():
    assert decide(LOADING, False, RefreshState.IDLE) == WAIT
    assert decide(LOADING, True, RefreshState.DONE) == WAIT
    assert decide(ANONYMOUS, False, RefreshState.IDLE) == REDIRECT_LOGIN
    assert decide(ANONYMOUS, True, RefreshState.DONE) == REDIRECT_LOGIN
    assert decide(CUSTOMER, False, RefreshState.IDLE) == ALLOW
    assert decide(CUSTOMER, True, RefreshState.REFRESHING) == WAIT
    assert decide(CUSTOMER, True, RefreshState.DONE) == REDIRECT_HOME
    assert decide(ADMIN, True, RefreshState.DONE) == ALLOW
    assert decide(ADMIN, True, RefreshState.FAILED) == REDIRECT_HOME
    assert decide(ANONYMOUS, True, RefreshState.FAILED) == REDIRECT_LOGIN


# GATE-002: loading never redirects and never starts a refresh
def test_loading_waits_without_effects():
    handle = FakeHandle(LOADING)
    navigations = []
    gate = SessionGate(handle, require_elevated=True, navigate=navigations.append)

    assert gate.render() == WAIT
    assert gate.render() == WAIT
    assert gate.phase == "loading"
    assert navigations == []
    assert handle.calls == 0
    assert gate.refresh_state is RefreshState.IDLE


# GATE-003: unauthenticated viewer is sent to login exactly once
def test_unauthenticated_redirects_to_login_once():
    handle = FakeHandle(ANONYMOUS)
    navigations = []
    gate = SessionGate(handle, require_elevated=True, navigate=navigations.append)

    for _ in range(3):
        assert gate.render() == REDIRECT_LOGIN

    assert navigations == ["login"]
    assert handle.calls == 0
    assert gate.phase == "redirecting"


# GATE-004: plain protected page lets any authenticated viewer through
def test_authenticated_customer_allowed_without_refresh():
    handle = FakeHandle(CUSTOMER)
    gate = SessionGate(handle)

    assert gate.render() == ALLOW
    assert gate.phase == "rendering"
    assert handle.calls == 0


# GATE-005: refresh runs once no matter how many renders happen while it is pending
def test_refresh_starts_once_across_renders():
    handle = FakeHandle(CUSTOMER)
    navigations = []

    async def scenario():
        handle.release = asyncio.Event()
        gate = SessionGate(handle, require_elevated=True, navigate=navigations.append)
        assert gate.render() == WAIT
        assert gate.render() == WAIT
        await asyncio.sleep(0)
        assert gate.render() == WAIT
        assert gate.phase == "refreshing_privilege"
        assert navigations == []
        handle.release.set()
        decision = await gate.settle()
        gate.render()
        return gate, decision

    gate, decision = asyncio.run(scenario())

    assert handle.calls == 1
    assert decision == REDIRECT_HOME
    assert navigations == ["home"]
    assert gate.refresh_state is RefreshState.DONE


# GATE-006: refresh that promotes the viewer lets the page render
def test_refresh_granting_admin_allows():
    handle = FakeHandle(CUSTOMER, becomes_admin=True)
    navigations = []
    settled = []

    async def scenario():
        gate = SessionGate(
            handle,
            require_elevated=True,
            navigate=navigations.append,
            on_settled=lambda: settled.append(True),
        )
        return gate, await gate.settle()

    gate, decision = asyncio.run(scenario())

    assert decision == ALLOW
    assert gate.phase == "rendering"
    assert navigations == []
    assert settled == [True]


# GATE-007: an admin snapshot is still re-checked and demoted when the profile says so
def test_stale_admin_flag_is_rechecked():
    handle = FakeHandle(ADMIN, becomes_admin=False)
    navigations = []

    async def scenario():
        gate = SessionGate(handle, require_elevated=True, navigate=navigations.append)
        return await gate.settle()

    assert asyncio.run(scenario()) == REDIRECT_HOME
    assert handle.calls == 1
    assert navigations == ["home"]


# GATE-008: refresh failure is absorbed and treated as not elevated
def test_refresh_failure_redirects_home():
    handle = FakeHandle(CUSTOMER, fail=True)
    navigations = []

    async def scenario():
        gate = SessionGate(handle, require_elevated=True, navigate=navigations.append)
        decision = await gate.settle()
        return gate, decision

    gate, decision = asyncio.run(scenario())

    assert decision == REDIRECT_HOME
    assert gate.refresh_state is RefreshState.FAILED
    assert navigations == ["home"]


def test_refresh_failure_denies_cached_admin():
    handle = FakeHandle(ADMIN, fail=True)

    async def scenario():
        return await SessionGate(handle, require_elevated=True).settle()

    assert asyncio.run(scenario()) == REDIRECT_HOME


def test_unexpected_refresh_error_is_treated_as_failure():
    handle = FakeHandle(ADMIN, error=ValueError("unreadable profile"))
    settled = []

    async def scenario():
        gate = SessionGate(handle, require_elevated=True, on_settled=lambda: settled.append(True))
        decision = await gate.settle()
        return gate, decision

    gate, decision = asyncio.run(scenario())

    assert decision == REDIRECT_HOME
    assert gate.refresh_state is RefreshState.FAILED
    assert gate.phase == "redirecting"
    assert settled == [True]


# GATE-009: refresh bookkeeping belongs to one gate; unmounting stops its effects
def test_guard_is_scoped_to_a_single_gate():
    handle = FakeHandle(CUSTOMER, becomes_admin=True)
    first_nav, first_settled = [], []

    async def scenario():
        handle.release = asyncio.Event()
        first = SessionGate(
            handle,
            require_elevated=True,
            navigate=first_nav.append,
            on_settled=lambda: first_settled.append(True),
        )
        first.render()
        first.unmount()

        second = SessionGate(handle, require_elevated=True)
        assert second.refresh_state is RefreshState.IDLE
        second.render()
        assert second.refresh_state is RefreshState.REFRESHING
        handle.release.set()
        return await second.settle()

    assert asyncio.run(scenario()) == ALLOW
    assert first_nav == []
    assert first_settled == []


def test_unmounted_gate_does_not_navigate():
    handle = FakeHandle(ANONYMOUS)
    navigations = []
    gate = SessionGate(handle, navigate=navigations.append)
    gate.unmount()

    assert gate.render() == REDIRECT_LOGIN
    assert navigations == []
