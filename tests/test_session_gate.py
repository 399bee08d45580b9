from __future__ import annotations

import tempfile
import unittest
from datetime import date
from pathlib import Path

from estimate_engine import DEFAULT_BUSINESS_NAME, UserProfile
from session_gate import (
    AUTH_EXPIRY_KEY,
    AUTH_FLAG_KEY,
    MAX_FREE_PROJECTS,
    PRO_FLAG_KEY,
    PROJECT_COUNT_KEY,
    REMEMBER_ME_MS,
    UPSELL_VIEW,
    AuthScope,
    SessionGate,
    read_session_state,
)
from storage import MemoryStore, open_persistent_store


class _Clock:
    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class TestReadSessionState(unittest.TestCase):
    def test_expired_login_is_cleared(self) -> None:
        persistent = MemoryStore({AUTH_FLAG_KEY: "true", AUTH_EXPIRY_KEY: "1000"})
        state = read_session_state(persistent, MemoryStore(), now=2000)
        self.assertFalse(state.authenticated)
        self.assertNotIn(AUTH_FLAG_KEY, persistent)
        self.assertNotIn(AUTH_EXPIRY_KEY, persistent)

    def test_unexpired_login_is_persistent(self) -> None:
        persistent = MemoryStore({AUTH_FLAG_KEY: "true", AUTH_EXPIRY_KEY: "5000"})
        state = read_session_state(persistent, MemoryStore(), now=2000)
        self.assertEqual(state.auth_scope, AuthScope.PERSISTENT)
        self.assertEqual(state.auth_expiry_ms, 5000)

    def test_login_without_expiry_never_expires(self) -> None:
        persistent = MemoryStore({AUTH_FLAG_KEY: "true"})
        state = read_session_state(persistent, MemoryStore(), now=10**15)
        self.assertEqual(state.auth_scope, AuthScope.PERSISTENT)
        self.assertIsNone(state.auth_expiry_ms)

    def test_garbled_expiry_counts_as_expired(self) -> None:
        persistent = MemoryStore({AUTH_FLAG_KEY: "true", AUTH_EXPIRY_KEY: "soon"})
        state = read_session_state(persistent, MemoryStore(), now=1)
        self.assertFalse(state.authenticated)
        self.assertEqual(dict(persistent), {})

    def test_session_scope(self) -> None:
        state = read_session_state(MemoryStore(), MemoryStore({AUTH_FLAG_KEY: "true"}), now=1)
        self.assertEqual(state.auth_scope, AuthScope.SESSION)

    def test_pro_and_count(self) -> None:
        persistent = MemoryStore({PRO_FLAG_KEY: "true", PROJECT_COUNT_KEY: "2"})
        state = read_session_state(persistent, MemoryStore(), now=1)
        self.assertTrue(state.pro)
        self.assertEqual(state.free_project_count, 2)

    def test_garbled_count_means_no_free_projects_left(self) -> None:
        persistent = MemoryStore({PROJECT_COUNT_KEY: "abc"})
        state = read_session_state(persistent, MemoryStore(), now=1)
        self.assertEqual(state.free_project_count, MAX_FREE_PROJECTS)

        gate = SessionGate.load(persistent, MemoryStore(), clock=_Clock(1))
        decision = gate.request_new_project()
        self.assertFalse(decision.allowed)
        self.assertEqual(decision.redirect, UPSELL_VIEW)

    def test_negative_count_is_treated_as_exhausted(self) -> None:
        state = read_session_state(MemoryStore({PROJECT_COUNT_KEY: "-3"}), MemoryStore(), now=1)
        self.assertEqual(state.free_project_count, MAX_FREE_PROJECTS)

    def test_missing_count_starts_at_zero(self) -> None:
        self.assertEqual(read_session_state(MemoryStore(), MemoryStore(), now=1).free_project_count, 0)


class TestSessionGate(unittest.TestCase):
    def setUp(self) -> None:
        self.persistent = MemoryStore()
        self.session = MemoryStore()
        self.clock = _Clock(1_000_000)
        self.gate = SessionGate.load(self.persistent, self.session, clock=self.clock)

    def test_free_tier_allows_two_projects(self) -> None:
        first = self.gate.request_new_project(today=date(2026, 1, 1))
        second = self.gate.request_new_project(today=date(2026, 1, 1))
        third = self.gate.request_new_project(today=date(2026, 1, 1))

        self.assertTrue(first.allowed)
        self.assertIsNotNone(first.estimate)
        self.assertTrue(second.allowed)
        self.assertFalse(third.allowed)
        self.assertIsNone(third.estimate)
        self.assertEqual(third.redirect, UPSELL_VIEW)
        self.assertEqual(self.persistent[PROJECT_COUNT_KEY], "2")
        self.assertEqual(self.gate.remaining_free_projects(), 0)

    def test_pro_is_unlimited_and_not_counted(self) -> None:
        self.persistent[PROJECT_COUNT_KEY] = "2"
        self.gate.upgrade()
        for _ in range(3):
            self.assertTrue(self.gate.request_new_project().allowed)
        self.assertEqual(self.persistent[PROJECT_COUNT_KEY], "2")

    def test_remember_me_login_expires_after_seven_days(self) -> None:
        self.gate.login("a@b.co", remember=True)
        self.assertEqual(self.persistent[AUTH_EXPIRY_KEY], str(1_000_000 + REMEMBER_ME_MS))
        self.assertEqual(self.gate.state.auth_scope, AuthScope.PERSISTENT)

        self.clock.now += REMEMBER_ME_MS + 1
        reloaded = SessionGate.load(self.persistent, MemoryStore(), clock=self.clock)
        self.assertFalse(reloaded.state.authenticated)
        self.assertNotIn(AUTH_FLAG_KEY, self.persistent)

    def test_session_login_does_not_touch_persistent_auth(self) -> None:
        self.gate.login("a@b.co")
        self.assertEqual(self.gate.state.auth_scope, AuthScope.SESSION)
        self.assertNotIn(AUTH_FLAG_KEY, self.persistent)
        fresh_tab = SessionGate.load(self.persistent, MemoryStore(), clock=self.clock)
        self.assertFalse(fresh_tab.state.authenticated)

    def test_logout_clears_both_scopes(self) -> None:
        self.gate.login("a@b.co", remember=True)
        self.session[AUTH_FLAG_KEY] = "true"
        self.gate.logout()
        self.assertFalse(self.gate.state.authenticated)
        self.assertNotIn(AUTH_FLAG_KEY, self.persistent)
        self.assertNotIn(AUTH_FLAG_KEY, self.session)

    def test_upgrade_makes_login_permanent(self) -> None:
        self.gate.login("a@b.co", remember=True)
        self.gate.upgrade()
        self.assertEqual(self.persistent[PRO_FLAG_KEY], "true")
        self.assertNotIn(AUTH_EXPIRY_KEY, self.persistent)
        self.clock.now += 10 * REMEMBER_ME_MS
        state = SessionGate.load(self.persistent, MemoryStore(), clock=self.clock).state
        self.assertTrue(state.authenticated)
        self.assertTrue(state.pro)

    def test_downgrade_needs_confirmation(self) -> None:
        self.gate.upgrade()
        self.gate.downgrade(confirmed=False)
        self.assertTrue(self.gate.state.pro)
        self.gate.downgrade(confirmed=True)
        self.assertFalse(self.gate.state.pro)
        self.assertTrue(self.gate.state.authenticated)

    def test_payment_redirect(self) -> None:
        self.assertEqual(self.gate.handle_payment_redirect("error"), "payment_failed")
        self.assertFalse(self.gate.state.pro)
        self.assertIsNone(self.gate.handle_payment_redirect(None))
        self.assertEqual(self.gate.handle_payment_redirect("success"), "activated")
        self.assertTrue(self.gate.state.pro)

    def test_signup_name_seeds_business_name_once(self) -> None:
        self.gate.login("a@b.co", "Lumen Films")
        self.assertEqual(self.gate.user_profile.business_name, "Lumen Films")
        self.gate.login("a@b.co", "Other Name")
        self.assertEqual(self.gate.user_profile.business_name, "Lumen Films")

    def test_profile_prefills_only_for_pro(self) -> None:
        self.gate.save_user_profile(UserProfile(business_name="Lumen Films", payment_link="https://pay.example"))
        free = self.gate.request_new_project().estimate
        assert free is not None
        self.assertEqual(free.details.business_name, DEFAULT_BUSINESS_NAME)

        self.gate.upgrade()
        pro = self.gate.request_new_project().estimate
        assert pro is not None
        self.assertEqual(pro.details.business_name, "Lumen Films")
        self.assertEqual(pro.details.payment_link, "https://pay.example")

    def test_unreadable_profile_falls_back_to_empty(self) -> None:
        self.persistent["ser_user_profile"] = "{oops"
        self.assertEqual(self.gate.user_profile, UserProfile())


class TestSharedPersistentStore(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_upgrade_in_one_tab_reaches_the_other(self) -> None:
        clock = _Clock(1_000_000)
        tab_a = SessionGate.load(open_persistent_store(self.dir), MemoryStore(), clock=clock)
        tab_b = SessionGate.load(open_persistent_store(self.dir), MemoryStore(), clock=clock)
        self.assertFalse(tab_a.state.pro)

        tab_b.upgrade()
        self.assertTrue(tab_a.state.pro)

        # Tab A was loaded before the upgrade; its write must not drop the Pro flag.
        tab_a.save_user_profile(UserProfile(business_name="Lumen Films"))
        reopened = open_persistent_store(self.dir)
        self.assertEqual(reopened.get(PRO_FLAG_KEY), "true")
        self.assertEqual(tab_b.user_profile.business_name, "Lumen Films")

    def test_free_counter_is_shared_between_tabs(self) -> None:
        clock = _Clock(1_000_000)
        tab_a = SessionGate.load(open_persistent_store(self.dir), MemoryStore(), clock=clock)
        tab_b = SessionGate.load(open_persistent_store(self.dir), MemoryStore(), clock=clock)

        self.assertTrue(tab_a.request_new_project().allowed)
        self.assertTrue(tab_b.request_new_project().allowed)
        self.assertFalse(tab_a.request_new_project().allowed)
        self.assertEqual(open_persistent_store(self.dir).get(PROJECT_COUNT_KEY), "2")


if __name__ == "__main__":
    unittest.main()
