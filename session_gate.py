from __future__ import annotations

import json
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Callable, Optional

import structlog

from estimate_engine import Estimate, UserProfile, new_estimate, now_ms, profile_from_dict, profile_to_dict
from storage import KeyValueStore

logger = structlog.get_logger()

AUTH_FLAG_KEY = "ser_is_authenticated"
AUTH_EXPIRY_KEY = "ser_auth_expiry"
PRO_FLAG_KEY = "ser_is_pro"
PROJECT_COUNT_KEY = "ser_project_count"
USER_PROFILE_KEY = "ser_user_profile"

MAX_FREE_PROJECTS = 2
REMEMBER_ME_MS = 7 * 24 * 60 * 60 * 1000

UPSELL_VIEW = "subscription"


class AuthScope(str, Enum):
    ANONYMOUS = "anonymous"
    SESSION = "session"
    PERSISTENT = "persistent"


@dataclass(frozen=True)
class SessionState:
    auth_scope: AuthScope = AuthScope.ANONYMOUS
    # None with a persistent scope means "never expires" (older saved logins).
    auth_expiry_ms: Optional[int] = None
    pro: bool = False
    free_project_count: int = 0

    @property
    def authenticated(self) -> bool:
        return self.auth_scope != AuthScope.ANONYMOUS


@dataclass(frozen=True)
class NewProjectDecision:
    allowed: bool
    estimate: Optional[Estimate] = None
    redirect: Optional[str] = None


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def read_session_state(persistent: KeyValueStore, session: KeyValueStore, *, now: int) -> SessionState:
    """
    Rebuild the session value from the two stores.

    An expired persistent login is cleared from the persistent store as part of the read.
    """
    scope = AuthScope.ANONYMOUS
    expiry: Optional[int] = None

    if persistent.get(AUTH_FLAG_KEY) == "true":
        raw_expiry = persistent.get(AUTH_EXPIRY_KEY)
        if not raw_expiry:
            scope = AuthScope.PERSISTENT
        else:
            expiry = _parse_int(raw_expiry)
            if expiry is None or now > expiry:
                persistent.pop(AUTH_FLAG_KEY, None)
                persistent.pop(AUTH_EXPIRY_KEY, None)
                logger.info("auth_expired", expiry_ms=raw_expiry)
                expiry = None
            else:
                scope = AuthScope.PERSISTENT

    if scope == AuthScope.ANONYMOUS and session.get(AUTH_FLAG_KEY) == "true":
        scope = AuthScope.SESSION

    raw_count = persistent.get(PROJECT_COUNT_KEY)
    count = _parse_int(raw_count)
    if count is None or count < 0:
        # A garbled counter never hands out fresh free projects.
        if raw_count:
            logger.warning("project_count_unreadable", value=raw_count)
        count = MAX_FREE_PROJECTS if raw_count else 0
    return SessionState(
        auth_scope=scope,
        auth_expiry_ms=expiry,
        pro=persistent.get(PRO_FLAG_KEY) == "true",
        free_project_count=count,
    )


class SessionGate:
    """
    Authentication + entitlement state, written through to the stores on every transition.

    Build one at startup with `SessionGate.load(...)` and pass it to whatever needs it.
    """

    def __init__(
        self,
        persistent: KeyValueStore,
        session: KeyValueStore,
        *,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._persistent = persistent
        self._session = session
        self._clock = clock
        self._state = read_session_state(persistent, session, now=clock())

    @classmethod
    def load(cls, persistent: KeyValueStore, session: KeyValueStore, *, clock: Callable[[], int] = now_ms) -> "SessionGate":
        return cls(persistent, session, clock=clock)

    @property
    def state(self) -> SessionState:
        return self.refresh()

    def refresh(self) -> SessionState:
        self._state = read_session_state(self._persistent, self._session, now=self._clock())
        return self._state

    # region authentication

    def login(self, email: str, name: Optional[str] = None, *, remember: bool = False) -> SessionState:
        if remember:
            expiry = self._clock() + REMEMBER_ME_MS
            self._persistent[AUTH_FLAG_KEY] = "true"
            self._persistent[AUTH_EXPIRY_KEY] = str(expiry)
            self._session.pop(AUTH_FLAG_KEY, None)
            self._state = replace(self._state, auth_scope=AuthScope.PERSISTENT, auth_expiry_ms=expiry)
        else:
            self._session[AUTH_FLAG_KEY] = "true"
            self._persistent.pop(AUTH_FLAG_KEY, None)
            self._persistent.pop(AUTH_EXPIRY_KEY, None)
            self._state = replace(self._state, auth_scope=AuthScope.SESSION, auth_expiry_ms=None)

        # First sign-up fills in the business name when the profile has none yet.
        if name and name.strip():
            profile = self.user_profile
            if not profile.business_name:
                self.save_user_profile(replace(profile, business_name=name.strip()))

        logger.info("login", email=email, remember=remember)
        return self._state

    def logout(self) -> SessionState:
        self._persistent.pop(AUTH_FLAG_KEY, None)
        self._persistent.pop(AUTH_EXPIRY_KEY, None)
        self._session.pop(AUTH_FLAG_KEY, None)
        self._state = replace(self._state, auth_scope=AuthScope.ANONYMOUS, auth_expiry_ms=None)
        logger.info("logout")
        return self._state

    # endregion authentication

    # region entitlement

    def upgrade(self) -> SessionState:
        """
        Payment succeeded (real or simulated): unlock Pro and keep the user signed in.
        """
        self._persistent[PRO_FLAG_KEY] = "true"
        self._persistent[AUTH_FLAG_KEY] = "true"
        self._persistent.pop(AUTH_EXPIRY_KEY, None)
        self._state = replace(self._state, pro=True, auth_scope=AuthScope.PERSISTENT, auth_expiry_ms=None)
        logger.info("pro_activated")
        return self._state

    def downgrade(self, *, confirmed: bool) -> SessionState:
        if not confirmed:
            return self._state
        self._persistent.pop(PRO_FLAG_KEY, None)
        self._state = replace(self._state, pro=False)
        logger.info("pro_cancelled")
        return self._state

    def handle_payment_redirect(self, status: Optional[str]) -> Optional[str]:
        """
        React to the `payment=` query parameter of a checkout redirect.

        Returns "activated", "payment_failed" or None when there is nothing to do.
        """
        s = (status or "").strip().lower()
        if s == "success":
            self.upgrade()
            return "activated"
        if s in ("error", "cancel"):
            logger.info("payment_not_completed", status=s)
            return "payment_failed"
        return None

    # endregion entitlement

    # region free tier

    def can_create_project(self) -> bool:
        state = self.state
        return state.pro or state.free_project_count < MAX_FREE_PROJECTS

    def remaining_free_projects(self) -> int:
        return max(0, MAX_FREE_PROJECTS - self.state.free_project_count)

    def record_project_created(self) -> SessionState:
        state = self.state
        if state.pro:
            return state
        count = state.free_project_count + 1
        self._persistent[PROJECT_COUNT_KEY] = str(count)
        self._state = replace(state, free_project_count=count)
        logger.info("free_project_created", count=count, limit=MAX_FREE_PROJECTS)
        return self._state

    def request_new_project(self, *, today: Optional[date] = None) -> NewProjectDecision:
        if not self.can_create_project():
            logger.info("project_limit_reached", count=self._state.free_project_count)
            return NewProjectDecision(allowed=False, redirect=UPSELL_VIEW)
        self.record_project_created()
        estimate = new_estimate(self.user_profile, is_pro=self._state.pro, today=today)
        return NewProjectDecision(allowed=True, estimate=estimate)

    # endregion free tier

    # region profile

    @property
    def user_profile(self) -> UserProfile:
        raw = self._persistent.get(USER_PROFILE_KEY)
        if not raw:
            return UserProfile()
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("user_profile_unreadable")
            return UserProfile()
        if not isinstance(data, dict):
            return UserProfile()
        return profile_from_dict(data)

    def save_user_profile(self, profile: UserProfile) -> UserProfile:
        self._persistent[USER_PROFILE_KEY] = json.dumps(profile_to_dict(profile))
        return profile

    # endregion profile
