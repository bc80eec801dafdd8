# ============================================================
# identity.py — Session/identity tracker
# ============================================================
# Listens to the visitor's auth events and keeps the session's
# identity and navigation in step with them:
#   - signed in (or already signed in at start) → onboarding check
#   - signed out → back to home, profile editor closed
#
# The auth subscription is held for exactly as long as the
# tracker runs. Use it as a context manager or pair start/stop.
# ============================================================

import logging
from typing import Any, Dict, Optional

from gateway import SIGNED_IN, SIGNED_OUT
from profiles import OnboardingWizard, ProfileError, needs_onboarding

logger = logging.getLogger(__name__)


class SessionTracker:
    def __init__(self, auth, session, gateway):
        self.auth = auth
        self.session = session
        self.gateway = gateway
        self._subscription = None

    @property
    def running(self) -> bool:
        return self._subscription is not None

    def start(self) -> "SessionTracker":
        if self.running:
            return self
        self._subscription = self.auth.on_auth_state_change(self._on_auth_event)

        result = self.auth.get_session()
        if not result.ok:
            logger.error("❌ Session check failed: %s", result.error)
            return self
        user = _user_of(result.data)
        self.session.set_user(user)
        if user:
            self.check_onboarding(user["id"])
        return self

    def stop(self):
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    def _on_auth_event(self, event: str, auth_session: Optional[Dict[str, Any]]):
        user = _user_of(auth_session)
        self.session.set_user(user)

        if event == SIGNED_IN and user:
            self.check_onboarding(user["id"])
        elif event == SIGNED_OUT:
            self.session.onboarding = None
            self.session.profile_editor_open = False
            self.session.navigate("home")

    def check_onboarding(self, user_id: str) -> bool:
        """Force the setup view if the profile is missing or unfinished."""
        if not self.gateway.configured:
            return False
        try:
            pending = needs_onboarding(self.gateway, user_id)
        except ProfileError as e:
            logger.error("❌ Error checking onboarding: %s", e)
            return False

        if pending:
            logger.info("👋 %s needs onboarding", user_id)
            self.session.onboarding = OnboardingWizard(self.gateway, user_id)
            self.session.navigate("setup")
        return pending


def _user_of(auth_session: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    return auth_session.get("user") if auth_session else None
