# ============================================================
# profiles.py — Profile editing and first-time onboarding
# ============================================================

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("first_name", "last_name", "address", "city", "postal_code", "phone")
PAYMENT_FIELDS = ("card_number", "expiry", "cvc")

ONBOARDING_STEPS = 3  # 1 shipping details, 2 payment, 3 confirm


class ProfileError(Exception):
    """Raised when a profile can't be read or saved."""


def fetch_profile(gateway, user_id: str) -> Optional[Dict[str, Any]]:
    """Return the profile row, or None if the user has none."""
    result = gateway.table("profiles").maybe_single(user_id)
    if not result.ok:
        raise ProfileError(result.error.message)
    return result.data


def needs_onboarding(gateway, user_id: str) -> bool:
    profile = fetch_profile(gateway, user_id)
    return not profile or not profile.get("onboarding_complete")


def profile_form(profile: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Editable fields of a profile, blank where unset."""
    profile = profile or {}
    return {name: profile.get(name) or "" for name in PROFILE_FIELDS}


def save_profile(gateway, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Upsert the editable profile fields.
    Upsert rather than update so a missing row gets created.
    """
    unknown = set(fields) - set(PROFILE_FIELDS)
    if unknown:
        raise ProfileError(f"Unknown profile fields: {', '.join(sorted(unknown))}")

    record = {name: (fields.get(name) or "").strip() for name in PROFILE_FIELDS}
    record["id"] = user_id
    record["updated_at"] = datetime.now(timezone.utc)

    result = gateway.table("profiles").upsert(record)
    if not result.ok:
        logger.error("❌ Error updating profile %s: %s", user_id, result.error)
        raise ProfileError(result.error.message)
    logger.info("✅ profile %s updated", user_id)
    return result.data


class OnboardingWizard:
    """
    Three-step account setup shown to new identities.
    Only the last four card digits ever leave the wizard.
    """

    def __init__(self, gateway, user_id: str):
        self.gateway = gateway
        self.user_id = user_id
        self.step = 1
        self.loading = False
        self.completed = False
        self.form: Dict[str, str] = {name: "" for name in PROFILE_FIELDS + PAYMENT_FIELDS}

    def update(self, field: str, value: str):
        if field not in self.form:
            raise ValueError(f"Unknown onboarding field '{field}'")
        self.form[field] = value or ""

    def next(self):
        self.step = min(self.step + 1, ONBOARDING_STEPS)

    def back(self):
        self.step = max(self.step - 1, 1)

    @property
    def card_display(self) -> str:
        digits = self.form["card_number"].replace(" ", "")
        if not digits:
            return "•••• •••• •••• ••••"
        return " ".join(digits[i:i + 4] for i in range(0, len(digits), 4))

    def submit(self) -> bool:
        """
        Save the profile and mark onboarding complete.
        Returns whether the save reached the backend; onboarding
        completes either way.
        """
        self.loading = True
        changes = {"id": self.user_id}
        changes.update({name: self.form[name].strip() for name in PROFILE_FIELDS})
        changes["payment_method_last4"] = self.form["card_number"].replace(" ", "")[-4:]
        changes["onboarding_complete"] = True
        changes["updated_at"] = datetime.now(timezone.utc)

        try:
            result = self.gateway.table("profiles").upsert(changes)
            saved = result.ok
            if not saved:
                logger.error("❌ Error saving profile: %s", result.error)
        finally:
            self.loading = False

        self.completed = True
        return saved

    def to_dict(self) -> Dict[str, Any]:
        form = {name: self.form[name] for name in PROFILE_FIELDS}
        return {
            "step": self.step,
            "steps": ONBOARDING_STEPS,
            "progress": self.step / ONBOARDING_STEPS,
            "form": form,
            "card": self.card_display,
            "loading": self.loading,
            "completed": self.completed,
        }
