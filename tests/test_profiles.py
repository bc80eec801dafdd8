import pytest

from profiles import OnboardingWizard, ProfileError, fetch_profile, needs_onboarding, profile_form, save_profile
from tests.conftest import FlakyGateway


@pytest.fixture
def user_id(gateway):
    return gateway.auth_client().sign_up("ada@fabino.studio", "secret-pass").data["user"]["id"]


def fill(wizard):
    for field, value in {
        "first_name": "Ada", "last_name": "Lovelace", "address": "12 St James's Square",
        "city": "London", "postal_code": "SW1Y 4JH", "phone": "020 7946 0000",
        "card_number": "4242 4242 4242 1234", "expiry": "12/30", "cvc": "123",
    }.items():
        wizard.update(field, value)


def test_sign_up_provisions_empty_profile(gateway, user_id):
    profile = fetch_profile(gateway, user_id)
    assert profile["onboarding_complete"] is False
    assert needs_onboarding(gateway, user_id)


def test_wizard_steps_are_bounded(gateway, user_id):
    wizard = OnboardingWizard(gateway, user_id)
    wizard.back()
    assert wizard.step == 1
    for _ in range(5):
        wizard.next()
    assert wizard.step == 3
    wizard.back()
    assert wizard.step == 2


def test_wizard_submit_completes_onboarding(gateway, user_id):
    wizard = OnboardingWizard(gateway, user_id)
    fill(wizard)

    assert wizard.submit() is True
    assert wizard.completed

    profile = fetch_profile(gateway, user_id)
    assert profile["onboarding_complete"] is True
    assert profile["payment_method_last4"] == "1234"
    assert profile["city"] == "London"
    assert "card_number" not in profile
    assert not needs_onboarding(gateway, user_id)


def test_wizard_completes_even_when_save_fails(gateway, user_id):
    wizard = OnboardingWizard(FlakyGateway(gateway, {"profiles": {"upsert"}}), user_id)
    fill(wizard)

    assert wizard.submit() is False
    assert wizard.completed
    assert wizard.loading is False


def test_card_display_groups_digits(gateway, user_id):
    wizard = OnboardingWizard(gateway, user_id)
    assert wizard.card_display == "•••• •••• •••• ••••"
    wizard.update("card_number", "4242424242421234")
    assert wizard.card_display == "4242 4242 4242 1234"


def test_unknown_wizard_field(gateway, user_id):
    with pytest.raises(ValueError):
        OnboardingWizard(gateway, user_id).update("ssn", "nope")


def test_save_profile_upserts_missing_row(gateway, user_id):
    gateway.table("profiles").delete(user_id)

    save_profile(gateway, user_id, {"first_name": "Ada", "last_name": "Lovelace", "city": "London"})

    form = profile_form(fetch_profile(gateway, user_id))
    assert form["first_name"] == "Ada"
    assert form["address"] == ""


def test_save_profile_keeps_onboarding_flag(gateway, user_id):
    gateway.table("profiles").update(user_id, {"onboarding_complete": True})
    save_profile(gateway, user_id, {"first_name": "Ada"})
    assert fetch_profile(gateway, user_id)["onboarding_complete"] is True


def test_save_profile_errors(gateway, user_id):
    with pytest.raises(ProfileError):
        save_profile(gateway, user_id, {"onboarding_complete": True})
    with pytest.raises(ProfileError):
        save_profile(FlakyGateway(gateway, {"profiles": {"upsert"}}), user_id, {"first_name": "Ada"})


def test_profile_form_blanks():
    assert profile_form(None) == {
        "first_name": "", "last_name": "", "address": "", "city": "", "postal_code": "", "phone": "",
    }
