import pytest

from gateway import INITIAL_SESSION, SIGNED_IN, SIGNED_OUT
from identity import SessionTracker
from session import SessionState
from tests.conftest import FlakyGateway

EMAIL = "ada@fabino.studio"
PASSWORD = "secret-pass"


def make_tracker(gateway, auth=None):
    auth = auth or gateway.auth_client()
    state = SessionState("visitor", auth=auth)
    return auth, state, SessionTracker(auth, state, gateway)


def register(gateway, onboarded=False):
    """Create an account from a separate client and return its user id."""
    user_id = gateway.auth_client().sign_up(EMAIL, PASSWORD).data["user"]["id"]
    if onboarded:
        gateway.table("profiles").update(user_id, {"onboarding_complete": True})
    return user_id


def test_new_identity_is_sent_to_setup(gateway):
    auth, state, tracker = make_tracker(gateway)
    with tracker:
        auth.sign_up(EMAIL, PASSWORD)

        assert state.user["email"] == EMAIL
        assert state.view == "setup"
        assert state.onboarding is not None
        assert state.onboarding.user_id == state.user_id


def test_missing_profile_row_forces_setup(gateway):
    user_id = register(gateway)
    gateway.table("profiles").delete(user_id)

    auth, state, tracker = make_tracker(gateway)
    with tracker:
        auth.sign_in_with_password(EMAIL, PASSWORD)
        assert state.view == "setup"


def test_onboarding_without_profile_row_sticks(gateway):
    user_id = register(gateway)
    gateway.table("profiles").delete(user_id)

    auth, state, tracker = make_tracker(gateway)
    with tracker:
        auth.sign_in_with_password(EMAIL, PASSWORD)
        wizard = state.onboarding
        wizard.update("first_name", "Ada")
        wizard.update("card_number", "4242424242421234")
        assert wizard.submit() is True

        auth.sign_out()
        auth.sign_in_with_password(EMAIL, PASSWORD)
        assert state.view == "home"
        assert state.onboarding is None


def test_completed_onboarding_prevents_redirect(gateway):
    register(gateway, onboarded=True)

    auth, state, tracker = make_tracker(gateway)
    with tracker:
        auth.sign_in_with_password(EMAIL, PASSWORD)
        assert state.view == "home"
        assert state.onboarding is None

        auth.sign_out()
        auth.sign_in_with_password(EMAIL, PASSWORD)
        assert state.view == "home"


def test_existing_session_is_checked_on_start(gateway):
    register(gateway)
    auth = gateway.auth_client()
    auth.sign_in_with_password(EMAIL, PASSWORD)

    _, state, tracker = make_tracker(gateway, auth=auth)
    tracker.start()

    assert state.user["email"] == EMAIL
    assert state.view == "setup"
    tracker.stop()


def test_sign_out_returns_home_and_closes_editor(gateway):
    register(gateway, onboarded=True)
    auth, state, tracker = make_tracker(gateway)
    with tracker:
        auth.sign_in_with_password(EMAIL, PASSWORD)
        state.navigate("admin")
        state.profile_editor_open = True

        auth.sign_out()

        assert state.user is None
        assert state.view == "home"
        assert state.profile_editor_open is False


def test_profile_lookup_failure_leaves_view_alone(gateway):
    register(gateway)
    flaky = FlakyGateway(gateway, {"profiles": {"maybe_single"}})
    auth, state, tracker = make_tracker(flaky, auth=gateway.auth_client())
    with tracker:
        auth.sign_in_with_password(EMAIL, PASSWORD)
        assert state.user is not None
        assert state.view == "home"


def test_subscription_released_on_stop(gateway):
    auth, state, tracker = make_tracker(gateway)
    tracker.start()
    subscription = tracker._subscription
    assert subscription.active

    tracker.stop()
    tracker.stop()

    assert not subscription.active
    auth.sign_up(EMAIL, PASSWORD)
    assert state.user is None


def test_subscription_released_when_block_raises(gateway):
    auth, state, tracker = make_tracker(gateway)
    with pytest.raises(RuntimeError):
        with tracker:
            raise RuntimeError("boom")
    assert not tracker.running


def test_identity_changes_are_published(gateway):
    register(gateway, onboarded=True)
    auth, state, tracker = make_tracker(gateway)
    topics = []
    state.subscribe(lambda topic, s: topics.append(topic))

    with tracker:
        auth.sign_in_with_password(EMAIL, PASSWORD)
        auth.sign_out()

    assert topics.count("identity") == 2


def test_auth_events_delivered_to_listener(gateway):
    auth = gateway.auth_client()
    events = []
    subscription = auth.on_auth_state_change(lambda event, session: events.append(event))

    auth.sign_up(EMAIL, PASSWORD)
    auth.sign_out()
    subscription.unsubscribe()
    auth.sign_in_with_password(EMAIL, PASSWORD)

    assert events == [INITIAL_SESSION, SIGNED_IN, SIGNED_OUT]


def test_auth_rejects_bad_credentials(gateway):
    register(gateway)
    auth = gateway.auth_client()

    assert auth.sign_in_with_password(EMAIL, "wrong").error.code == "invalid_credentials"
    assert auth.sign_up(EMAIL, PASSWORD).error.code == "user_already_exists"
    assert auth.sign_up("new@fabino.studio", "123").error.code == "weak_password"
    assert auth.user is None
