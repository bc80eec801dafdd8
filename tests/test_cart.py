import pytest

from constants import DEFAULT_COLOR, STANDARD_EDITION_TEXT
import session as session_module
from identity import SessionTracker
from session import CartLedger, CustomizationState, SessionState

VESSEL = {"id": "1", "name": "The Echo Vessel", "price": 145, "image": "vessel.jpg"}
TOPO = {"id": "2", "name": "Celestial Topography", "price": 110, "image": "topo.jpg"}


def test_subtotal_of_two_items():
    cart = CartLedger()
    cart.add(CustomizationState(text="For Mia"), VESSEL)
    cart.add(CustomizationState(), TOPO)
    assert cart.subtotal() == 255


def test_same_product_twice_makes_two_lines():
    cart = CartLedger()
    a = cart.add(CustomizationState(text="A"), VESSEL)
    b = cart.add(CustomizationState(text="A"), VESSEL)

    assert cart.count() == 2
    assert a.cart_id != b.cart_id
    assert a.cart_id.startswith("1-")


def test_item_snapshots_product_and_customization():
    cart = CartLedger()
    item = cart.add(CustomizationState(text="Hi", color="#D4AF37", options={"Coordinates": "0,0"}), TOPO)

    assert (item.name, item.price, item.image, item.quantity) == ("Celestial Topography", 110, "topo.jpg", 1)
    assert (item.text, item.color, item.options) == ("Hi", "#D4AF37", {"Coordinates": "0,0"})


def test_add_standard_uses_default_edition():
    cart = CartLedger()
    item = cart.add_standard(VESSEL)
    assert item.text == STANDARD_EDITION_TEXT
    assert item.color == DEFAULT_COLOR
    assert item.options == {}


def test_remove_and_unknown_id():
    cart = CartLedger()
    keep = cart.add(CustomizationState(), VESSEL)
    drop = cart.add(CustomizationState(), TOPO)

    cart.remove("no-such-id")
    assert cart.count() == 2

    cart.remove(drop.cart_id)
    assert [i.cart_id for i in cart.items()] == [keep.cart_id]
    assert cart.subtotal() == 145


def test_subtotal_tracks_any_sequence():
    cart = CartLedger()
    products = [VESSEL, TOPO, {"id": "9", "name": "Free", "price": None, "image": ""}]
    added = []
    for n in range(9):
        added.append(cart.add(CustomizationState(), products[n % 3]))
        if n % 4 == 3:
            cart.remove(added.pop(0).cart_id)
        expected = sum((i.price or 0) * i.quantity for i in cart.items())
        assert cart.subtotal() == expected


def test_clear():
    cart = CartLedger()
    cart.add(CustomizationState(), VESSEL)
    cart.clear()
    assert cart.count() == 0
    assert cart.subtotal() == 0


def test_unknown_color_rejected():
    with pytest.raises(ValueError):
        CustomizationState(color="#FF00FF")


def test_session_observers_see_cart_changes():
    state = SessionState("s1")
    seen = []
    unsubscribe = state.subscribe(lambda topic, s: seen.append((topic, s.cart.count())))

    item = state.cart.add(CustomizationState(), VESSEL)
    state.cart.remove(item.cart_id)
    unsubscribe()
    state.cart.add(CustomizationState(), VESSEL)

    assert seen == [("cart", 1), ("cart", 0)]


def test_failing_observer_does_not_block_others():
    state = SessionState("s1")
    seen = []

    def broken(topic, s):
        raise RuntimeError("observer bug")

    state.subscribe(broken)
    state.subscribe(lambda topic, s: seen.append(topic))
    state.cart.add(CustomizationState(), VESSEL)
    assert seen == ["cart"]


def test_idle_sessions_are_evicted(gateway):
    stale = session_module.create_session("stale", auth=gateway.auth_client())
    stale.tracker = SessionTracker(stale.auth, stale, gateway).start()
    fresh = session_module.create_session("fresh", auth=gateway.auth_client())

    stale.last_seen = 100.0
    fresh.last_seen = 1000.0

    assert session_module.evict_idle_sessions(300, now=1100.0) == 1
    assert session_module.get_session("stale") is None
    assert session_module.get_session("fresh") is fresh
    assert not stale.tracker.running


def test_lookup_keeps_session_alive(gateway):
    state = session_module.create_session("visitor", auth=gateway.auth_client())
    state.last_seen = 0.0

    session_module.get_session("visitor")

    assert state.last_seen > 0.0
    assert session_module.evict_idle_sessions(60) == 0
