# ============================================================
# session.py — Session state manager
# ============================================================
# Each visitor (cookie) gets a SessionState instance.
# This holds:
#   - cart: ordered ledger of customized line items
#   - auth: the visitor's AuthClient and current user
#   - view: home | product | setup | admin
#   - profile_editor_open
#   - checkout / onboarding flows in progress
#
# SessionState is the single owner of this data. Anything that
# needs to react to cart or identity changes subscribes to it.
#
# All in-memory. Lost when the session is destroyed, which happens
# once it has been idle for SESSION_IDLE_TIMEOUT.
# ============================================================

import logging
import time
from dataclasses import dataclass, field, asdict
from typing import Any, Callable, Dict, List, Optional

from constants import DEFAULT_COLOR, PALETTE, STANDARD_EDITION_TEXT

logger = logging.getLogger(__name__)

VIEWS = ("home", "product", "setup", "admin")


@dataclass
class CustomizationState:
    """The visitor's choices on a product page."""
    text: str = ""
    color: str = DEFAULT_COLOR  # one of PALETTE
    options: Dict[str, str] = field(default_factory=dict)  # {"Engraved Date": "2024-06-01"}

    def __post_init__(self):
        if self.color not in PALETTE:
            raise ValueError(f"Unknown color '{self.color}'")


@dataclass
class CartItem:
    """One line in the cart."""
    cart_id: str
    product_id: str
    name: str  # snapshot of product name
    price: float  # snapshot price at time of adding
    image: str
    text: str = ""
    color: str = DEFAULT_COLOR
    options: Dict[str, str] = field(default_factory=dict)
    quantity: int = 1

    def to_dict(self) -> dict:
        return asdict(self)


class CartLedger:
    """
    Ordered list of cart items.
    No merging: adding the same product twice gives two lines.
    """

    def __init__(self, on_change: Optional[Callable[[], None]] = None):
        self._items: List[CartItem] = []
        self._on_change = on_change

    def _mint_id(self, product_id: str) -> str:
        stamp = int(time.time() * 1000)
        cart_id = f"{product_id}-{stamp}"
        # Same product twice in one millisecond
        suffix = 1
        while any(item.cart_id == cart_id for item in self._items):
            cart_id = f"{product_id}-{stamp}-{suffix}"
            suffix += 1
        return cart_id

    def _changed(self):
        if self._on_change:
            self._on_change()

    def add(self, customization: CustomizationState, product: Dict[str, Any]) -> CartItem:
        item = CartItem(
            cart_id=self._mint_id(product["id"]),
            product_id=product["id"],
            name=product.get("name", ""),
            price=product.get("price") or 0,
            image=product.get("image", ""),
            text=customization.text,
            color=customization.color,
            options=dict(customization.options),
            quantity=1,
        )
        self._items.append(item)
        logger.info("🛒 added %s (%s)", item.name, item.cart_id)
        self._changed()
        return item

    def add_standard(self, product: Dict[str, Any]) -> CartItem:
        """Used by "buy now": no customization step."""
        return self.add(CustomizationState(text=STANDARD_EDITION_TEXT, color=DEFAULT_COLOR), product)

    def remove(self, cart_id: str):
        before = len(self._items)
        self._items = [item for item in self._items if item.cart_id != cart_id]
        if len(self._items) != before:
            self._changed()

    def remove_many(self, cart_ids):
        """Drop the given lines in one change; unknown ids are ignored."""
        doomed = set(cart_ids)
        before = len(self._items)
        self._items = [item for item in self._items if item.cart_id not in doomed]
        if len(self._items) != before:
            self._changed()

    def clear(self):
        self._items = []
        self._changed()

    def items(self) -> List[CartItem]:
        return list(self._items)

    def count(self) -> int:
        return len(self._items)

    def subtotal(self) -> float:
        return sum((item.price or 0) * (item.quantity or 0) for item in self._items)

    def __len__(self):
        return len(self._items)


class SessionState:
    """
    Per-visitor session state.
    Created on the first request, evicted once idle too long.
    """

    def __init__(self, session_id: str, auth=None):
        self.session_id = session_id
        self.auth = auth
        self.user: Optional[Dict[str, Any]] = None
        self.view = "home"
        self.selected_product_id: Optional[str] = None
        self.profile_editor_open = False
        self.cart = CartLedger(on_change=lambda: self._notify("cart"))
        self.checkout = None  # CheckoutSequencer, created on demand
        self.onboarding = None  # OnboardingWizard while in setup
        self.tracker = None  # SessionTracker bound to self.auth
        self.last_seen = time.monotonic()
        self._observers: List[Callable[[str, "SessionState"], None]] = []

    # ── Observers ────────────────────────────────────────────

    def subscribe(self, callback: Callable[[str, "SessionState"], None]) -> Callable[[], None]:
        """Register callback(topic, state); returns an unsubscribe function."""
        self._observers.append(callback)

        def unsubscribe():
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _notify(self, topic: str):
        for callback in list(self._observers):
            try:
                callback(topic, self)
            except Exception:
                logger.exception("❌ session observer failed on %s", topic)

    # ── Identity / navigation ────────────────────────────────

    def set_user(self, user: Optional[Dict[str, Any]]):
        if user == self.user:
            return
        self.user = user
        self._notify("identity")

    @property
    def user_id(self) -> Optional[str]:
        return self.user["id"] if self.user else None

    def navigate(self, view: str, product_id: Optional[str] = None):
        if view not in VIEWS:
            raise ValueError(f"Unknown view '{view}'")
        self.view = view
        self.selected_product_id = product_id if view == "product" else None
        self._notify("view")

    # ── Serialization ────────────────────────────────────────

    def cart_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.cart.items()],
            "count": self.cart.count(),
            "subtotal": self.cart.subtotal(),
        }

    def view_dict(self) -> dict:
        return {
            "view": self.view,
            "productId": self.selected_product_id,
            "profileEditorOpen": self.profile_editor_open,
            "user": self.user,
        }


# ── Session registry (global, in-memory) ────────────────────
# Maps session_id → SessionState
_sessions: Dict[str, SessionState] = {}


def create_session(session_id: str, auth=None) -> SessionState:
    """Create a new session for a visitor."""
    session = SessionState(session_id, auth=auth)
    _sessions[session_id] = session
    return session


def get_session(session_id: str) -> Optional[SessionState]:
    """Get an existing session and mark it as seen."""
    session = _sessions.get(session_id)
    if session is not None:
        session.last_seen = time.monotonic()
    return session


def destroy_session(session_id: str):
    """Destroy a session and release its auth subscription."""
    session = _sessions.pop(session_id, None)
    if session is not None and session.tracker is not None:
        session.tracker.stop()


def evict_idle_sessions(max_idle: float, now: Optional[float] = None) -> int:
    """Destroy sessions not seen for max_idle seconds. Returns how many went."""
    now = time.monotonic() if now is None else now
    idle = [sid for sid, s in list(_sessions.items()) if now - s.last_seen > max_idle]
    for session_id in idle:
        destroy_session(session_id)
    if idle:
        logger.info("🧹 evicted %d idle sessions", len(idle))
    return len(idle)


def session_count() -> int:
    return len(_sessions)


def destroy_all_sessions():
    for session_id in list(_sessions):
        destroy_session(session_id)
