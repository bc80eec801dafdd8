# ============================================================
# checkout.py — Checkout sequencer
# ============================================================
# Four steps, strictly forward except payment → shipping:
#
#   shipping → payment → processing → success
#
# Entering processing writes the order:
#   1. insert the order header (status "processing")
#   2. insert one order_items row per cart line
# If step 2 fails the header is deleted again; if that delete
# fails too the header is marked "incomplete" for reconciliation.
# Nothing is retried.
#
# The visitor always lands on success and the ordered lines leave
# the cart (lines added meanwhile stay), but `outcome` records
# whether the order actually reached the backend:
# synced | local_only | failed.
# ============================================================

import asyncio
import logging
from typing import Any, Dict, List, Optional

import config

logger = logging.getLogger(__name__)

SHIPPING = "shipping"
PAYMENT = "payment"
PROCESSING = "processing"
SUCCESS = "success"

OUTCOME_SYNCED = "synced"
OUTCOME_LOCAL_ONLY = "local_only"
OUTCOME_FAILED = "failed"

SHIPPING_FIELDS = ("first_name", "last_name", "address", "city", "postal_code")
REQUIRED_FIELDS = ("first_name", "last_name", "address")

INITIAL_LOADING_TEXT = "Verifying Transaction..."
LOADING_SEQUENCE = [
    "Securing Computational Power...",
    "Synchronizing with the Fabino Vault...",
    "Finalizing Print Sequence...",
]
FAILURE_LOADING_TEXT = "Network error. Saving to local session..."


class CheckoutError(Exception):
    """A checkout action that isn't allowed in the current step."""


class CheckoutSequencer:
    def __init__(self, session, gateway, delays: Optional[List[float]] = None,
                 failure_delay: Optional[float] = None, sleep=asyncio.sleep):
        self.session = session
        self.gateway = gateway
        self.delays = list(config.CHECKOUT_STEP_DELAYS if delays is None else delays)
        self.failure_delay = config.CHECKOUT_FAILURE_DELAY if failure_delay is None else failure_delay
        self._sleep = sleep
        self.reset()

    def reset(self):
        self.step = SHIPPING
        self.form: Dict[str, str] = {name: "" for name in SHIPPING_FIELDS}
        self.loading_text = INITIAL_LOADING_TEXT
        self.outcome: Optional[str] = None
        self.error: Optional[str] = None
        self.order_id: Optional[str] = None
        self.total: Optional[float] = None

    # ── Shipping form ────────────────────────────────────────

    def update(self, field: str, value: str):
        if field not in SHIPPING_FIELDS:
            raise CheckoutError(f"Unknown shipping field '{field}'")
        if self.step not in (SHIPPING, PAYMENT):
            raise CheckoutError(f"Shipping details can't be changed during {self.step}")
        self.form[field] = (value or "").strip()

    def shipping_ready(self) -> bool:
        return all(self.form[name] for name in REQUIRED_FIELDS)

    def continue_to_payment(self):
        if self.step != SHIPPING:
            raise CheckoutError(f"Can't continue to payment from {self.step}")
        if not self.shipping_ready():
            raise CheckoutError("First name, last name and address are required")
        self.step = PAYMENT

    def back(self):
        if self.step != PAYMENT:
            raise CheckoutError(f"Can't go back from {self.step}")
        self.step = SHIPPING

    # ── Processing ───────────────────────────────────────────

    async def complete(self) -> Dict[str, Any]:
        """Submit the order. A repeat call while processing is ignored."""
        if self.step == PROCESSING:
            logger.warning("⚠️ checkout already processing for session %s", self.session.session_id)
            return self.to_dict()
        if self.step != PAYMENT:
            raise CheckoutError(f"Can't complete purchase from {self.step}")
        items = self.session.cart.items()
        if not items:
            raise CheckoutError("Your cart is empty")

        self.step = PROCESSING
        self.loading_text = INITIAL_LOADING_TEXT
        self.total = self.session.cart.subtotal()

        if self.gateway is None or not self.gateway.configured:
            self.outcome = OUTCOME_LOCAL_ONLY
            error = None
        else:
            error = await asyncio.to_thread(self._write_order, items)
            self.outcome = OUTCOME_FAILED if error else OUTCOME_SYNCED

        if error:
            self.error = str(error)
            logger.error("❌ Checkout Error: %s", error)
            self.loading_text = FAILURE_LOADING_TEXT
            await self._sleep(self.failure_delay)
        else:
            for text, delay in zip(LOADING_SEQUENCE, self.delays):
                self.loading_text = text
                await self._sleep(delay)

        self.step = SUCCESS
        self.session.cart.remove_many(item.cart_id for item in items)
        logger.info("✅ checkout finished (%s) order=%s", self.outcome, self.order_id)
        return self.to_dict()

    def _write_order(self, items) -> Optional[Exception]:
        orders = self.gateway.table("orders")
        header = orders.insert({
            "first_name": self.form["first_name"],
            "last_name": self.form["last_name"],
            "address": self.form["address"],
            "city": self.form["city"],
            "postal_code": self.form["postal_code"],
            "total": self.total,
            "status": "processing",
            "user_id": self.session.user_id,
        })
        if not header.ok:
            return header.error

        order_id = header.data["id"]
        lines = self.gateway.table("order_items").insert_many([
            {
                "order_id": order_id,
                "product_id": item.product_id,
                "name": item.name,
                "customization_text": item.text,
                "customization_color": item.color,
                "quantity": item.quantity,
                "price": item.price,
            }
            for item in items
        ])
        if lines.ok:
            self.order_id = order_id
            return None

        self._compensate(orders, order_id)
        return lines.error

    def _compensate(self, orders, order_id: str):
        undo = orders.delete(order_id)
        if undo.ok:
            logger.warning("⚠️ removed order %s after its items failed to save", order_id)
            return
        marked = orders.update(order_id, {"status": "incomplete"})
        if marked.ok:
            logger.warning("⚠️ order %s marked incomplete for reconciliation", order_id)
        else:
            logger.error("❌ order %s left orphaned: %s", order_id, marked.error)

    # ── Success ──────────────────────────────────────────────

    def exit(self):
        """Return to gallery."""
        if self.step != SUCCESS:
            raise CheckoutError(f"Nothing to exit from {self.step}")
        self.reset()
        self.session.navigate("home")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "form": dict(self.form),
            "canContinue": self.shipping_ready(),
            "loadingText": self.loading_text if self.step == PROCESSING else None,
            "outcome": self.outcome,
            "error": self.error,
            "orderId": self.order_id,
            "total": self.total if self.total is not None else self.session.cart.subtotal(),
        }
