# ============================================================
# catalogue.py — Catalogue cache
# ============================================================
# Holds the product list shown in the gallery.
# Starts with the bundled fallback artifacts and swaps in the
# live collection once the backend answers with at least one row.
# A failed or empty fetch keeps whatever is already loaded.
# ============================================================

import copy
import logging
from typing import Any, Dict, Iterator, List, Optional

from constants import ALL_INTENTS, FALLBACK_PRODUCTS

logger = logging.getLogger(__name__)


def normalize_product(record: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Coalesce a raw product row into the canonical shape.
    The customizable field list may arrive as `customizable_fields`
    or `customizableFields`; anything that isn't a list becomes [].
    """
    if not record:
        return None

    product = dict(record)
    fields = product.get("customizable_fields")
    if not isinstance(fields, list):
        fields = product.get("customizableFields")
    if not isinstance(fields, list):
        fields = []
    product.pop("customizableFields", None)
    product["customizable_fields"] = [str(f) for f in fields]
    return product


def _text(product: Dict[str, Any], key: str) -> str:
    return str(product.get(key) or "").lower()


class CatalogueView:
    """
    Filtered view over the catalogue.
    Evaluated lazily; iterating again re-runs the predicates.
    """

    def __init__(self, products: List[Dict[str, Any]], intent: str = ALL_INTENTS, search: str = ""):
        self._products = products
        self.intent = intent or ALL_INTENTS
        self.search = (search or "").lower()

    def matches(self, product: Optional[Dict[str, Any]]) -> bool:
        if not product:
            return False
        matches_intent = self.intent == ALL_INTENTS or product.get("category") == self.intent
        matches_search = (
            self.search in _text(product, "name")
            or self.search in _text(product, "description")
            or self.search in _text(product, "tagline")
        )
        return matches_intent and matches_search

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        return (p for p in self._products if self.matches(p))

    def filter(self, intent: str = ALL_INTENTS, search: str = "") -> "CatalogueView":
        return CatalogueView(list(self), intent, search)

    def __len__(self) -> int:
        return sum(1 for _ in self)


class CatalogueCache:
    def __init__(self, gateway):
        self.gateway = gateway
        self.products: List[Dict[str, Any]] = copy.deepcopy(FALLBACK_PRODUCTS)
        self.live = False
        self.loading = False

    def fetch(self) -> bool:
        """
        Load the live collection ordered by creation time.
        Never raises; returns whether the live collection is showing.
        """
        if not self.gateway.configured:
            logger.info("Backend not configured, showing bundled collection")
            return self.live

        self.loading = True
        try:
            result = self.gateway.table("products").list(order_by="created_at", ascending=True)
            if not result.ok:
                logger.error("❌ Error fetching products: %s", result.error)
                self.live = False
                return self.live

            products = [p for p in (normalize_product(r) for r in result.data or []) if p]
            if products:
                self.products = products
                self.live = True
                logger.info("✅ Loaded %d products from the live collection", len(products))
            else:
                logger.info("Live collection is empty, keeping %d bundled products", len(self.products))
        finally:
            self.loading = False

        return self.live

    def filter(self, intent: str = ALL_INTENTS, search: str = "") -> CatalogueView:
        return CatalogueView(self.products, intent, search)

    def get(self, product_id: str) -> Optional[Dict[str, Any]]:
        for product in self.products:
            if product and str(product.get("id")) == str(product_id):
                return product
        return None
