from catalogue import CatalogueCache, CatalogueView, normalize_product
from constants import FALLBACK_PRODUCTS
from tests.conftest import FlakyGateway, seed_products


LIVE = [
    {"name": "Orbit Lamp", "tagline": "Night sky", "description": "A lamp", "price": 90,
     "category": "Birthday", "customizable_fields": ["Star Date"]},
    {"name": "Vow Ring Box", "tagline": "Keep it close", "description": "Engraved box", "price": 70,
     "category": "Anniversary", "customizable_fields": []},
]


def test_starts_with_fallback(gateway):
    cache = CatalogueCache(gateway)
    assert [p["id"] for p in cache.products] == ["1", "2", "3", "4"]
    assert cache.live is False


def test_empty_fetch_keeps_fallback(gateway):
    cache = CatalogueCache(gateway)

    assert cache.fetch() is False
    assert cache.products == FALLBACK_PRODUCTS
    assert len(cache.products) == 4
    assert cache.live is False


def test_fetch_swaps_in_live_collection(gateway):
    seed_products(gateway, LIVE)
    cache = CatalogueCache(gateway)

    assert cache.fetch() is True
    assert [p["name"] for p in cache.products] == ["Orbit Lamp", "Vow Ring Box"]
    assert cache.products[0]["customizable_fields"] == ["Star Date"]


def test_failed_fetch_keeps_current_list(gateway):
    cache = CatalogueCache(FlakyGateway(gateway, {"products": {"list"}}))

    assert cache.fetch() is False
    assert cache.products == FALLBACK_PRODUCTS
    assert cache.loading is False


def test_unconfigured_backend_is_not_queried(gateway):
    seed_products(gateway, LIVE)
    gateway.configured = False
    cache = CatalogueCache(gateway)

    assert cache.fetch() is False
    assert len(cache.products) == 4


def test_normalize_coalesces_field_names():
    assert normalize_product({"id": "a", "customizableFields": ["Date"]})["customizable_fields"] == ["Date"]
    assert normalize_product({"id": "a", "customizable_fields": ["Audio"], "customizableFields": ["x"]})[
        "customizable_fields"] == ["Audio"]
    assert normalize_product({"id": "a", "customizable_fields": None})["customizable_fields"] == []
    assert "customizableFields" not in normalize_product({"id": "a", "customizableFields": "bad"})
    assert normalize_product(None) is None


def test_filter_all_returns_everything_in_order(gateway):
    cache = CatalogueCache(gateway)
    assert list(cache.filter("All", "")) == cache.products


def test_filter_by_intent_and_search(gateway):
    cache = CatalogueCache(gateway)

    assert [p["id"] for p in cache.filter("Birthday")] == ["2"]
    assert [p["id"] for p in cache.filter("All", "SONIC")] == ["1"]
    assert [p["id"] for p in cache.filter("All", "photograph")] == ["3"]
    assert list(cache.filter("Surprise", "sonic")) == []


def test_filter_is_idempotent(gateway):
    cache = CatalogueCache(gateway)
    for search in ("", "3d", "lunar", "nothing-matches"):
        once = cache.filter("All", search)
        twice = once.filter("All", search)
        assert list(twice) == list(once)


def test_view_is_lazy_and_restartable():
    products = [{"name": "A", "category": "Birthday"}]
    view = CatalogueView(products, "All", "")
    assert len(list(view)) == 1
    products.append({"name": "B", "category": "Birthday"})
    assert [p["name"] for p in view] == ["A", "B"]
    assert [p["name"] for p in view] == ["A", "B"]


def test_missing_fields_do_not_crash():
    view = CatalogueView([{"id": "x"}, None, {"id": "y", "name": None, "tagline": "Gift"}], "All", "gift")
    assert [p["id"] for p in view] == ["y"]


def test_get(gateway):
    cache = CatalogueCache(gateway)
    assert cache.get("3")["name"] == "The Lithos Pillar"
    assert cache.get(3)["name"] == "The Lithos Pillar"
    assert cache.get("missing") is None
