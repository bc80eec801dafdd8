import os
import tempfile

# Must be set before config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STORAGE_DIR"] = tempfile.mkdtemp(prefix="fabino-storage-")
os.environ["BACKEND_ENABLED"] = "1"
os.environ["CHECKOUT_STEP_DELAYS"] = "0,0,0"
os.environ["CHECKOUT_FAILURE_DELAY"] = "0"
os.environ["MUSE_API_KEY"] = ""

from datetime import datetime, timedelta

import pytest

import session as session_module
from database import Base, engine, init_db
from gateway import GatewayError, Result, create_gateway


@pytest.fixture(autouse=True)
def fresh_db():
    init_db()
    yield
    session_module.destroy_all_sessions()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def gateway(tmp_path):
    return create_gateway(storage_dir=str(tmp_path / "storage"), configured=True)


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    import main

    with TestClient(main.app) as c:
        yield c


def seed_products(gateway, products):
    """Insert products with increasing created_at so ordering is stable."""
    start = datetime(2024, 1, 1)
    rows = []
    for i, product in enumerate(products):
        record = {"created_at": start + timedelta(minutes=i), **product}
        result = gateway.table("products").insert(record)
        assert result.ok, result.error
        rows.append(result.data)
    return rows


class FailingTable:
    """Wraps a Table and fails the named actions."""

    def __init__(self, table, failing):
        self._table = table
        self._failing = set(failing)

    def __getattr__(self, action):
        if action in self._failing:
            return lambda *args, **kwargs: Result(error=GatewayError(f"{action} refused"))
        return getattr(self._table, action)


class FlakyGateway:
    """A gateway whose tables fail on demand: {"orders": {"insert"}}."""

    def __init__(self, gateway, failures):
        self._gateway = gateway
        self.failures = failures
        self.configured = True
        self.storage = gateway.storage

    def table(self, name):
        return FailingTable(self._gateway.table(name), self.failures.get(name, ()))

    def auth_client(self):
        return self._gateway.auth_client()
