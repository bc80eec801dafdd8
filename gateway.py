# ============================================================
# gateway.py — Remote Data Gateway
# ============================================================
# Thin record-oriented access to the hosted backend:
#   - tables: products, profiles, orders, order_items
#   - auth: sign up / sign in / sign out + change notifications
#   - storage: upload-by-path and public URL lookup
#
# Nothing here raises for a remote failure. Every call returns a
# Result carrying either data or an error, and callers decide how
# to degrade.
# ============================================================

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from passlib.context import CryptContext
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from models import Product, Profile, Order, OrderItem, User

logger = logging.getLogger(__name__)

password_ctx = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

TABLES = {
    "products": Product,
    "profiles": Profile,
    "orders": Order,
    "order_items": OrderItem,
}


class GatewayError(Exception):
    """A failure reported by the backend (database, auth or storage)."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class StorageErrorKind(str, enum.Enum):
    BUCKET_NOT_FOUND = "bucket_not_found"
    POLICY = "policy"
    CONFLICT = "conflict"
    UNKNOWN = "unknown"


class StorageError(GatewayError):
    def __init__(self, message: str, kind: StorageErrorKind = StorageErrorKind.UNKNOWN):
        super().__init__(message, code=kind.value)
        self.kind = kind


@dataclass
class Result:
    """Holds either `data` or `error`, never both."""
    data: Any = None
    error: Optional[GatewayError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def to_record(row) -> Dict[str, Any]:
    """Serialize an ORM row to a plain dict; datetimes become ISO strings."""
    record = {}
    for column in inspect(row).mapper.column_attrs:
        value = getattr(row, column.key)
        if isinstance(value, datetime):
            value = value.replace(tzinfo=value.tzinfo or timezone.utc).isoformat()
        record[column.key] = value
    return record


# ============================================================
# Tables
# ============================================================

class Table:
    """CRUD over one named collection."""

    def __init__(self, name: str, model, session_factory):
        self.name = name
        self.model = model
        self._session_factory = session_factory

    def _run(self, action: str, fn) -> Result:
        db = self._session_factory()
        try:
            return Result(data=fn(db))
        except (SQLAlchemyError, TypeError, ValueError) as e:
            db.rollback()
            logger.error("❌ %s.%s failed: %s", self.name, action, e)
            return Result(error=GatewayError(f"{self.name}.{action} failed: {e}"))
        finally:
            db.close()

    def list(self, order_by: Optional[str] = None, ascending: bool = True, **filters) -> Result:
        def fn(db):
            q = db.query(self.model).filter_by(**filters)
            if order_by:
                column = getattr(self.model, order_by)
                q = q.order_by(column.asc() if ascending else column.desc())
            return [to_record(row) for row in q.all()]

        return self._run("list", fn)

    def maybe_single(self, id) -> Result:
        """Fetch one row by id; data is None when there is no such row."""
        def fn(db):
            row = db.get(self.model, id)
            return to_record(row) if row is not None else None

        return self._run("maybe_single", fn)

    def insert(self, record: Dict[str, Any]) -> Result:
        def fn(db):
            row = self.model(**record)
            db.add(row)
            db.commit()
            db.refresh(row)
            return to_record(row)

        return self._run("insert", fn)

    def insert_many(self, records: List[Dict[str, Any]]) -> Result:
        def fn(db):
            rows = [self.model(**record) for record in records]
            db.add_all(rows)
            db.commit()
            return [to_record(row) for row in rows]

        return self._run("insert", fn)

    def update(self, id, changes: Dict[str, Any]) -> Result:
        """Update one row. data is None when no row matched."""
        def fn(db):
            row = db.get(self.model, id)
            if row is None:
                return None
            for key, value in changes.items():
                if not hasattr(self.model, key):
                    raise ValueError(f"Unknown column '{key}'")
                setattr(row, key, value)
            db.commit()
            db.refresh(row)
            return to_record(row)

        return self._run("update", fn)

    def upsert(self, record: Dict[str, Any]) -> Result:
        def fn(db):
            row = db.merge(self.model(**record))
            db.commit()
            db.refresh(row)
            return to_record(row)

        return self._run("upsert", fn)

    def delete(self, id) -> Result:
        def fn(db):
            row = db.get(self.model, id)
            if row is not None:
                db.delete(row)
                db.commit()
            return None

        return self._run("delete", fn)


# ============================================================
# Storage
# ============================================================

class Bucket:
    def __init__(self, name: str, root: Path, public_url: str):
        self.name = name
        self.root = root
        self.public_url = public_url.rstrip("/")

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root.resolve() not in target.parents:
            raise StorageError(f"new row violates storage policy for path '{path}'", StorageErrorKind.POLICY)
        return target

    def upload(self, path: str, data: bytes, content_type: str = "application/octet-stream",
               upsert: bool = False) -> Result:
        if not self.root.is_dir():
            return Result(error=StorageError("Bucket not found", StorageErrorKind.BUCKET_NOT_FOUND))
        try:
            target = self._resolve(path)
            if target.exists() and not upsert:
                raise StorageError(f"The resource already exists: {path}", StorageErrorKind.CONFLICT)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except StorageError as e:
            logger.error("❌ upload to %s/%s rejected: %s", self.name, path, e)
            return Result(error=e)
        except OSError as e:
            logger.error("❌ upload to %s/%s failed: %s", self.name, path, e)
            return Result(error=StorageError(str(e)))

        logger.info("📦 stored %s/%s (%s, %d bytes)", self.name, path, content_type, len(data))
        return Result(data={"path": path, "bucket": self.name})

    def get_public_url(self, path: str) -> str:
        return f"{self.public_url}/{self.name}/{path}"

    def local_path(self, path: str) -> Optional[Path]:
        """Filesystem location of a stored object, or None if absent."""
        try:
            target = self._resolve(path)
        except StorageError:
            return None
        return target if target.is_file() else None


class Storage:
    def __init__(self, root: str, public_url: str):
        self.root = Path(root)
        self.public_url = public_url

    def create_bucket(self, name: str):
        (self.root / name).mkdir(parents=True, exist_ok=True)

    def from_(self, name: str) -> Bucket:
        return Bucket(name, self.root / name, self.public_url)


# ============================================================
# Auth
# ============================================================

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
INITIAL_SESSION = "INITIAL_SESSION"


class Subscription:
    """Handle returned by on_auth_state_change."""

    def __init__(self, listeners: list, callback):
        self._listeners = listeners
        self._callback = callback

    @property
    def active(self) -> bool:
        return self._callback in self._listeners

    def unsubscribe(self):
        if self._callback in self._listeners:
            self._listeners.remove(self._callback)


class AuthClient:
    """
    Per-visitor auth state.
    Listeners are called as callback(event, session) where session is
    {"user": {"id", "email"}} or None.
    """

    def __init__(self, session_factory):
        self._session_factory = session_factory
        self._session: Optional[Dict[str, Any]] = None
        self._listeners: List[Callable] = []

    def get_session(self) -> Result:
        return Result(data=self._session)

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self._session["user"] if self._session else None

    def on_auth_state_change(self, callback: Callable) -> Subscription:
        self._listeners.append(callback)
        callback(INITIAL_SESSION, self._session)
        return Subscription(self._listeners, callback)

    def _emit(self, event: str):
        for listener in list(self._listeners):
            try:
                listener(event, self._session)
            except Exception:
                logger.exception("❌ auth listener failed on %s", event)

    def sign_up(self, email: str, password: str) -> Result:
        email = (email or "").strip().lower()
        if not email or not password:
            return Result(error=GatewayError("Email and password are required", code="validation_failed"))
        if len(password) < 6:
            return Result(error=GatewayError("Password should be at least 6 characters", code="weak_password"))

        db = self._session_factory()
        try:
            if db.query(User).filter(User.email == email).first():
                return Result(error=GatewayError("User already registered", code="user_already_exists"))
            user = User(email=email, password_hash=password_ctx.hash(password))
            db.add(user)
            db.flush()
            # Every identity gets an empty profile row
            db.add(Profile(id=user.id, onboarding_complete=False))
            db.commit()
            user_data = {"id": user.id, "email": user.email}
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("❌ sign up failed for %s: %s", email, e)
            return Result(error=GatewayError(f"Sign up failed: {e}"))
        finally:
            db.close()

        logger.info("✅ signed up %s", email)
        self._session = {"user": user_data}
        self._emit(SIGNED_IN)
        return Result(data=self._session)

    def sign_in_with_password(self, email: str, password: str) -> Result:
        email = (email or "").strip().lower()
        db = self._session_factory()
        try:
            user = db.query(User).filter(User.email == email).first()
            if user is None or not password_ctx.verify(password or "", user.password_hash):
                return Result(error=GatewayError("Invalid login credentials", code="invalid_credentials"))
            user_data = {"id": user.id, "email": user.email}
        except SQLAlchemyError as e:
            logger.error("❌ sign in failed for %s: %s", email, e)
            return Result(error=GatewayError(f"Sign in failed: {e}"))
        finally:
            db.close()

        self._session = {"user": user_data}
        self._emit(SIGNED_IN)
        return Result(data=self._session)

    def sign_out(self) -> Result:
        self._session = None
        self._emit(SIGNED_OUT)
        return Result()


# ============================================================
# Gateway
# ============================================================

class Gateway:
    def __init__(self, session_factory, storage: Storage, configured: bool = True):
        self._session_factory = session_factory
        self.storage = storage
        self.configured = configured

    def table(self, name: str) -> Table:
        return Table(name, TABLES[name], self._session_factory)

    def auth_client(self) -> AuthClient:
        return AuthClient(self._session_factory)


def create_gateway(session_factory=None, storage_dir: Optional[str] = None,
                   configured: Optional[bool] = None) -> Gateway:
    """Build a gateway from config, creating the product image bucket."""
    import config
    from database import SessionLocal

    storage = Storage(storage_dir or config.STORAGE_DIR, config.PUBLIC_STORAGE_URL)
    try:
        storage.create_bucket(config.STORAGE_BUCKET)
    except OSError as e:
        logger.warning("⚠️ could not create storage bucket %s: %s", config.STORAGE_BUCKET, e)

    return Gateway(
        session_factory or SessionLocal,
        storage,
        configured=config.is_backend_configured() if configured is None else configured,
    )

