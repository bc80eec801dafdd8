from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
import config

# ── Base class ───────────────────────────────────────────────
# All models inherit from this
Base = declarative_base()


def make_engine(url: str):
    """
    Build an engine for the given URL.
    SQLite needs check_same_thread=False because FastAPI handles
    requests on different threads; in-memory SQLite also needs a
    single shared connection or every session sees an empty database.
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url)


# ── Engine ───────────────────────────────────────────────────
engine = make_engine(config.DATABASE_URL)

# ── Session factory ──────────────────────────────────────────
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# ── Helper: get a DB session (use with `with` or dependency injection) ─
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# ── Create all tables on startup ─────────────────────────────
def init_db(bind=None):
    import models  # noqa: F401  registers the tables on Base.metadata
    Base.metadata.create_all(bind=bind or engine)
