import os
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

DEFAULT_DATABASE_URL = "postgresql://localhost/payroll_admin"

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)

Base = declarative_base()

engine: Optional[Engine] = None
_configured_url: Optional[str] = None


def database_url() -> str:
    return os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL


def configure_database() -> None:
    """(Re)binds ``SessionLocal`` when ``DATABASE_URL`` changes."""
    global engine, _configured_url

    url = database_url()
    if engine is not None and _configured_url == url:
        return

    kwargs = {}
    if url.startswith("sqlite"):
        # TestClient and the threadpool hand sessions across threads.
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        # The Zoho monitor holds connections across long idle intervals.
        kwargs["pool_pre_ping"] = True

    engine = create_engine(url, **kwargs)
    SessionLocal.configure(bind=engine)
    _configured_url = url


def is_postgres() -> bool:
    configure_database()
    return engine.dialect.name == "postgresql"


configure_database()
