"""Engine and session handling for the blueprint store."""

import os
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base


DATABASE_URL_ENV = "CONTRACT_BLUEPRINT_DATABASE_URL"


def get_database_url(
    host: Optional[str] = None,
    port: Optional[int] = None,
    database: Optional[str] = None,
    user: Optional[str] = None,
    password: Optional[str] = None,
) -> str:
    """
    Resolve the database URL.

    CONTRACT_BLUEPRINT_DATABASE_URL is used as-is unless connection
    parameters are passed; otherwise a PostgreSQL URL is assembled from
    the parameters, falling back to the POSTGRES_* variables.
    """
    if all(p is None for p in (host, port, database, user, password)):
        url = os.environ.get(DATABASE_URL_ENV)
        if url:
            return url

    host = host or os.environ.get("POSTGRES_HOST", "localhost")
    port = port or int(os.environ.get("POSTGRES_PORT", "5432"))
    database = database or os.environ.get("POSTGRES_DB", "contract_blueprint")
    user = user or os.environ.get("POSTGRES_USER", "postgres")
    password = password or os.environ.get("POSTGRES_PASSWORD", "postgres")
    return f"postgresql://{user}:{password}@{host}:{port}/{database}"


def _is_in_memory(url: str) -> bool:
    return url == "sqlite://" or (url.startswith("sqlite") and ":memory:" in url)


class DatabaseManager:
    """
    Owns the engine shared by the document registry, snapshot store and
    audit log. The engine is created lazily and recreated after close().
    """

    def __init__(self, database_url: Optional[str] = None, echo: bool = False):
        self._database_url = database_url or get_database_url()
        self._echo = echo
        self._engine: Optional[Engine] = None
        self._sessions: Optional[sessionmaker] = None

    @property
    def database_url(self) -> str:
        return self._database_url

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            url = self._database_url
            if _is_in_memory(url):
                # One shared connection, or every session sees an empty database.
                self._engine = create_engine(
                    url,
                    echo=self._echo,
                    connect_args={"check_same_thread": False},
                    poolclass=StaticPool,
                )
            elif url.startswith("sqlite"):
                self._engine = create_engine(url, echo=self._echo)
            else:
                self._engine = create_engine(url, echo=self._echo, pool_pre_ping=True)
        return self._engine

    @contextmanager
    def get_session(self) -> Iterator[Session]:
        """Session committed on success and rolled back on any error."""
        if self._sessions is None:
            self._sessions = sessionmaker(bind=self.engine, expire_on_commit=False)
        session = self._sessions()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def init_database(self) -> None:
        Base.metadata.create_all(self.engine)

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._sessions = None
