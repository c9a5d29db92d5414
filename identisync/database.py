"""
Identity store schema and connection management.

Uses SQLAlchemy over SQLite by default; any SQLAlchemy URL (for example a
MariaDB DSN) may be passed instead of a file path.
"""

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Union

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class UniqueIdentity(Base):
    """Canonical identity; every alias, profile and enrollment hangs off its uuid."""

    __tablename__ = "uidentities"

    uuid = Column(String(128), primary_key=True)
    last_modified = Column(DateTime, nullable=True, default=datetime.now, onupdate=datetime.now)


class Profile(Base):
    __tablename__ = "profiles"

    uuid = Column(String(128), ForeignKey("uidentities.uuid", ondelete="CASCADE"), primary_key=True)
    name = Column(String(128), nullable=True)
    email = Column(String(128), nullable=True)
    is_bot = Column(Boolean, nullable=True)
    country_code = Column(String(2), nullable=True)


class Identity(Base):
    """A (source, username, email, name) alias seen for a unique identity."""

    __tablename__ = "identities"

    id = Column(String(128), primary_key=True)
    uuid = Column(String(128), ForeignKey("uidentities.uuid", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(128), nullable=True)
    email = Column(String(128), nullable=True, index=True)
    username = Column(String(128), nullable=True, index=True)
    source = Column(String(32), nullable=False)
    last_modified = Column(DateTime, nullable=True, default=datetime.now, onupdate=datetime.now)


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(191), nullable=False, unique=True)


class Enrollment(Base):
    """Affiliation of a unique identity with an organization, optionally per project."""

    __tablename__ = "enrollments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    uuid = Column(String(128), ForeignKey("uidentities.uuid", ondelete="CASCADE"), nullable=False, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    start = Column(DateTime, nullable=False)
    end = Column(DateTime, nullable=False)
    project_slug = Column(String(128), nullable=True)


def database_url(database: Union[str, Path]) -> str:
    """Return a SQLAlchemy URL for a SQLite file path or pass a URL through."""
    db = str(database)
    if "://" in db:
        return db
    return f"sqlite:///{db}"


def get_engine(database: Union[str, Path], echo: bool = False) -> Engine:
    """
    Create an engine that can be shared by worker threads.

    Args:
        database: SQLite file path or SQLAlchemy URL
        echo: Log every SQL statement (DEBUG_SQL)

    Returns:
        SQLAlchemy engine
    """
    url = database_url(database)
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(url, echo=echo, connect_args=connect_args)


def init_database(database: Union[str, Path]) -> None:
    """
    Initialize database and create tables.

    Args:
        database: SQLite file path or SQLAlchemy URL
    """
    if "://" not in str(database):
        Path(database).parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(database)
    Base.metadata.create_all(engine)
    engine.dispose()


def get_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)


def get_session(database: Union[str, Path]):
    """
    Get database session.

    Args:
        database: SQLite file path or SQLAlchemy URL

    Returns:
        SQLAlchemy session
    """
    Session = get_session_factory(get_engine(database))
    return Session()


@contextmanager
def session_scope(factory: sessionmaker):
    """Session that commits on success and rolls back on any exception."""
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
