# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from habitauth.shared.config import DatabaseConfig
from habitauth.shared.logging import logger


class Base(DeclarativeBase):
    pass


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _is_memory_sqlite(url: str) -> bool:
    return _is_sqlite(url) and (url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url)


def _enable_sqlite_pragmas(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(config: DatabaseConfig) -> Engine:
    url = config.url
    if _is_memory_sqlite(url):
        # One shared connection, otherwise every checkout sees an empty database.
        engine = create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    elif _is_sqlite(url):
        engine = create_engine(
            url,
            echo=False,
            pool_pre_ping=True,
            connect_args={"check_same_thread": False, "timeout": int(config.pool_timeout)},
        )
    else:
        engine = create_engine(
            url,
            echo=False,
            pool_pre_ping=True,
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_timeout=config.pool_timeout,
        )

    if _is_sqlite(url):
        _enable_sqlite_pragmas(engine)
    logger.debug(f"db: engine created for dialect {engine.dialect.name}")
    return engine


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    from . import models  # noqa: F401  registers the mapped tables

    Base.metadata.create_all(bind=engine)
    logger.info("Database schema ensured")
