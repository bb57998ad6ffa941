"""Database engine, session factory and the declarative Base."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from moderation.config import get_settings

Base = declarative_base()


class DatabaseManager:
    """Lazily builds the engine so an unconfigured store never connects."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        pool_size: Optional[int] = None,
        max_overflow: Optional[int] = None,
    ) -> None:
        self._database_url = database_url
        self._pool_size = pool_size
        self._max_overflow = max_overflow
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            settings = get_settings()
            url = self._database_url or settings.database_url
            if not url:
                raise ValueError("Database URL is not set.")
            kwargs = {"pool_pre_ping": True}
            if not url.startswith("sqlite"):
                kwargs["pool_size"] = self._pool_size or settings.database_pool_size
                kwargs["max_overflow"] = (
                    self._max_overflow or settings.database_max_overflow
                )
            self._engine = create_engine(url, **kwargs)
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                autocommit=False, autoflush=False, bind=self.engine
            )
        return self._session_factory

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
