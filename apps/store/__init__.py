"""Durable record store.

:class:`RecordStore` owns the SQLAlchemy engine and hands out short-lived
sessions to the account, quota and history components.  It is constructed
once per process and shared; sessions are never shared between invocations.
Every database error escaping a session scope is translated into
:class:`~lib.contracts.errors.StoreUnavailable` so callers deal with a single
failure type regardless of the backing driver.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from lib.contracts.errors import StoreUnavailable
from lib.telemetry.logger import get_logger

from .models import AccountRow, Base, ProcessedUpdateRow, TurnRow

logger = get_logger(__name__)


class DuplicateRecord(StoreUnavailable):
    """A write collided with a uniqueness constraint."""


def _engine_for(url: str) -> Engine:
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True)


@dataclass
class RecordStore:
    """Engine plus session factory for one database."""

    url: str
    project_id: str = ""
    engine: Engine = field(init=False, repr=False)
    _sessions: sessionmaker = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.url.startswith("sqlite:///./"):
            Path(self.url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)
        self.engine = _engine_for(self.url)
        self._sessions = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_schema(self) -> None:
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"schema setup failed: {exc}") from exc
        logger.info(
            "store ready url=%s project=%s",
            self.engine.url.render_as_string(hide_password=True),
            self.project_id or "-",
        )

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session committed on success and rolled back on error."""

        sess = self._sessions()
        try:
            yield sess
            sess.commit()
        except IntegrityError as exc:
            sess.rollback()
            raise DuplicateRecord(str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            sess.rollback()
            raise StoreUnavailable(str(exc)) from exc
        except BaseException:
            sess.rollback()
            raise
        finally:
            sess.close()

    def dispose(self) -> None:
        self.engine.dispose()


__all__ = ["RecordStore", "DuplicateRecord", "AccountRow", "TurnRow", "ProcessedUpdateRow", "Base"]
