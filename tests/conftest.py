from __future__ import annotations

import json
import os
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from ghexplorer.adapters.sqlalchemy import start_mappers
from ghexplorer.adapters.sqlalchemy.migrations import upgrade_head
from ghexplorer.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyEntityUnitOfWork,
    shutdown,
    startup,
)

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

FIXTURES = Path(__file__).resolve().parent / "data"


@pytest.fixture(scope="session")
def pull_request_event() -> dict[str, object]:
    return json.loads((FIXTURES / "pull_request_event.json").read_text())


@pytest.fixture(scope="session")
def push_event() -> dict[str, object]:
    return json.loads((FIXTURES / "push_event.json").read_text())


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    start_mappers()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session_factory(sqlite_engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=sqlite_engine, future=True, expire_on_commit=False)


@pytest.fixture
def sqlite_session(sqlite_session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = sqlite_session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyEntityUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyEntityUnitOfWork:
        return SqlAlchemyEntityUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()
