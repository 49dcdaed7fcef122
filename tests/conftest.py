from __future__ import annotations

import uuid
from collections.abc import Generator

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from control_tower.models import Base
from control_tower.seed import seed_workspace
from control_tower.services import locks
from control_tower.tenancy import Actor, ControlTowerContext

TEST_WORKSPACE_ID = uuid.UUID("bbbbbbbb-bbbb-bbbb-bbbb-bbbbbbbbbbbb")
OTHER_WORKSPACE_ID = uuid.UUID("cccccccc-cccc-cccc-cccc-cccccccccccc")
TEST_ACTOR = Actor(id="operator-1", name="Olivia Operator")
ACTOR_HEADERS = {
    "X-Control-Tower-Actor-Id": TEST_ACTOR.id,
    "X-Control-Tower-Actor-Name": TEST_ACTOR.name,
}


def _sqlite_engine() -> Engine:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite defers BEGIN on its own, which breaks SAVEPOINT handling.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
        del connection_record
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn) -> None:  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = _sqlite_engine()
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def workspace_id(db_session: Session) -> uuid.UUID:
    seed_workspace(db_session, TEST_WORKSPACE_ID, "Test Workspace")
    db_session.commit()
    return TEST_WORKSPACE_ID


@pytest.fixture()
def other_workspace_id(db_session: Session) -> uuid.UUID:
    seed_workspace(db_session, OTHER_WORKSPACE_ID, "Other Workspace")
    db_session.commit()
    return OTHER_WORKSPACE_ID


@pytest.fixture()
def actor() -> Actor:
    return TEST_ACTOR


@pytest.fixture()
def actor_headers() -> dict[str, str]:
    return dict(ACTOR_HEADERS)


@pytest.fixture()
def context(workspace_id: uuid.UUID, actor: Actor) -> ControlTowerContext:
    return ControlTowerContext(workspace_id=workspace_id, actor=actor)


@pytest.fixture(autouse=True)
def _reset_connector_locks() -> Generator[None, None, None]:
    locks._local_locks.clear()
    yield
    locks._local_locks.clear()
