from __future__ import annotations

from collections.abc import Callable, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import budget_office.models.entities  # noqa: F401
from budget_office.core.auth import RequestUserContext, build_user_context, ensure_default_roles
from budget_office.core.security import hash_password
from budget_office.db.base import Base
from budget_office.db.dependencies import get_db_session
from budget_office.main import create_app
from budget_office.models.entities import AppRole, User, UserRole

DEFAULT_PASSWORD = "Secret123"


def _enable_sqlite_savepoints(engine) -> None:
    # pysqlite issues its own BEGIN; hand transaction control to SQLAlchemy so SAVEPOINT works.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(connection) -> None:
        connection.exec_driver_sql("BEGIN")


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    _enable_sqlite_savepoints(engine)
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    app = create_app()

    def override_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    def _make_user(
        *,
        email: str,
        role: AppRole,
        name: str = "Test User",
        is_active: bool = True,
    ) -> User:
        roles = ensure_default_roles(db_session)
        user = User(
            name=name,
            email=email,
            password=hash_password(DEFAULT_PASSWORD),
            is_active=is_active,
        )
        db_session.add(user)
        db_session.flush()
        db_session.add(UserRole(user_id=user.id, role_id=roles[role].id))
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def make_actor(db_session: Session, make_user: Callable[..., User]) -> Callable[..., RequestUserContext]:
    def _make_actor(*, email: str, role: AppRole, name: str = "Test User") -> RequestUserContext:
        return build_user_context(db_session, make_user(email=email, role=role, name=name))

    return _make_actor


@pytest.fixture()
def super_admin(make_actor: Callable[..., RequestUserContext]) -> RequestUserContext:
    return make_actor(email="super.admin@example.com", role=AppRole.SUPER_ADMIN, name="Super Admin")


@pytest.fixture()
def administrator(make_actor: Callable[..., RequestUserContext]) -> RequestUserContext:
    return make_actor(email="admin@example.com", role=AppRole.ADMINISTRATOR, name="Administrator")


@pytest.fixture()
def analyst(make_actor: Callable[..., RequestUserContext]) -> RequestUserContext:
    return make_actor(email="analyst@example.com", role=AppRole.BUDGET_ANALYST, name="Budget Analyst")


@pytest.fixture()
def viewer(make_actor: Callable[..., RequestUserContext]) -> RequestUserContext:
    return make_actor(email="viewer@example.com", role=AppRole.VIEWER, name="Viewer")
