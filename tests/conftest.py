# tests/conftest.py
from __future__ import annotations

import os
import tempfile
from collections.abc import Callable, Generator, Iterator
from itertools import count
from pathlib import Path
from typing import Any

import pytest

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("COOKIE_SECURE", "false")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="chatline-uploads-"))

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from chatline.api.v1.dependencies import get_storage_dep
from chatline.core.security import create_access_token, hash_password
from chatline.db.session import Base, configure_sqlite
from chatline.db.session import get_db as app_get_session
from chatline.db.session import get_session_factory
from chatline.main import app as fastapi_app
from chatline.models import FriendRequest, User
from chatline.models.conversation import canonical_pair
from chatline.models.relationship import FRIEND_ACCEPTED
from chatline.services.notifications import ConnectionRegistry
from chatline.services.storage import AttachmentStorage

TEST_DB_URL = "sqlite://"
TEST_PASSWORD = "secret123"

_USERNAME_COUNTER = count(1)


class RecordingConnection:
    """Stand-in for a WebSocket that records every pushed envelope."""

    def __init__(self, *, fail: bool = False) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail = fail

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        self.sent.append(data)

    def events(self, name: str | None = None) -> list[dict[str, Any]]:
        """Return recorded envelopes, optionally only those for ``name``."""
        return [e for e in self.sent if name is None or e["event"] == name]


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite(engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_connection(engine: Engine) -> Iterator[Connection]:
    connection = engine.connect()
    try:
        yield connection
    finally:
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def session_factory(db_connection: Connection) -> sessionmaker[Session]:
    """Sessions joined to the per-test connection; commits release a savepoint."""
    return sessionmaker(
        bind=db_connection,
        autoflush=False,
        join_transaction_mode="create_savepoint",
    )


@pytest.fixture()
def db_session(db_connection: Connection, session_factory: sessionmaker[Session]) -> Iterator[Session]:
    transaction = db_connection.begin()
    # Service commits release a savepoint; the outer transaction is rolled back afterwards.
    session = session_factory()

    try:
        yield session
    finally:
        session.close()

        if transaction.is_active:
            transaction.rollback()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(
    app: FastAPI, db_session: Session, session_factory: sessionmaker[Session]
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_session_factory, None)


@pytest.fixture()
def storage(tmp_path: Path) -> AttachmentStorage:
    """Attachment storage rooted in a per-test directory."""
    return AttachmentStorage(tmp_path / "uploads", url_prefix="/uploads", max_bytes=1024 * 1024)


@pytest.fixture(autouse=True)
def override_storage_dependency(app: FastAPI, storage: AttachmentStorage) -> Iterator[None]:
    app.dependency_overrides[get_storage_dep] = lambda: storage
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_storage_dep, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def registry(app: FastAPI, client: TestClient) -> ConnectionRegistry:
    """The connection registry the running app pushes through."""
    return app.state.connections


@pytest.fixture()
def connect(registry: ConnectionRegistry) -> Callable[[User], RecordingConnection]:
    """Register a recording connection for a user and return it."""

    def _connect(user: User, *, fail: bool = False) -> RecordingConnection:
        connection = RecordingConnection(fail=fail)
        registry.register(user.id, connection)
        return connection

    return _connect


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Factory persisting users with a known password."""

    def _make_user(fullname: str | None = None, gender: str = "female") -> User:
        n = next(_USERNAME_COUNTER)
        user = User(
            username=f"user{n}",
            fullname=fullname or f"Test User {n}",
            gender=gender,
            password_hash=hash_password(TEST_PASSWORD),
            profile_pic=f"https://example.test/avatar/{n}.png",
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def make_friends(db_session: Session) -> Callable[[User, User], FriendRequest]:
    """Record an accepted friendship between two users."""

    def _make_friends(first: User, second: User) -> FriendRequest:
        low, high = canonical_pair(first.id, second.id)
        request = FriendRequest(
            sender_id=first.id,
            receiver_id=second.id,
            user_low_id=low,
            user_high_id=high,
            status=FRIEND_ACCEPTED,
        )
        db_session.add(request)
        db_session.commit()
        return request

    return _make_friends


@pytest.fixture()
def test_user(make_user: Callable[..., User]) -> User:
    """Create and return a persisted test user."""
    return make_user("Alice Tester")


@pytest.fixture()
def other_user(make_user: Callable[..., User]) -> User:
    """Create and return a second persisted user."""
    return make_user("Bob Other", gender="male")


@pytest.fixture()
def third_user(make_user: Callable[..., User]) -> User:
    return make_user("Carol Third")


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def auth_token(test_user: User) -> dict[str, str]:
    """Return authorization headers for the primary test user."""
    return auth_headers(test_user)


@pytest.fixture()
def other_auth_token(other_user: User) -> dict[str, str]:
    """Return authorization headers for the secondary test user."""
    return auth_headers(other_user)


@pytest.fixture()
def third_auth_token(third_user: User) -> dict[str, str]:
    return auth_headers(third_user)


@pytest.fixture()
def headers_for() -> Callable[[User], dict[str, str]]:
    """Build bearer headers for any user."""
    return auth_headers
