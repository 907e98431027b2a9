# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from itertools import count

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-bulk-stage")

from bulk_stage.core.security import create_access_token, hash_password
from bulk_stage.db.session import Base
from bulk_stage.db.session import get_db as app_get_session
from bulk_stage.main import app as fastapi_app
from bulk_stage.models import Account, AccountKind, Community, Membership, MembershipRole, Post
from bulk_stage.schemas.community import CommunityCreate
from bulk_stage.services.communities import CommunityService
from bulk_stage.services.media import (
    MediaStoreError,
    RemovalResult,
    StoredMedia,
    get_media_store,
)

TEST_DB_URL = "sqlite://"
TEST_PASSWORD = "correct-horse-battery"

_ACCOUNT_COUNTER = count(1)


class FakeMediaStore:
    """In-memory stand-in for the remote media store."""

    def __init__(self) -> None:
        self.enabled = True
        self.objects: dict[str, bytes] = {}
        self.removed: list[str] = []
        self.fail_store = False
        self.fail_remove = False
        self._counter = count(1)

    async def store(
        self,
        data: bytes,
        *,
        folder: str,
        filename: str,
        content_type: str,
    ) -> StoredMedia:
        if self.fail_store:
            raise MediaStoreError("store unavailable")
        reference = f"{folder}/{next(self._counter)}-{filename}"
        self.objects[reference] = data
        return StoredMedia(url=f"https://cdn.test/{reference}", reference=reference)

    async def remove(self, reference: str) -> RemovalResult:
        if self.fail_remove:
            raise MediaStoreError("store unavailable")
        self.removed.append(reference)
        if self.objects.pop(reference, None) is None:
            return RemovalResult.NOT_FOUND_REMOTE
        return RemovalResult.OK


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite defers BEGIN; take over so SAVEPOINTs nest inside the test transaction.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, _record) -> None:  # pragma: no cover
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn) -> None:  # pragma: no cover
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        if transaction.is_active:
            transaction.rollback()
        connection.close()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def media_store() -> FakeMediaStore:
    """Return the in-memory media store wired into the app."""
    return FakeMediaStore()


@pytest.fixture(autouse=True)
def override_media_store(app: FastAPI, media_store: FakeMediaStore) -> Iterator[None]:
    app.dependency_overrides[get_media_store] = lambda: media_store
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_media_store, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture(scope="session")
def password_hash() -> str:
    """Hash the shared test password once per session."""
    return hash_password(TEST_PASSWORD)


@pytest.fixture()
def make_account(db_session: Session, password_hash: str) -> Callable[..., Account]:
    """Return a factory that persists accounts."""

    def _make(handle: str | None = None, kind: AccountKind = AccountKind.STANDARD) -> Account:
        number = next(_ACCOUNT_COUNTER)
        handle = handle or f"user{number}"
        account = Account(
            email=f"{handle}.{number}@example.com",
            handle=f"{handle}{number}",
            display_name=handle.title(),
            password_hash=password_hash,
            kind=kind,
        )
        db_session.add(account)
        db_session.commit()
        db_session.refresh(account)
        return account

    return _make


def _headers_for(account: Account) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(account.id)}"}


@pytest.fixture()
def auth_headers() -> Callable[[Account], dict[str, str]]:
    """Return a helper building bearer headers for an account."""
    return _headers_for


def _add_member(
    db: Session,
    account: Account,
    community: Community,
    role: MembershipRole = MembershipRole.MEMBER,
    *,
    can_publish_premium: bool = False,
) -> Membership:
    """Insert a membership row directly."""
    membership = Membership(
        account_id=account.id,
        community_id=community.id,
        role=role,
        can_publish_premium=can_publish_premium,
    )
    db.add(membership)
    db.commit()
    return membership


def _add_post(
    db: Session,
    author: Account,
    community: Community,
    *,
    premium: bool = False,
    title: str = "Weekly update",
    content: str = "Full body text",
) -> Post:
    """Insert a post directly, bypassing authorization."""
    post = Post(
        community_id=community.id,
        author_id=author.id,
        title=title,
        content=content,
        premium=premium,
    )
    db.add(post)
    db.commit()
    db.refresh(post)
    return post


@pytest.fixture()
def creator(make_account) -> Account:
    """Account that creates the default communities."""
    return make_account("alice")


@pytest.fixture()
def member(make_account) -> Account:
    return make_account("bob")


@pytest.fixture()
def outsider(make_account) -> Account:
    return make_account("dave")


@pytest.fixture()
def elevated(make_account) -> Account:
    return make_account("olga", kind=AccountKind.ELEVATED)


@pytest.fixture()
def community(db_session: Session, creator: Account) -> Community:
    """Public community owned by ``creator``."""
    return CommunityService(db_session).create(
        creator.id,
        CommunityCreate(name=f"Makers {next(_ACCOUNT_COUNTER)}", description="Build things"),
    )


@pytest.fixture()
def private_community(db_session: Session, creator: Account) -> Community:
    """Private community owned by ``creator``."""
    return CommunityService(db_session).create(
        creator.id,
        CommunityCreate(name=f"Inner Circle {next(_ACCOUNT_COUNTER)}", is_public=False),
    )


@pytest.fixture()
def add_member(db_session: Session) -> Callable[..., Membership]:
    """Return a helper inserting membership rows directly."""

    def _add(account: Account, community: Community, role=MembershipRole.MEMBER, **kwargs):
        return _add_member(db_session, account, community, role, **kwargs)

    return _add


@pytest.fixture()
def add_post(db_session: Session) -> Callable[..., Post]:
    """Return a helper inserting posts directly."""

    def _add(author: Account, community: Community, **kwargs) -> Post:
        return _add_post(db_session, author, community, **kwargs)

    return _add
