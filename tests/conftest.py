import os

# must be set before tasktree.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("DB_CREATE_ALL", "false")
os.environ.setdefault("APP_ENV", "test")

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tasktree.db import create_all, get_db
from tasktree.main import create_app

OWNER_CODE = "1001"

@pytest.fixture()
def db_session() -> Session:
    database_url = os.environ["DATABASE_URL"]

    if database_url.startswith("sqlite"):
        # fresh in-memory db per test, shared across the TestClient thread
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        create_all(bind=engine)
        session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
        try:
            yield session
        finally:
            session.close()
            engine.dispose()
        return

    engine = create_engine(database_url, pool_pre_ping=True)
    create_all(bind=engine)

    connection = engine.connect()
    transaction = connection.begin()

    TestingSessionLocal = sessionmaker(bind=connection, autoflush=False, autocommit=False)
    session: Session = TestingSessionLocal()

    # savepoint
    session.begin_nested()

    @event.listens_for(session, "after_transaction_end")
    def _restart_savepoint(sess: Session, trans) -> None:  # type: ignore[no-untyped-def]
        if trans.nested and not trans._parent.nested:
            sess.begin_nested()

    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()
        engine.dispose()

@pytest.fixture()
def client(db_session: Session) -> TestClient:
    app = create_app()

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    return TestClient(app)

def uniq(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"

def auth(jwt: str) -> dict[str, str]:
    return {"authorization": f"bearer {jwt}"}

def register(client, *, invite_code=None, organization_name=None, organization_id=None, email=None) -> dict:
    body = {
        "email": email or f"{uniq('user')}@example.com",
        "first_name": "Test",
        "last_name": "User",
        "invite_code": invite_code,
        "organization_name": organization_name,
        "organization_id": organization_id,
    }
    r = client.post("/auth/register", json=body)
    assert r.status_code == 200, r.text
    return r.json()

@pytest.fixture()
def org_tree(client) -> dict:
    """Root org with an owner, admin and viewer, plus a child org with its own admin."""
    owner = register(client, invite_code=OWNER_CODE, organization_name=uniq("root"))
    root_id = owner["user"]["org_id"]

    r = client.post(
        "/organizations",
        json={"name": uniq("child"), "parent_id": root_id},
        headers=auth(owner["access_token"]),
    )
    assert r.status_code == 200, r.text
    child = r.json()

    admin = register(client, invite_code=owner["org_invite_code"])
    child_admin = register(client, invite_code=child["invite_code"])
    viewer = register(client, organization_id=root_id)

    return {
        "root_id": root_id,
        "child_id": child["id"],
        "owner": owner,
        "admin": admin,
        "child_admin": child_admin,
        "viewer": viewer,
    }

@pytest.fixture()
def signup(client):
    def _signup(**kw) -> dict:
        return register(client, **kw)

    return _signup
