from __future__ import annotations

from typing import Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from hrdesk.config import settings
from hrdesk.database import get_db, init_db
from hrdesk.main import app
from hrdesk.store import RecordStore

TEST_PASSWORD = "pase-de-prueba"


@pytest.fixture(scope="session")
def db_engine(tmp_path_factory) -> Engine:
    db_file = tmp_path_factory.mktemp("hrdesk") / "records.db"
    engine = create_engine(f"sqlite:///{db_file}", connect_args={"check_same_thread": False})
    init_db(bind=engine)
    return engine


@pytest.fixture()
def session(db_engine: Engine) -> Iterator[Session]:
    # Every test runs inside an outer transaction that is discarded afterwards
    with db_engine.connect() as connection:
        outer = connection.begin()
        db = Session(bind=connection, autoflush=False)
        try:
            yield db
        finally:
            db.close()
            outer.rollback()


@pytest.fixture()
def store(session: Session) -> RecordStore:
    return RecordStore(session)


@pytest.fixture()
def client(session: Session, monkeypatch) -> Iterator[TestClient]:
    def _shared_session() -> Iterator[Session]:
        yield session

    monkeypatch.setattr(settings, "access_password", TEST_PASSWORD)
    app.dependency_overrides[get_db] = _shared_session
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
def auth_client(client: TestClient) -> TestClient:
    response = client.post("/auth/login", json={"password": TEST_PASSWORD})
    assert response.status_code == 200
    client.headers["Authorization"] = f"Bearer {response.json()['token']}"
    return client
