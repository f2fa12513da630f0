import os
import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine

# Configurar SQLite de pruebas antes de importar la app
TEST_DB_PATH = os.path.abspath("test.db")
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
os.environ["APP_ENV"] = "test"

from gestion_academica import models  # noqa: E402,F401


@pytest.fixture(scope="session")
def client():
    try:
        os.remove(TEST_DB_PATH)
    except FileNotFoundError:
        pass

    from gestion_academica import db
    from gestion_academica import main

    assert TEST_DB_PATH in str(db.engine.url), f"Engine apunta a {db.engine.url}"
    db.init_db()

    def override_get_session():
        session = Session(db.engine)
        try:
            yield session
        finally:
            session.close()

    main.app.dependency_overrides[db.get_session] = override_get_session

    client = TestClient(main.app)
    yield client
    client.close()
    db.engine.dispose()
    try:
        os.remove(TEST_DB_PATH)
    except FileNotFoundError:
        pass


@pytest.fixture()
def session(tmp_path):
    """Fresh database per test for calling the rules engine directly."""
    engine = create_engine(f"sqlite:///{tmp_path / 'rules.db'}", connect_args={"check_same_thread": False})
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    engine.dispose()


def _token(client: TestClient, email: str, password: str, full_name: str, role: str) -> str:
    client.post("/auth/signup", json={
        "email": email,
        "full_name": full_name,
        "password": password,
        "role": role,
    })
    res = client.post("/auth/token", data={"username": email, "password": password}, headers={"Content-Type": "application/x-www-form-urlencoded"})
    assert res.status_code == 200, res.text
    return res.json()["access_token"]


@pytest.fixture()
def admin_token(client: TestClient):
    return _token(client, "admin@test.com", "admin123", "Admin Test", "admin")


@pytest.fixture()
def teacher_token(client: TestClient):
    return _token(client, "teacher@test.com", "teacher123", "Docente Test", "teacher")
