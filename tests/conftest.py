import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from evoting.api.dependencies import get_mail_service
from evoting.core.database import Base, get_db
from evoting.main import app
from evoting.models.user import User  # noqa: F401 - registers the table
from evoting.schemas.user import AdminUserCreate, NonAdminUserCreate
from evoting.services.user_service import UserService

ADMIN_PASSWORD = "Adm1n-Secret!"


class FakeMailService:
    """Records credential emails instead of talking to SMTP"""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send_credentials(self, user, password):
        if self.fail:
            raise ConnectionRefusedError("SMTP server unavailable")
        self.sent.append((user.email, password))


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def engine():
    # One shared in-memory connection so every session sees the same tables
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def mail():
    return FakeMailService()


@pytest.fixture
def service(mail):
    return UserService(mail=mail)


@pytest.fixture
def admin(db):
    return UserService.create_user(db, AdminUserCreate(
        nim="0000001",
        email="admin@campus.ac.id",
        name="Election Admin",
        password=ADMIN_PASSWORD,
        is_admin=True,
    ))


@pytest.fixture
def voter(db):
    return UserService.create_user(db, NonAdminUserCreate(
        nim="2101001",
        email="ayu@campus.ac.id",
        name="Ayu Lestari",
        year_class=2021,
    ))


@pytest.fixture
def client(session_factory, mail):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mail_service] = lambda: mail
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(client, admin):
    response = client.post(
        "/api/auth/login",
        data={"username": admin.email, "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
