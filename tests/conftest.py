import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from orderdesk.api import app
from orderdesk.auth import get_db, get_password_hasher, get_token_codec
from orderdesk.database import Base
from orderdesk.models.user import Role, User
from orderdesk.security import PasswordHasher, TokenClaims, TokenCodec

TEST_SECRET = "test-signing-secret-0123456789abcdef"


@pytest.fixture
def engine():
    """Provide an isolated in-memory database for each test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        hide_parameters=True,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_local(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def token_codec():
    return TokenCodec(TEST_SECRET)


@pytest.fixture
def password_hasher():
    # lower work factor keeps the suite fast; production uses settings.bcrypt_rounds
    return PasswordHasher(rounds=4)


@pytest.fixture
def client(session_local, token_codec, password_hasher):
    def override_get_db():
        db = session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_token_codec] = lambda: token_codec
    app.dependency_overrides[get_password_hasher] = lambda: password_hasher
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session_local, token_codec, password_hasher):
    """Insert a user directly and return ``(user_id, auth_headers)``."""

    def _make(phone="555-0100", role=Role.USER, name="Test User", password="pw"):
        session = session_local()
        try:
            user = User(
                name=name,
                phone=phone,
                password_hash=password_hasher.hash(password),
                role=role,
            )
            session.add(user)
            session.commit()
            token = token_codec.issue(
                TokenClaims(user_id=user.id, phone=user.phone, role=role)
            )
            return user.id, {"Authorization": f"Bearer {token}"}
        finally:
            session.close()

    return _make


@pytest.fixture
def auth_headers(make_user):
    return make_user()[1]


@pytest.fixture
def admin_headers(make_user):
    return make_user(phone="555-0199", role=Role.ADMIN, name="Admin")[1]
