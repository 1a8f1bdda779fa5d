import os
import tempfile

# Settings are read once (lru_cache), so the environment must be in place before app is imported.
_TMP = tempfile.mkdtemp(prefix="lumina-tests-")
os.environ["JWT_SECRET"] = "test-secret-for-the-suite-0123456789abcdef"
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["PDF_DIR"] = os.path.join(_TMP, "contracts")
os.environ["UPLOAD_DIR"] = os.path.join(_TMP, "uploads")
os.environ["APP_ENV"] = "development"
os.environ["AUDIT_CLEANUP_CRON_ENABLED"] = "false"
for _key in ("SMTP_HOST", "SMTP_USER", "MAILGUN_API_KEY", "MAILGUN_DOMAIN"):
    os.environ[_key] = ""

import pytest
from fastapi.testclient import TestClient

import app.models  # noqa: F401
from app.config import get_settings
from app.database import Base, SessionLocal, engine, get_db
from app.main import app as fastapi_app
from app.seed import seed_system_data
from app.services.outbox import Outbox
from tests.factories import auth_headers, make_client, make_user


@pytest.fixture()
def settings():
    return get_settings()


@pytest.fixture()
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    seed_system_data(session)
    yield session
    session.close()


@pytest.fixture()
def client(db):
    def _override_get_db():
        yield db

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(fastapi_app)
    fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def outbox():
    return Outbox()


@pytest.fixture()
def photographer(db):
    return make_user(db)


@pytest.fixture()
def other_photographer(db):
    return make_user(db, email="rival@example.com", business_name="Rival Studio")


@pytest.fixture()
def customer(db, photographer):
    return make_client(db, photographer)


@pytest.fixture()
def headers(settings, photographer):
    return auth_headers(settings, photographer)
