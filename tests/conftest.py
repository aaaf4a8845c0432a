import os
import tempfile

import pytest

# Point the app at a throwaway SQLite file before any project module is imported
_db_dir = tempfile.mkdtemp(prefix="uniwiz-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_db_dir, "test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from fastapi.testclient import TestClient  # noqa: E402

import main  # noqa: E402
import models  # noqa: E402
from database import engine  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_database():
    models.Base.metadata.drop_all(bind=engine)
    models.Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def client():
    with TestClient(main.app) as test_client:
        yield test_client
