import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_EMAIL"] = "admin@school.local"
os.environ["ADMIN_PASSWORD"] = "admin123"

import pytest
from fastapi.testclient import TestClient

from schoolhub import db
from schoolhub.repository import SchoolRepository
from schoolhub.store import store


@pytest.fixture(autouse=True)
def clean_store():
    db.create_db_and_tables()
    store.clear()
    yield
    store.clear()


@pytest.fixture()
def repo():
    return SchoolRepository(store)


@pytest.fixture()
def client():
    from schoolhub.main import app

    with TestClient(app) as test_client:
        yield test_client
