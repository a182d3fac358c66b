from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from api.app.core.config import Settings, get_settings
from api.app.dependencies.storage import get_object_storage
from api.app.main import create_app
from tests.fakes import FakeStorage, make_settings


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def app(settings, storage):
    application = create_app(settings)
    application.dependency_overrides[get_settings] = lambda: settings
    application.dependency_overrides[get_object_storage] = lambda: storage
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
