from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from stagora.core.auth import get_current_user
from stagora.db.mongodb import COLLECTIONS
from stagora.main import app


@pytest.fixture
def db():
    """One MagicMock per collection, indexable like a pymongo Database."""
    return {name: MagicMock(name=name) for name in COLLECTIONS.values()}


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login():
    """Authenticate every request as a user of the given role."""
    def _login(role: str, user_id: str = None, email: str = "user@stagora.io") -> dict:
        user = {"user_id": user_id or str(ObjectId()), "email": email, "role": role}
        app.dependency_overrides[get_current_user] = lambda: user
        return user
    return _login
