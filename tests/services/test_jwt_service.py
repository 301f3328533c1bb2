"""
Tests for JWT Service.
"""

import pytest
from datetime import datetime, timedelta, timezone

from meetspace.services.jwt_service import JWTService


@pytest.fixture
def jwt_service():
    service = JWTService()
    service.secret_key = "test-secret"
    service.algorithm = "HS256"
    service._initialized = True
    return service


class TestJWTService:

    def test_valid_token(self, jwt_service):
        token = jwt_service.create_token({"user_id": "7", "email": "user@example.com", "name": "Test User"})

        payload = jwt_service.verify_token(token)

        assert payload["user_id"] == 7
        assert payload["email"] == "user@example.com"

    def test_expired_token(self, jwt_service):
        token = jwt_service.create_token({
            "user_id": 7,
            "email": "user@example.com",
            "exp": datetime.now(timezone.utc) - timedelta(minutes=1),
        })

        assert jwt_service.verify_token(token) is None

    def test_missing_claims(self, jwt_service):
        assert jwt_service.verify_token(jwt_service.create_token({"user_id": 7})) is None

    def test_non_numeric_user_id(self, jwt_service):
        token = jwt_service.create_token({"user_id": "abc", "email": "user@example.com"})

        assert jwt_service.verify_token(token) is None

    def test_garbage_token(self, jwt_service):
        assert jwt_service.verify_token("not-a-token") is None

    def test_uninitialized_service(self):
        assert JWTService().verify_token("anything") is None
