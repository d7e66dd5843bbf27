"""
Unit tests for core: exception hierarchy, HTTP error mapping, CORS and
admin authentication.
Version: 1.0.0
"""
import pytest
from unittest.mock import MagicMock, patch

from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from dsz_sync.core.auth import require_admin
from dsz_sync.core.exceptions import (
    AlreadyExists,
    ApiError,
    DszSyncException,
    MissingCredentials,
    NonRetryableError,
    NotInitialized,
    OrderNotFound,
    RateLimited,
    RetryableError,
    StoreError,
    TransportError,
    Unauthorized,
)
from dsz_sync.core.middleware import apply_cors, register_exception_handlers, status_for


@pytest.mark.unit
class TestExceptionHierarchy:

    @pytest.mark.parametrize("exc_type", [TransportError, RateLimited, Unauthorized, StoreError])
    def test_retryable(self, exc_type):
        assert issubclass(exc_type, RetryableError)

    @pytest.mark.parametrize("exc_type", [ApiError, MissingCredentials, AlreadyExists, NotInitialized])
    def test_non_retryable(self, exc_type):
        assert issubclass(exc_type, NonRetryableError)

    def test_message_defaults_to_class_name(self):
        assert DszSyncException().message == "DszSyncException"
        assert str(TransportError("down")) == "down"

    def test_api_error_carries_status_and_body(self):
        exc = ApiError(422, "Invalid postcode", {"message": "Invalid postcode"})
        assert exc.status_code == 422
        assert exc.body == {"message": "Invalid postcode"}
        assert exc.message == "Invalid postcode"


@pytest.mark.unit
class TestStatusMapping:

    @pytest.mark.parametrize("exc, expected", [
        (OrderNotFound("x"), 404),
        (AlreadyExists("x"), 409),
        (MissingCredentials(), 400),
        (ApiError(500, "x"), 502),
        (TransportError("x"), 502),
        (RateLimited(), 503),
        (StoreError("x"), 503),
        (DszSyncException("x"), 500),
    ])
    def test_status_for(self, exc, expected):
        assert status_for(exc) == expected

    def test_handler_renders_json(self):
        app = FastAPI()
        register_exception_handlers(app)

        @app.get("/boom")
        def boom():
            raise AlreadyExists("Product with SKU A already exists (ID: 5).")

        resp = TestClient(app).get("/boom")

        assert resp.status_code == 409
        assert resp.json() == {
            "success": False,
            "message": "Product with SKU A already exists (ID: 5).",
            "error": "AlreadyExists",
        }


@pytest.mark.unit
class TestApplyCors:

    def test_cors_allows_any_origin(self):
        app = FastAPI()
        apply_cors(app)

        @app.get("/test")
        def test_endpoint():
            return {"ok": True}

        resp = TestClient(app).get("/test", headers={"Origin": "https://example.com"})

        assert resp.status_code == 200
        assert resp.headers.get("access-control-allow-origin") == "*"


@pytest.fixture
def protected_app():
    app = FastAPI()

    @app.get("/whoami")
    def whoami(current_user: dict = Depends(require_admin)):
        return current_user

    return TestClient(app)


@pytest.mark.unit
class TestRequireAdmin:

    def _settings(self, key):
        return patch("dsz_sync.core.auth.get_settings", return_value=MagicMock(admin_api_key=key))

    def test_open_when_no_key_configured(self, protected_app):
        with self._settings(None):
            resp = protected_app.get("/whoami")

        assert resp.status_code == 200
        assert resp.json()["auth"] == "disabled"

    def test_missing_token(self, protected_app):
        with self._settings("s3cret"):
            resp = protected_app.get("/whoami")

        assert resp.status_code == 401
        assert resp.json()["detail"]["code"] == "UNAUTHORIZED"

    def test_wrong_token(self, protected_app):
        with self._settings("s3cret"):
            resp = protected_app.get("/whoami", headers={"Authorization": "Bearer nope"})

        assert resp.status_code == 401

    def test_valid_token(self, protected_app):
        with self._settings("s3cret"):
            resp = protected_app.get("/whoami", headers={"Authorization": "Bearer s3cret"})

        assert resp.status_code == 200
        assert resp.json() == {"user_id": "admin", "auth": "api_key"}
