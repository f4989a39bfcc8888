"""Unit tests for AppError hierarchy and the FastAPI handlers."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from errors import (
    AppError,
    DeliveryError,
    ForbiddenError,
    GeneratorUnavailableError,
    ValidationError,
    register_error_handlers,
)


@pytest.mark.parametrize(
    "cls, status, code",
    [
        (ValidationError, 400, "validation_error"),
        (ForbiddenError, 403, "forbidden"),
        (DeliveryError, 502, "delivery_failed"),
        (GeneratorUnavailableError, 503, "generator_unavailable"),
    ],
    ids=[
        "validation",
        "forbidden",
        "delivery",
        "generator_unavailable",
    ],
)
def test_subclass_status_and_code(cls, status, code):
    e = cls("boom")
    assert isinstance(e, AppError)
    assert e.status_code == status
    assert e.error_code == code
    assert e.message == "boom"


class TestAppErrorToDict:
    def test_basic(self):
        e = ForbiddenError("disabled")
        assert e.to_dict() == {"error": "disabled", "code": "forbidden"}

    @pytest.mark.parametrize(
        "kwargs, key, value",
        [
            ({"field": "count"}, "field", "count"),
            ({"details": {"min": 1, "max": 50}}, "details", {"min": 1, "max": 50}),
        ],
        ids=["with_field", "with_details"],
    )
    def test_optional_key_present(self, kwargs, key, value):
        e = ValidationError("invalid", **kwargs)
        assert e.to_dict()[key] == value

    def test_no_optional_keys_when_absent(self):
        d = ForbiddenError("disabled").to_dict()
        assert "field" not in d
        assert "details" not in d


class TestErrorHandlers:
    @pytest.fixture
    def client(self):
        app = FastAPI()
        register_error_handlers(app)

        @app.get("/typed")
        async def typed():
            raise GeneratorUnavailableError("Secure random source unavailable")

        @app.get("/untyped")
        async def untyped():
            raise RuntimeError("kaboom")

        return TestClient(app, raise_server_exceptions=False)

    def test_app_error_rendered_as_json(self, client):
        resp = client.get("/typed")
        assert resp.status_code == 503
        assert resp.json() == {
            "error": "Secure random source unavailable",
            "code": "generator_unavailable",
        }

    def test_unhandled_error_is_generic_500(self, client):
        resp = client.get("/untyped")
        assert resp.status_code == 500
        assert resp.json()["code"] == "internal_error"
        assert "kaboom" not in resp.text
