"""
tests/test_errors.py -- Unit tests for core/errors.py.

Covers:
  - Each kind carries its status code and non-empty default message/action
  - to_dict() renders exactly name, message, action, status_code
  - cause is kept on the instance but never rendered
  - UniqueViolationError is a ServiceError
"""

from __future__ import annotations

import pytest

from core.errors import (
    AppError,
    InternalServerError,
    MethodNotAllowedError,
    NotFoundError,
    ServiceError,
    UnauthorizedError,
    UniqueViolationError,
    ValidationError,
)


@pytest.mark.parametrize(
    ("error_cls", "name", "status_code"),
    [
        (ValidationError, "ValidationError", 400),
        (UnauthorizedError, "UnauthorizedError", 401),
        (NotFoundError, "NotFoundError", 404),
        (MethodNotAllowedError, "MethodNotAllowedError", 405),
        (InternalServerError, "InternalServerError", 500),
        (ServiceError, "ServiceError", 503),
    ],
)
def test_kind_defaults(error_cls, name, status_code):
    err = error_cls()
    assert isinstance(err, AppError)
    assert err.name == name
    assert err.status_code == status_code
    assert err.message
    assert err.action


def test_to_dict_has_exactly_public_fields():
    err = NotFoundError(message="No such user.", action="Check the username.")
    assert err.to_dict() == {
        "name": "NotFoundError",
        "message": "No such user.",
        "action": "Check the username.",
        "status_code": 404,
    }


def test_cause_is_kept_but_not_rendered():
    low_level = RuntimeError("password=hunter2 host=db.internal")
    err = ServiceError(cause=low_level)
    assert err.cause is low_level
    rendered = err.to_dict()
    assert "cause" not in rendered
    assert "hunter2" not in str(rendered)


def test_status_code_override_is_per_instance():
    err = InternalServerError(status_code=502)
    assert err.status_code == 502
    assert InternalServerError().status_code == 500


def test_message_is_exception_text():
    err = ValidationError(message="The username informed is already in use.")
    assert str(err) == "The username informed is already in use."


def test_unique_violation_is_service_error():
    err = UniqueViolationError()
    assert isinstance(err, ServiceError)
    assert err.name == "ServiceError"
    assert err.status_code == 503
