"""
tests/test_authentication.py -- Tests for auth/authentication.py.

Covers:
  - Correct email + password returns the user (email is case-insensitive)
  - Unknown email and wrong password fail with the same message and action
  - The underlying reason is kept on .cause for logs
  - Infrastructure errors pass through unchanged
"""

from __future__ import annotations

import pytest
import pytest_asyncio

from auth.authentication import Authenticator
from core.errors import NotFoundError, ServiceError, UnauthorizedError

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def ana(users):
    return await users.create({"username": "ana", "email": "ana@example.com", "password": "secret123"})


async def test_authenticate_success(authenticator, ana):
    user = await authenticator.authenticate("ana@example.com", "secret123")
    assert user.id == ana.id


async def test_authenticate_email_case_insensitive(authenticator, ana):
    user = await authenticator.authenticate("ANA@Example.COM", "secret123")
    assert user.id == ana.id


async def test_unknown_email_and_wrong_password_are_indistinguishable(authenticator, ana):
    with pytest.raises(UnauthorizedError) as wrong_email:
        await authenticator.authenticate("nobody@example.com", "secret123")
    with pytest.raises(UnauthorizedError) as wrong_password:
        await authenticator.authenticate("ana@example.com", "not-it")

    assert wrong_email.value.to_dict() == wrong_password.value.to_dict()
    assert wrong_email.value.message == "Authentication data does not match."
    assert wrong_email.value.action == "Check that the data sent is correct."
    assert wrong_email.value.status_code == 401


async def test_failure_reason_kept_as_cause(authenticator, ana):
    with pytest.raises(UnauthorizedError) as wrong_email:
        await authenticator.authenticate("nobody@example.com", "secret123")
    with pytest.raises(UnauthorizedError) as wrong_password:
        await authenticator.authenticate("ana@example.com", "not-it")

    assert wrong_email.value.cause.message == "Email does not match."
    assert isinstance(wrong_email.value.cause.cause, NotFoundError)
    assert wrong_password.value.cause.message == "Password does not match."


async def test_unknown_email_still_runs_a_comparison(users, hasher, monkeypatch):
    calls = []
    original = hasher.compare

    async def counting_compare(plain, encoded):
        calls.append(encoded)
        return await original(plain, encoded)

    monkeypatch.setattr(hasher, "compare", counting_compare)
    authenticator = Authenticator(users, hasher)

    with pytest.raises(UnauthorizedError):
        await authenticator.authenticate("nobody@example.com", "whatever")
    assert len(calls) == 1


async def test_service_error_passes_through(hasher):
    class BrokenUsers:
        async def find_by_email(self, email):
            raise ServiceError(message="Database connection or query failed.")

    with pytest.raises(ServiceError) as exc_info:
        await Authenticator(BrokenUsers(), hasher).authenticate("ana@example.com", "secret123")
    assert not isinstance(exc_info.value, UnauthorizedError)
    assert exc_info.value.status_code == 503
