"""
tests/test_password.py -- Unit tests for auth/password.py.

Covers:
  - hash() output is a 60-char bcrypt encoding at the configured cost
  - Fresh salt per call: same input, different encodings, both verify
  - compare() accepts the right password and rejects a wrong one
  - Malformed encodings and over-long passwords compare as False
"""

from __future__ import annotations

import re

import pytest

from auth.password import PasswordHasher

BCRYPT_RE = re.compile(r"^\$2b\$(\d{2})\$[./A-Za-z0-9]{53}$")


@pytest.fixture
def fast_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


def test_from_settings_uses_environment_cost(settings):
    assert PasswordHasher.from_settings(settings).rounds == 4


@pytest.mark.asyncio
async def test_hash_is_bcrypt_at_configured_cost(fast_hasher):
    encoded = await fast_hasher.hash("correct horse")
    match = BCRYPT_RE.match(encoded)
    assert match is not None
    assert match.group(1) == "04"
    assert len(encoded) == 60


@pytest.mark.asyncio
async def test_hash_uses_fresh_salt(fast_hasher):
    first = await fast_hasher.hash("same input")
    second = await fast_hasher.hash("same input")
    assert first != second
    assert await fast_hasher.compare("same input", first)
    assert await fast_hasher.compare("same input", second)


@pytest.mark.asyncio
async def test_compare_rejects_wrong_password(fast_hasher):
    encoded = await fast_hasher.hash("right")
    assert await fast_hasher.compare("wrong", encoded) is False


@pytest.mark.asyncio
async def test_compare_reads_cost_from_encoding(fast_hasher):
    encoded = await PasswordHasher(rounds=5).hash("cross-cost")
    assert await fast_hasher.compare("cross-cost", encoded)


@pytest.mark.asyncio
async def test_compare_malformed_encoding_is_false(fast_hasher):
    assert await fast_hasher.compare("anything", "not-a-bcrypt-hash") is False


@pytest.mark.asyncio
async def test_compare_over_long_password_is_false(fast_hasher):
    encoded = await fast_hasher.hash("short")
    assert await fast_hasher.compare("x" * 200, encoded) is False


@pytest.mark.asyncio
async def test_hash_handles_non_ascii(fast_hasher):
    encoded = await fast_hasher.hash("senha-çãõ")
    assert await fast_hasher.compare("senha-çãõ", encoded)
    assert await fast_hasher.compare("senha-cao", encoded) is False
