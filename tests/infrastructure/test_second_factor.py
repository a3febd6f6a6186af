"""
Tests for the TOTP second-factor provider.
"""

import pyotp
import pytest

from sudo_gate.infrastructure.adapters.second_factor import NoSecondFactorProvider
from sudo_gate.infrastructure.ports.second_factor import SecondFactorProvider


@pytest.mark.asyncio
async def test_not_required_until_enrolled(second_factor):
    assert isinstance(second_factor, SecondFactorProvider)
    assert not await second_factor.is_required("42")
    assert not await second_factor.validate("42", "123456")


@pytest.mark.asyncio
async def test_enroll_and_validate(second_factor, totp_secrets):
    secret, uri = await second_factor.enroll("42", "alice")

    assert await totp_secrets.get("42") == secret
    assert uri.startswith("otpauth://totp/")
    assert "alice" in uri
    assert await second_factor.is_required("42")

    code = pyotp.TOTP(secret).now()
    assert await second_factor.validate("42", code)
    assert await second_factor.validate("42", f" {code} ")
    assert not await second_factor.validate("42", "")
    assert not await second_factor.validate("7", code)


@pytest.mark.asyncio
async def test_removing_secret_drops_requirement(second_factor, totp_secrets):
    await second_factor.enroll("42", "alice")
    await totp_secrets.delete("42")
    assert not await second_factor.is_required("42")


@pytest.mark.asyncio
async def test_no_second_factor_provider():
    provider = NoSecondFactorProvider()
    assert not await provider.is_required("42")
    assert not await provider.validate("42", "123456")
