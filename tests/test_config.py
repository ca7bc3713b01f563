"""Tests for settings and the payroll policy."""

from decimal import Decimal

import pydantic
import pytest

from shiftpay.config import DEFAULT_POLICY, Settings


def make_settings(**overrides) -> Settings:
    values = {"supabase_url": "https://test.supabase.co", "supabase_jwt_secret": "secret"}
    values.update(overrides)
    return Settings(**values)


class TestSettings:
    def test_defaults(self):
        settings = make_settings()
        assert settings.payment_gateway == "mock"
        assert settings.jwt_algorithm == "HS256"
        assert settings.jwt_audience == "authenticated"
        assert settings.platform_fee_percentage == Decimal("0.15")

    def test_policy_from_settings(self):
        policy = make_settings(
            platform_fee_percentage="0.1",
            minimum_hours="3",
            overtime_threshold_hours="10",
            currency_label="MYR",
            dispatch_notifications_inline=False,
        ).payroll_policy()

        assert policy.platform_fee_percentage == Decimal("0.1")
        assert policy.minimum_hours == Decimal("3")
        assert policy.overtime_threshold_hours == Decimal("10")
        assert policy.currency_label == "MYR"
        assert policy.dispatch_notifications_inline is False

    def test_default_policy_matches_default_settings(self):
        assert make_settings().payroll_policy() == DEFAULT_POLICY

    @pytest.mark.parametrize(
        "field,value",
        [
            ("platform_fee_percentage", "1.5"),
            ("platform_fee_percentage", "-0.1"),
            ("overtime_threshold_hours", "0"),
            ("payment_gateway", "stripe"),
            ("notification_max_attempts", 0),
        ],
    )
    def test_rejects_bad_values(self, field, value):
        with pytest.raises(pydantic.ValidationError):
            make_settings(**{field: value})

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("PAYMENT_GATEWAY", "ledger")
        monkeypatch.setenv("ADMIN_USER_IDS", '["admin-1", "admin-2"]')
        settings = Settings()
        assert settings.payment_gateway == "ledger"
        assert settings.admin_user_ids == ["admin-1", "admin-2"]
