"""
Tests for the commission rule table, money rounding and app configuration.
"""
from decimal import Decimal

import pytest

from config import normalize_database_url
from partners.config import CommissionConfigHelper, quantize_money
from utils import validate_email, parse_decimal


class TestCommissionRuleTable:

    def test_percentages(self):
        assert CommissionConfigHelper.get_commission_percentage(1) == Decimal("0.60")
        assert CommissionConfigHelper.get_commission_percentage(2) == Decimal("0.20")
        assert CommissionConfigHelper.get_commission_percentage(3) == Decimal("0.10")

    @pytest.mark.parametrize("level", [0, 4, -1, "1", None, True])
    def test_outside_table_is_zero(self, level):
        assert CommissionConfigHelper.get_commission_percentage(level) == Decimal("0")

    def test_calculate_amount(self):
        assert CommissionConfigHelper.calculate_amount(1000, 1) == Decimal("600.00")
        assert CommissionConfigHelper.calculate_amount("99.99", 3) == Decimal("10.00")
        assert CommissionConfigHelper.calculate_amount(1000, 4) == Decimal("0.00")

    def test_configuration_is_valid(self):
        valid, message = CommissionConfigHelper.validate_configuration()

        assert valid, message
        assert "90%" in message

    def test_configuration_rejects_overpayment(self, monkeypatch):
        monkeypatch.setattr(CommissionConfigHelper, "COMMISSION_PERCENTAGES", {
            1: Decimal("0.80"), 2: Decimal("0.20"), 3: Decimal("0.10"),
        })

        valid, _ = CommissionConfigHelper.validate_configuration()

        assert not valid

    def test_distribution_summary(self):
        summary = CommissionConfigHelper.get_distribution_summary()

        assert summary["max_level"] == 3
        assert summary["total_percentage"] == pytest.approx(0.9)
        assert summary["distribution"][1]["percentage_display"] == "60%"


class TestMoney:

    @pytest.mark.parametrize("value,expected", [
        ("0.005", "0.01"),
        ("0.004", "0.00"),
        ("2.675", "2.68"),
        (10, "10.00"),
    ])
    def test_quantize_half_up(self, value, expected):
        assert quantize_money(value) == Decimal(expected)

    @pytest.mark.parametrize("value,expected", [
        ("12.50", Decimal("12.50")),
        (3, Decimal("3")),
        ("abc", None),
        ("NaN", None),
        (True, None),
        (None, None),
    ])
    def test_parse_decimal(self, value, expected):
        assert parse_decimal(value) == expected


class TestSettings:

    @pytest.mark.parametrize("url,expected", [
        ("postgres://u:p@host/db", "postgresql+pg8000://u:p@host/db"),
        ("postgresql://u:p@host/db", "postgresql+pg8000://u:p@host/db"),
        ("sqlite:///local.db", "sqlite:///local.db"),
    ])
    def test_normalize_database_url(self, url, expected):
        assert normalize_database_url(url) == expected

    def test_email_validation(self):
        assert validate_email("partner@example.co.uk")
        assert not validate_email("partner@")
        assert not validate_email(None)

    def test_test_config_is_applied(self, app):
        assert app.testing
        assert app.config["SQLALCHEMY_DATABASE_URI"] == "sqlite://"
