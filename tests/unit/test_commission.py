"""
Unit tests for commission primitives.

Verifies:
- Percentage and fixed commission resolution
- Rejection of negative, float and unknown inputs
- Write-time validation of partner terms and platform percent
"""

from decimal import Decimal

import pytest

from settlement_kernel.domain.commission import (
    CommissionType,
    parse_amount,
    resolve_commission,
    validate_commission_terms,
    validate_platform_commission_percent,
)
from settlement_kernel.exceptions import (
    ErrorKind,
    InvalidAmountError,
    InvalidCommissionError,
    InvalidPlatformCommissionError,
)


class TestResolveCommission:
    """Tests for resolve_commission."""

    def test_percentage_of_base(self):
        assert resolve_commission(Decimal("900"), CommissionType.PERCENTAGE, Decimal("20")) == Decimal("180")

    def test_percentage_accepts_string_type(self):
        assert resolve_commission(Decimal("900"), "percentage", Decimal("10")) == Decimal("90")

    def test_fixed_ignores_base(self):
        assert resolve_commission(Decimal("900"), CommissionType.FIXED, Decimal("150")) == Decimal("150")
        assert resolve_commission(Decimal("0"), CommissionType.FIXED, Decimal("150")) == Decimal("150")

    def test_result_is_not_rounded(self):
        """Rounding happens when a settlement is externalized, not here."""
        result = resolve_commission(Decimal("100"), CommissionType.PERCENTAGE, Decimal("33.333"))
        assert result == Decimal("33.333")

    def test_zero_base(self):
        assert resolve_commission(Decimal("0"), CommissionType.PERCENTAGE, Decimal("50")) == Decimal("0")

    def test_percentage_above_hundred_is_computed(self):
        """The pure primitive does not cap; write-time validation does."""
        assert resolve_commission(Decimal("100"), CommissionType.PERCENTAGE, Decimal("150")) == Decimal("150")

    def test_negative_base_rejected(self):
        with pytest.raises(InvalidAmountError):
            resolve_commission(Decimal("-1"), CommissionType.PERCENTAGE, Decimal("10"))

    def test_negative_value_rejected(self):
        with pytest.raises(InvalidCommissionError) as exc_info:
            resolve_commission(Decimal("100"), CommissionType.FIXED, Decimal("-5"))
        assert exc_info.value.kind is ErrorKind.VALIDATION

    def test_unknown_type_rejected(self):
        with pytest.raises(InvalidCommissionError):
            resolve_commission(Decimal("100"), "bonus", Decimal("5"))

    def test_float_rejected(self):
        with pytest.raises(InvalidAmountError):
            resolve_commission(100.0, CommissionType.FIXED, Decimal("5"))


class TestParseAmount:
    """Tests for parse_amount."""

    def test_string_and_int_accepted(self):
        assert parse_amount("amount", "12.50") == Decimal("12.50")
        assert parse_amount("amount", 7) == Decimal("7")

    def test_zero_allowed_by_default(self):
        assert parse_amount("amount", "0") == Decimal("0")

    def test_zero_rejected_when_disallowed(self):
        with pytest.raises(InvalidAmountError) as exc_info:
            parse_amount("amount", "0", allow_zero=False)
        assert exc_info.value.field == "amount"

    @pytest.mark.parametrize("raw", ["abc", None, "NaN", "Infinity", 1.5])
    def test_not_a_decimal(self, raw):
        with pytest.raises(InvalidAmountError):
            parse_amount("amount", raw)

    def test_largest_storable_amount(self):
        value = "9" * 29 + ".999999999"
        assert parse_amount("budget", value) == Decimal(value)

    @pytest.mark.parametrize("raw", ["1" + "0" * 29, "1" + "0" * 30, "1E+40"])
    def test_too_large_rejected(self, raw):
        with pytest.raises(InvalidAmountError) as exc_info:
            parse_amount("budget", raw)
        assert exc_info.value.field == "budget"

    def test_more_than_storage_scale_rejected(self):
        assert parse_amount("amount", "0.000000001") == Decimal("0.000000001")
        assert parse_amount("amount", "1.5000000000") == Decimal("1.5")
        with pytest.raises(InvalidAmountError):
            parse_amount("amount", "0.0000000001")


class TestValidateCommissionTerms:
    """Tests for write-time commission validation."""

    def test_returns_normalized_pair(self):
        kind, value = validate_commission_terms("fixed", "150")
        assert kind is CommissionType.FIXED
        assert value == Decimal("150")

    def test_percentage_hundred_allowed(self):
        kind, value = validate_commission_terms("percentage", Decimal("100"))
        assert value == Decimal("100")

    def test_percentage_above_hundred_rejected(self):
        with pytest.raises(InvalidCommissionError) as exc_info:
            validate_commission_terms("percentage", Decimal("100.01"))
        assert exc_info.value.code == "INVALID_COMMISSION"

    def test_fixed_above_hundred_allowed(self):
        _, value = validate_commission_terms("fixed", Decimal("5000"))
        assert value == Decimal("5000")

    def test_negative_rejected(self):
        with pytest.raises(InvalidCommissionError):
            validate_commission_terms("fixed", "-1")

    def test_fixed_too_large_rejected(self):
        with pytest.raises(InvalidCommissionError):
            validate_commission_terms("fixed", "1" + "0" * 29)


class TestPlatformCommissionPercent:
    @pytest.mark.parametrize("value", ["0", "10", "12.5", "100", "10.55", "12.500"])
    def test_in_range(self, value):
        assert validate_platform_commission_percent(value) == Decimal(value)

    @pytest.mark.parametrize("value", ["-0.01", "100.01", "abc", None, "10.555", "0.001"])
    def test_out_of_range(self, value):
        with pytest.raises(InvalidPlatformCommissionError):
            validate_platform_commission_percent(value)
