"""
Tests for the Tax Engine.

Covers:
- Gross split and net surcharge at 19 %, 7 % and 0 %
- ROUND_HALF_UP on exact half cents
- Round trip within one cent (property)
- Tax key resolution per direction and rate
- Input validation
"""

from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from ledger_engines.tax import (
    TaxEngine,
    TaxKey,
    TaxKind,
    split_from_net,
    split_gross,
)
from ledger_kernel.exceptions import ValidationError

RATES = [Decimal("0"), Decimal("7"), Decimal("19")]


class TestSplitGross:
    def test_119_euro_at_19_percent(self):
        result = split_gross(11900, Decimal("19"))
        assert (result.net, result.tax, result.gross) == (10000, 1900, 11900)

    def test_107_euro_at_7_percent(self):
        result = split_gross(10700, Decimal("7"))
        assert (result.net, result.tax) == (10000, 700)

    def test_zero_rate_has_no_tax(self):
        result = split_gross(4999, Decimal("0"))
        assert (result.net, result.tax) == (4999, 0)

    def test_zero_gross(self):
        result = split_gross(0, Decimal("19"))
        assert (result.net, result.tax, result.gross) == (0, 0, 0)

    def test_net_plus_tax_is_gross_for_odd_amounts(self):
        for gross in (1, 2, 3, 99, 101, 12345, 999_999):
            result = split_gross(gross, Decimal("19"))
            assert result.net + result.tax == gross

    def test_rate_is_normalized(self):
        assert split_gross(11900, Decimal("19.0")).rate == Decimal("19.00")


class TestSplitFromNet:
    def test_100_euro_at_19_percent(self):
        result = split_from_net(10000, Decimal("19"))
        assert (result.net, result.tax, result.gross) == (10000, 1900, 11900)

    def test_half_cent_rounds_up(self):
        # 50 * 7 % = 3.5 cents
        assert split_from_net(50, Decimal("7")).tax == 4

    def test_below_half_cent_rounds_down(self):
        # 10 * 19 % = 1.9 -> 2; 2 * 19 % = 0.38 -> 0
        assert split_from_net(10, Decimal("19")).tax == 2
        assert split_from_net(2, Decimal("19")).tax == 0


class TestRoundTrip:
    @given(
        gross=st.integers(min_value=0, max_value=10**12),
        rate=st.sampled_from(RATES),
    )
    def test_net_surcharge_of_gross_split_is_within_one_cent(self, gross, rate):
        net = split_gross(gross, rate).net
        assert abs(split_from_net(net, rate).gross - gross) <= 1

    @given(
        net=st.integers(min_value=0, max_value=10**12),
        rate=st.sampled_from(RATES),
    )
    def test_gross_split_of_net_surcharge_is_within_one_cent(self, net, rate):
        gross = split_from_net(net, rate).gross
        assert abs(split_gross(gross, rate).net - net) <= 1

    @given(gross=st.integers(min_value=0, max_value=10**9), rate=st.sampled_from(RATES))
    def test_split_never_loses_a_cent(self, gross, rate):
        result = split_gross(gross, rate)
        assert result.net + result.tax == gross
        assert result.net >= 0 and result.tax >= 0


class TestValidation:
    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            split_gross(-1, Decimal("19"))
        assert exc_info.value.step == "tax_split"

    def test_float_amount_rejected(self):
        with pytest.raises(ValidationError):
            split_gross(119.0, Decimal("19"))

    def test_rate_above_hundred_rejected(self):
        with pytest.raises(ValidationError):
            split_from_net(100, Decimal("101"))

    def test_negative_rate_rejected(self):
        with pytest.raises(ValidationError):
            split_from_net(100, Decimal("-7"))


class TestTaxEngine:
    def setup_method(self):
        self.engine = TaxEngine(
            [
                TaxKey("USt19", "Umsatzsteuer 19 %", Decimal("19"), TaxKind.OUTPUT, "1776"),
                TaxKey("USt7", "Umsatzsteuer 7 %", Decimal("7"), TaxKind.OUTPUT, "1771"),
                TaxKey("VSt19", "Vorsteuer 19 %", Decimal("19"), TaxKind.INPUT, "1576"),
                TaxKey("frei", "steuerfrei", Decimal("0"), TaxKind.NONE),
            ]
        )

    def test_resolve_output_and_input(self):
        assert self.engine.resolve(TaxKind.OUTPUT, Decimal("19")).code == "USt19"
        assert self.engine.resolve("input", Decimal("19.00")).code == "VSt19"
        assert self.engine.resolve(TaxKind.OUTPUT, Decimal("7")).account_code == "1771"

    def test_zero_rate_resolves_to_none(self):
        assert self.engine.resolve(TaxKind.INPUT, Decimal("0")) is None

    def test_missing_key_is_validation_error(self):
        with pytest.raises(ValidationError, match="No input tax key"):
            self.engine.resolve(TaxKind.INPUT, Decimal("7"))

    def test_duplicate_code_rejected(self):
        key = TaxKey("X", "x", Decimal("5"), TaxKind.OUTPUT, "1776")
        with pytest.raises(ValidationError):
            TaxEngine([key, key])

    def test_get_unknown_code(self):
        with pytest.raises(ValidationError):
            self.engine.get("USt16")

    def test_codes(self):
        assert self.engine.codes() == frozenset({"USt19", "USt7", "VSt19", "frei"})

    def test_from_configured_definitions(self, ledger_config):
        engine = TaxEngine.from_definitions(ledger_config.tax_keys)
        assert engine.get("VSt7").rate == Decimal("7")
        assert engine.get("USt19").kind == TaxKind.OUTPUT
