"""
Tests for the matrix lookup and the risk appetite guard.
"""
import pytest

from riskflow.core.errors import ValidationError
from riskflow.schemas.enums import RiskLevel, TreatmentOption
from riskflow.scoring.appetite import (
    ABOVE_APPETITE_OPTIONS,
    ALL_OPTIONS,
    allowed_treatment_options,
    check_treatment_option,
    exceeds_appetite,
)
from riskflow.scoring.resolver import lookup_risk_level, validate_levels


def _make_cells(size=3):
    levels = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL]
    return {
        (l, i): levels[min((l * i - 1) * len(levels) // (size * size), len(levels) - 1)]
        for l in range(1, size + 1)
        for i in range(1, size + 1)
    }


class TestLookup:

    def test_corner_cells(self):
        cells = _make_cells()
        assert lookup_risk_level(cells, 1, 1) == RiskLevel.LOW
        assert lookup_risk_level(cells, 3, 3) == RiskLevel.CRITICAL

    def test_missing_cell_is_validation_error(self):
        cells = _make_cells()
        del cells[(2, 3)]
        with pytest.raises(ValidationError) as exc:
            lookup_risk_level(cells, 2, 3)
        assert exc.value.message == (
            "Likelihood 2 and impact 3 combination is not covered by the risk matrix."
        )

    def test_lookup_has_no_side_effects(self):
        cells = _make_cells()
        before = dict(cells)
        lookup_risk_level(cells, 2, 2)
        assert cells == before


class TestValidateLevels:

    def test_in_range(self):
        validate_levels(5, 1, 5)

    def test_likelihood_above_size(self):
        with pytest.raises(ValidationError, match="Inherent likelihood must be between 1 and 3"):
            validate_levels(3, 4, 1, label="inherent")

    def test_impact_zero(self):
        with pytest.raises(ValidationError, match="Impact must be between 1 and 5"):
            validate_levels(5, 1, 0)


class TestAppetite:

    def test_ordinal_comparison(self):
        assert exceeds_appetite(RiskLevel.CRITICAL, RiskLevel.LOW)
        assert exceeds_appetite(RiskLevel.MEDIUM, RiskLevel.LOW)
        assert not exceeds_appetite(RiskLevel.LOW, RiskLevel.LOW)
        assert not exceeds_appetite(RiskLevel.MEDIUM, RiskLevel.HIGH)

    def test_unknown_levels_do_not_constrain(self):
        assert not exceeds_appetite(None, RiskLevel.LOW)
        assert not exceeds_appetite(RiskLevel.CRITICAL, None)
        assert allowed_treatment_options(RiskLevel.CRITICAL, None) == ALL_OPTIONS

    def test_above_appetite_allows_mitigate_or_transfer(self):
        assert allowed_treatment_options(RiskLevel.HIGH, RiskLevel.MEDIUM) == ABOVE_APPETITE_OPTIONS

    def test_accept_rejected_above_appetite(self):
        """Critical residual against LOW appetite cannot be accepted; message cites both levels."""
        with pytest.raises(ValidationError) as exc:
            check_treatment_option(TreatmentOption.ACCEPT, RiskLevel.CRITICAL, RiskLevel.LOW)
        assert "CRITICAL > LOW" in exc.value.message
        assert "allowed: MITIGATE, TRANSFER" in exc.value.message

    def test_avoid_rejected_above_appetite(self):
        with pytest.raises(ValidationError):
            check_treatment_option(TreatmentOption.AVOID, RiskLevel.HIGH, RiskLevel.LOW)

    def test_mitigate_allowed_above_appetite(self):
        check_treatment_option(TreatmentOption.MITIGATE, RiskLevel.CRITICAL, RiskLevel.LOW)

    def test_accept_allowed_within_appetite(self):
        check_treatment_option(TreatmentOption.ACCEPT, RiskLevel.LOW, RiskLevel.MEDIUM)

    def test_no_option_is_not_checked(self):
        check_treatment_option(None, RiskLevel.CRITICAL, RiskLevel.LOW)
