"""
Tests for the KPI formulas and their rounding.
"""

import pytest

from practicepulse.reports.metrics import (
    average_rate,
    billable_percentage,
    billable_variance,
    mean_target,
    percentage_change,
    point_change,
    recoverability_percentage,
    recoverability_variance,
    round_currency,
    round_percentage,
)


class TestPercentageChange:
    def test_both_zero_is_none(self):
        assert percentage_change(0, 0) is None
        assert percentage_change(0.005, -0.01) is None

    def test_from_zero(self):
        assert percentage_change(50, 0) == 100
        assert percentage_change(-50, 0) == -100

    def test_relative_change_uses_absolute_base(self):
        assert percentage_change(150, 100) == 50.0
        assert percentage_change(-50, -100) == 50.0
        assert percentage_change(1, 3) == -66.7


class TestBillablePercentage:
    @pytest.mark.parametrize("standard, capacity", [(0, 0), (10, 10), (10, 40)])
    def test_zero_when_no_available_hours(self, standard, capacity):
        assert billable_percentage(5, standard, capacity) == 0

    def test_ratio_of_available_hours(self):
        assert billable_percentage(30, 40, 10) == 100.0
        assert billable_percentage(15, 40, 10) == 50.0

    def test_variance_needs_a_target(self):
        assert billable_variance(80, None) is None
        assert billable_variance(80, 75) == 5


class TestRecoverability:
    def test_full_recovery(self):
        assert recoverability_percentage(0, 1000) == 100.0

    def test_write_on_and_write_off(self):
        assert recoverability_percentage(100, 1100) == pytest.approx(110.0)
        assert recoverability_percentage(-100, 900) == pytest.approx(90.0)

    def test_non_positive_denominator_is_zero(self):
        assert recoverability_percentage(100, 100) == 0
        assert recoverability_percentage(0, 0) == 0

    def test_variance_against_fixed_target(self):
        assert recoverability_variance(100.0) == 5.0


class TestRatesAndTargets:
    def test_average_rate(self):
        assert average_rate(400, 1.6) == pytest.approx(250)
        assert average_rate(400, 0) == 0

    def test_mean_target_skips_missing_and_invalid(self):
        assert mean_target([80, None, 60, 150]) == 70
        assert mean_target([]) == 0

    def test_point_change(self):
        assert point_change(72.34, 70.0) == 2.3


class TestRounding:
    def test_currency_rounds_half_up(self):
        assert round_currency(0.125) == 0.13
        assert round_currency(1.005 + 1e-9) == 1.01
        assert round_currency(-1.234) == -1.23

    def test_percentage(self):
        assert round_percentage(12.25) == 12.3
        assert round_percentage(12.24) == 12.2
