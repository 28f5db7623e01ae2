"""
Tests for the staff roster used in firm-wide percentage rollups.
"""

from practicepulse.reports.eligibility import eligible_staff, has_billable_hours, is_reportable, select_profiles
from practicepulse.reports.standard_hours import StaffProfile, default_profile


class TestEligibleStaff:
    def test_hours_in_either_year_qualify(self):
        result = eligible_staff({"Alice": 1.5}, {"Bob": 2.0}, {})
        assert result == {"Alice", "Bob"}

    def test_hours_rounding_to_zero_do_not_qualify(self):
        assert has_billable_hours({"Alice": 0.004, "Bob": 0.0}) == set()

    def test_hidden_and_non_reporting_staff_are_excluded(self):
        profiles = {
            "Alice": StaffProfile("Alice", is_hidden=True),
            "Bob": StaffProfile("Bob", report=False),
            "Cara": StaffProfile("Cara", report=None),
        }
        result = eligible_staff({"Alice": 1, "Bob": 1, "Cara": 1}, {}, profiles)
        assert result == {"Cara"}

    def test_missing_settings_row_is_reportable(self):
        assert is_reportable(None)


class TestSelectProfiles:
    def test_eligible_staff_without_settings_get_default_pattern(self):
        profiles = {"Alice": StaffProfile("Alice", fte=0.5)}
        selected = select_profiles(profiles, None, {"Bob", "Alice"})
        assert list(selected) == ["Alice", "Bob"]
        assert selected["Alice"].fte == 0.5
        assert selected["Bob"] == default_profile("Bob")

    def test_single_staff_ignores_eligibility(self):
        selected = select_profiles({}, "Dana", set())
        assert list(selected) == ["Dana"]

    def test_single_hidden_staff_is_excluded(self):
        assert select_profiles({"Dana": StaffProfile("Dana", is_hidden=True)}, "Dana") == {}
