"""
Which staff take part in firm-wide ("all staff") percentage rollups.

Eligibility is judged over the two *full* financial years even when the
displayed figures are truncated at an as-of date, so the roster does not
shift as the as-of date moves.
"""

from collections.abc import Iterable, Mapping

from practicepulse.reports.standard_hours import StaffProfile, default_profile


def is_reportable(profile: StaffProfile | None) -> bool:
    """Staff without a settings row are visible and reportable by default."""
    return profile is None or profile.is_reportable


def has_billable_hours(*hours_by_period: Mapping[str, float]) -> set[str]:
    """Staff with billable hours (to the cent) above zero in any of the periods."""
    active = set()
    for hours in hours_by_period:
        active.update(name for name, value in hours.items() if round(value, 2) > 0)
    return active


def eligible_staff(
    current_fy_hours: Mapping[str, float],
    last_fy_hours: Mapping[str, float],
    profiles: Mapping[str, StaffProfile],
) -> set[str]:
    return {
        name
        for name in has_billable_hours(current_fy_hours, last_fy_hours)
        if is_reportable(profiles.get(name))
    }


def select_profiles(
    profiles: Mapping[str, StaffProfile],
    staff: str | None,
    eligible: Iterable[str] = (),
) -> dict[str, StaffProfile]:
    """Profiles that receive a standard-hours computation.

    A single selected staff member is included when reportable; otherwise
    the eligible set is used, falling back to a default working pattern for
    eligible staff that have no settings row.
    """
    names = [staff] if staff is not None else sorted(eligible)
    return {
        name: profiles.get(name) or default_profile(name)
        for name in names
        if is_reportable(profiles.get(name))
    }
