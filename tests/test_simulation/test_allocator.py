"""Tests for enrollment-cap allocation across countries."""

from datetime import timedelta

import pytest

from conftest import START, make_country, make_patient
from enrollment_forecast.errors import UnknownAccrualConstraintError
from enrollment_forecast.models.trial import AccrualConstraint
from enrollment_forecast.simulation.allocator import apply_caps


def _patients(country: str, count: int, first_day: int = 0) -> list:
    return [
        make_patient(country, START + timedelta(days=first_day + i)) for i in range(count)
    ]


def _enrolled_by_country(patients) -> dict[str, int]:
    counts: dict[str, int] = {}
    for patient in patients:
        if patient.enrollment_date is not None:
            counts[patient.country] = counts.get(patient.country, 0) + 1
    return counts


class TestApplyCaps:
    """Country constraints and the trial target trim one iteration's patients."""

    def test_unconstrained_country_trimmed_to_target(self):
        countries = [make_country("US")]
        kept = apply_caps(_patients("US", 60), countries, 50)
        assert len(kept) == 50
        assert max(p.enrollment_date for p in kept) == START + timedelta(days=49)

    def test_maximum_caps_country_before_target(self):
        countries = [
            make_country("A", AccrualConstraint.MAXIMUM_PATIENT, max_enrollment=20),
            make_country("B"),
        ]
        patients = _patients("A", 40) + _patients("B", 100, first_day=30)
        kept = apply_caps(patients, countries, 100)
        counts = _enrolled_by_country(kept)
        assert counts["A"] == 20
        assert counts["B"] == 80

    def test_maximum_respects_current_actual_enrollment(self):
        countries = [
            make_country(
                "A",
                AccrualConstraint.MAXIMUM_PATIENT,
                max_enrollment=20,
                current_actual_enrollment=15,
            )
        ]
        kept = apply_caps(_patients("A", 10), countries, 100)
        assert len(kept) == 5

    def test_country_already_at_maximum_contributes_nothing(self):
        countries = [
            make_country(
                "A",
                AccrualConstraint.MAXIMUM_PATIENT,
                max_enrollment=5,
                current_actual_enrollment=5,
            ),
            make_country("B"),
        ]
        kept = apply_caps(_patients("A", 10) + _patients("B", 10), countries, 100)
        assert _enrolled_by_country(kept) == {"B": 10}

    def test_exact_country_is_mandatory_even_past_target(self):
        countries = [
            make_country(
                "E", AccrualConstraint.EXACT_PATIENT, min_enrollment=5, max_enrollment=5
            )
        ]
        kept = apply_caps(_patients("E", 8), countries, 3)
        assert len(kept) == 5

    def test_minimum_keeps_earliest_patients(self):
        countries = [make_country("M", AccrualConstraint.MINIMUM_PATIENT, min_enrollment=3)]
        kept = apply_caps(_patients("M", 6), countries, 4)
        assert [p.enrollment_date for p in kept] == [
            START + timedelta(days=i) for i in range(4)
        ]

    def test_minimum_beats_earlier_unconstrained_patients(self):
        countries = [
            make_country("M", AccrualConstraint.MINIMUM_PATIENT, min_enrollment=3),
            make_country("U"),
        ]
        patients = _patients("U", 10) + _patients("M", 3, first_day=20)
        kept = apply_caps(patients, countries, 5)
        assert _enrolled_by_country(kept) == {"U": 2, "M": 3}

    def test_between_splits_mandatory_and_room(self):
        countries = [
            make_country(
                "W",
                AccrualConstraint.BETWEEN,
                min_enrollment=2,
                max_enrollment=4,
                current_actual_enrollment=1,
            )
        ]
        kept = apply_caps(_patients("W", 6), countries, 10)
        # one patient still needed for the minimum plus room for two more
        assert len(kept) == 3

    def test_target_counts_current_actual_enrollment(self):
        countries = [make_country("US", current_actual_enrollment=45)]
        kept = apply_caps(_patients("US", 20), countries, 50)
        assert len(kept) == 5

    def test_screen_failures_always_kept_and_sorted_first(self):
        countries = [make_country("US")]
        failures = [make_patient("US", None, START + timedelta(days=3)) for _ in range(4)]
        patients = _patients("US", 10) + failures
        kept = apply_caps(patients, countries, 5)
        assert len(kept) == 9
        assert all(p.is_screen_failure for p in kept[:4])
        enrolled_dates = [p.enrollment_date for p in kept[4:]]
        assert enrolled_dates == sorted(enrolled_dates)

    def test_input_list_is_not_modified(self):
        countries = [make_country("US")]
        patients = _patients("US", 10)
        snapshot = list(patients)
        apply_caps(patients, countries, 2)
        assert patients == snapshot

    def test_unknown_constraint_raises(self):
        country = make_country("X")
        country.accrual_constraint = "sometimes"
        with pytest.raises(UnknownAccrualConstraintError) as exc_info:
            apply_caps(_patients("X", 2), [country], 10)
        assert exc_info.value.constraint == "sometimes"

    def test_patients_of_unknown_countries_are_dropped(self):
        kept = apply_caps(_patients("ZZ", 3), [make_country("US")], 10)
        assert kept == []
