"""Tests for cumulative date-matrix construction."""

from datetime import timedelta

from conftest import START, make_country, make_patient
from enrollment_forecast.models.simulation import SimulationValues, SSUAccrualInformation
from enrollment_forecast.models.summary import DateSpan
from enrollment_forecast.models.trial import Trial
from enrollment_forecast.simulation.matrix import (
    accrual_dates,
    build_accrual_matrix,
    build_ssu_matrix,
    count_accrued,
    cumulate,
    date_range,
    get_or_extrapolate,
    start_up_span,
)

D = [START + timedelta(days=i) for i in range(10)]


def _two_country_trial(iterations: int = 1) -> Trial:
    trial = Trial(
        enrollment_target=10,
        study_start_date=START,
        countries=[make_country("A"), make_country("B")],
    )
    for holder in (trial, *trial.countries):
        holder.results.reset(iterations)
    return trial


class TestGetOrExtrapolate:
    def test_in_span(self):
        span = DateSpan(start=D[1], end=D[3])
        assert get_or_extrapolate({D[1]: 1, D[2]: 4, D[3]: 6}, D[2], span) == 4

    def test_before_span_is_zero(self):
        span = DateSpan(start=D[1], end=D[3])
        assert get_or_extrapolate({D[1]: 1, D[2]: 4, D[3]: 6}, D[0], span) == 0

    def test_after_span_is_final_value(self):
        span = DateSpan(start=D[1], end=D[3])
        assert get_or_extrapolate({D[1]: 1, D[2]: 4, D[3]: 6}, D[9], span) == 6

    def test_empty_map_or_span(self):
        assert get_or_extrapolate({}, D[2], DateSpan(start=D[0], end=D[4])) == 0
        assert get_or_extrapolate({D[0]: 3}, D[2], DateSpan()) == 0


class TestCumulate:
    def test_matches_count_accrued_every_day(self):
        patients = [
            make_patient("A", D[2]),
            make_patient("A", D[2]),
            make_patient("A", None, D[1]),
            make_patient("A", D[5]),
        ]
        span = DateSpan(start=D[0], end=D[6])
        result = cumulate(patients, lambda p: p.enrollment_date, span)

        assert list(result) == list(date_range(D[0], D[6]))
        for day, value in result.items():
            assert value == count_accrued(patients, lambda p: p.enrollment_date, day)
        assert list(result.values()) == [0, 0, 2, 2, 2, 3, 3]

    def test_date_range_is_inclusive(self):
        assert list(date_range(D[3], D[3])) == [D[3]]
        assert list(date_range(D[4], D[3])) == []


class TestAccrualDates:
    def test_latest_is_enrollment_date(self):
        patients = [make_patient("A", D[4], D[1]), make_patient("A", D[6], D[2])]
        assert accrual_dates(patients) == (D[1], D[6])

    def test_screen_failures_only_close_on_screening(self):
        patients = [make_patient("A", None, D[2]), make_patient("A", None, D[5])]
        assert accrual_dates(patients) == (D[2], D[5])

    def test_empty_uses_fallback(self):
        assert accrual_dates([], D[3]) == (D[3], D[3])
        assert accrual_dates([]) == (None, None)


class TestBuildAccrualMatrix:
    """Country maps cover the trial span and sum to the trial map."""

    def test_country_maps_sum_to_trial(self):
        trial = _two_country_trial()
        slot = trial.results.simulation_values_list[0]
        slot.patient_accrual = [
            make_patient("A", D[1], D[0]),
            make_patient("A", D[3], D[2]),
            make_patient("B", D[5], D[4]),
            make_patient("B", None, D[4]),
        ]
        slot.earliest_accrual_date, slot.latest_accrual_date = accrual_dates(
            slot.patient_accrual
        )

        build_accrual_matrix(trial, 0)

        a = trial.country("A").results.simulation_values_list[0]
        b = trial.country("B").results.simulation_values_list[0]
        assert list(slot.cumulated_enrolled) == list(date_range(D[0], D[5]))
        for day in slot.cumulated_enrolled:
            assert slot.cumulated_enrolled[day] == (
                a.cumulated_enrolled[day] + b.cumulated_enrolled[day]
            )
        assert slot.cumulated_enrolled[D[5]] == 3
        assert slot.cumulated_screened[D[5]] == 4
        assert (a.earliest_accrual_date, a.latest_accrual_date) == (D[0], D[3])
        assert len(b.patient_accrual) == 2

    def test_country_without_patients_keeps_empty_slot(self):
        trial = _two_country_trial()
        slot = trial.results.simulation_values_list[0]
        slot.patient_accrual = [make_patient("A", D[2], D[1])]
        slot.earliest_accrual_date, slot.latest_accrual_date = D[1], D[2]

        build_accrual_matrix(trial, 0)

        assert trial.country("B").results.simulation_values_list[0].cumulated_enrolled == {}

    def test_no_patients_zero_fills_span(self):
        trial = _two_country_trial()
        slot = trial.results.simulation_values_list[0]
        slot.earliest_accrual_date = slot.latest_accrual_date = D[2]

        build_accrual_matrix(trial, 0)

        assert slot.cumulated_enrolled == {D[2]: 0}
        assert slot.cumulated_screened == {D[2]: 0}

    def test_randomized_series(self):
        trial = _two_country_trial()
        slot = trial.results.simulation_values_list[0]
        patient = make_patient("A", D[1], D[0])
        patient.randomized_date = D[4]
        slot.patient_accrual = [patient]
        slot.earliest_accrual_date, slot.latest_accrual_date = accrual_dates([patient])

        build_accrual_matrix(trial, 0)

        assert slot.latest_accrual_date == D[4]
        assert slot.cumulated_randomized[D[3]] == 0
        assert slot.cumulated_randomized[D[4]] == 1


class TestBuildSSUMatrix:
    def test_start_up_maps(self):
        trial = _two_country_trial()
        slot = trial.results.simulation_values_list[0]
        slot.ssu_accrual = [
            SSUAccrualInformation(country="A", site="A-1", ssu_time=3, ssv_date=D[0], siv_date=D[3]),
            SSUAccrualInformation(country="B", site="B-1", ssu_time=5, ssv_date=D[1], siv_date=D[6]),
        ]
        slot.earliest_siv_date, slot.latest_siv_date = D[3], D[6]
        slot.earliest_ssv_date, slot.latest_ssv_date = D[0], D[1]

        build_ssu_matrix(trial, 0)

        assert list(slot.cumulated_siv) == list(date_range(D[0], D[6]))
        assert slot.cumulated_siv[D[2]] == 0
        assert slot.cumulated_siv[D[3]] == 1
        assert slot.cumulated_siv[D[6]] == 2
        assert slot.cumulated_ssv[D[1]] == 2
        b = trial.country("B").results.simulation_values_list[0]
        assert (b.earliest_siv_date, b.latest_ssv_date) == (D[6], D[1])

    def test_start_up_span_covers_recorded_siv_before_ssv(self):
        values = SimulationValues(
            earliest_siv_date=D[0],
            latest_siv_date=D[2],
            earliest_ssv_date=D[3],
            latest_ssv_date=D[5],
        )
        assert start_up_span(values) == DateSpan(start=D[0], end=D[5])

    def test_start_up_span_empty_without_dates(self):
        assert start_up_span(SimulationValues()).is_empty
