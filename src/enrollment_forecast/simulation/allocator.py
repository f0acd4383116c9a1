"""Enrollment-cap allocation across countries.

Countries simulate independently until their own stopping condition, so the
raw patient list of an iteration usually overshoots country maximums and the
trial target.  :func:`apply_caps` trims it back.
"""

from datetime import date

from enrollment_forecast.errors import UnknownAccrualConstraintError
from enrollment_forecast.models.simulation import PatientAccrualInformation
from enrollment_forecast.models.trial import AccrualConstraint, Country


def _enrollment_key(patient: PatientAccrualInformation) -> tuple[bool, date]:
    # Screen failures sort first.
    return (patient.enrollment_date is not None, patient.enrollment_date or date.min)


def apply_caps(
    patients: list[PatientAccrualInformation],
    countries: list[Country],
    target: int,
) -> list[PatientAccrualInformation]:
    """Trim one iteration's patients to country constraints and the trial target.

    Per country, enrolled patients are ranked by enrollment date.  Patients
    needed to satisfy a country minimum are mandatory; further patients a
    country may take are possible; the rest are dropped.  Possible patients
    then fill the trial's remaining capacity earliest-first.  Screen failures
    are always kept.

    Args:
        patients: Full patient list of one iteration (not modified).
        countries: Countries of the trial.
        target: Trial-wide enrollment target.

    Returns:
        The kept patients sorted by enrollment date, screen failures first.

    Raises:
        UnknownAccrualConstraintError: If a country's constraint is unknown.
    """
    screen_failures = [p for p in patients if p.enrollment_date is None]
    enrolled = [p for p in patients if p.enrollment_date is not None]

    mandatory: list[PatientAccrualInformation] = []
    possible: list[PatientAccrualInformation] = []

    for country in countries:
        try:
            constraint = AccrualConstraint(country.accrual_constraint)
        except ValueError:
            raise UnknownAccrualConstraintError(
                country.name, country.accrual_constraint
            ) from None
        actual = country.current_actual_enrollment
        if constraint.has_maximum and actual >= country.max_patient_enrollment:
            continue

        ranked = sorted(
            (p for p in enrolled if p.country == country.name), key=_enrollment_key
        )
        adjusted_min = max(0, country.min_patient_enrollment - actual)

        match constraint:
            case AccrualConstraint.MINIMUM_PATIENT:
                mandatory.extend(ranked[:adjusted_min])
                possible.extend(ranked[adjusted_min:])
            case AccrualConstraint.MAXIMUM_PATIENT:
                possible.extend(ranked[: country.max_patient_enrollment - actual])
            case AccrualConstraint.EXACT_PATIENT:
                mandatory.extend(ranked[:adjusted_min])
            case AccrualConstraint.BETWEEN:
                mandatory.extend(ranked[:adjusted_min])
                room = max(0, country.max_patient_enrollment - actual - adjusted_min)
                possible.extend(ranked[adjusted_min : adjusted_min + room])
            case AccrualConstraint.NONE:
                possible.extend(ranked)

    total_actual = sum(country.current_actual_enrollment for country in countries)
    remaining = max(0, target - total_actual - len(mandatory))

    kept = mandatory + sorted(possible, key=_enrollment_key)[:remaining] + screen_failures
    return sorted(kept, key=_enrollment_key)
