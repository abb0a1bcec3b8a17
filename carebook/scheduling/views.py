"""Appointment views shared by the patient, doctor and admin screens.

Every role reads appointments through :func:`filter_appointments`. The caller
picks a :class:`ViewScope` for its identity and a bucket; "today" is always
passed in so results do not depend on the wall clock.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterable

from carebook.models.appointment import CANCELLED, COMPLETED, CONFIRMED, PENDING


class ScopeKind(str, Enum):
    PATIENT = 'patient'
    DOCTOR = 'doctor'
    CLINIC = 'clinic'
    ALL = 'all'


@dataclass(frozen=True)
class ViewScope:
    kind: ScopeKind
    value: int | None = None

    @classmethod
    def for_patient(cls, patient_id: int) -> 'ViewScope':
        return cls(ScopeKind.PATIENT, patient_id)

    @classmethod
    def for_doctor(cls, doctor_id: int) -> 'ViewScope':
        return cls(ScopeKind.DOCTOR, doctor_id)

    @classmethod
    def for_clinic(cls, clinic_id: int) -> 'ViewScope':
        return cls(ScopeKind.CLINIC, clinic_id)

    @classmethod
    def unrestricted(cls) -> 'ViewScope':
        return cls(ScopeKind.ALL)

    def contains(self, appointment) -> bool:
        if self.kind is ScopeKind.PATIENT:
            return appointment.patient_id == self.value
        if self.kind is ScopeKind.DOCTOR:
            return appointment.doctor_id == self.value
        if self.kind is ScopeKind.CLINIC:
            return appointment.clinic_id == self.value
        return True


class Bucket(str, Enum):
    TODAY = 'today'
    UPCOMING = 'upcoming'
    PAST = 'past'
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    ALL = 'all'


class SortOrder(str, Enum):
    ASCENDING = 'asc'
    DESCENDING = 'desc'


# "Next appointment" style views read forwards, history views read backwards.
DEFAULT_ORDER = {
    Bucket.TODAY: SortOrder.ASCENDING,
    Bucket.UPCOMING: SortOrder.ASCENDING,
}

_STATUS_BUCKETS = {
    Bucket.PENDING: PENDING,
    Bucket.CONFIRMED: CONFIRMED,
    Bucket.COMPLETED: COMPLETED,
    Bucket.CANCELLED: CANCELLED,
}


def in_bucket(appointment, bucket: Bucket, today: date) -> bool:
    if bucket is Bucket.TODAY:
        return appointment.date == today
    if bucket is Bucket.UPCOMING:
        # Strictly after today (not `>=`), so today and upcoming stay disjoint.
        return appointment.date > today and appointment.status not in (CANCELLED, COMPLETED)
    if bucket is Bucket.PAST:
        return appointment.date < today or appointment.status == COMPLETED
    if bucket in _STATUS_BUCKETS:
        return appointment.status == _STATUS_BUCKETS[bucket]
    return True


def matches_search(appointment, search: str | None) -> bool:
    term = (search or '').strip().lower()
    if not term:
        return True
    haystacks = (appointment.reason or '', appointment.notes or '')
    return any(term in haystack.lower() for haystack in haystacks)


def sort_appointments(appointments: Iterable, order: SortOrder) -> list:
    # Two stable passes: time ascending first, then date in the requested
    # direction, so ties on date always read earliest time first.
    by_time = sorted(appointments, key=lambda appointment: appointment.time)
    return sorted(
        by_time,
        key=lambda appointment: appointment.date,
        reverse=order is SortOrder.DESCENDING,
    )


def filter_appointments(
    appointments: Iterable,
    scope: ViewScope,
    bucket: Bucket | str,
    today: date,
    order: SortOrder | str | None = None,
    search: str | None = None,
) -> list:
    bucket = Bucket(bucket)
    order = SortOrder(order) if order is not None else DEFAULT_ORDER.get(bucket, SortOrder.DESCENDING)

    selected = [
        appointment
        for appointment in appointments
        if scope.contains(appointment)
        and matches_search(appointment, search)
        and in_bucket(appointment, bucket, today)
    ]
    return sort_appointments(selected, order)


def count_buckets(appointments: Iterable, scope: ViewScope, today: date) -> dict[str, int]:
    scoped = [appointment for appointment in appointments if scope.contains(appointment)]
    return {
        bucket.value: sum(1 for appointment in scoped if in_bucket(appointment, bucket, today))
        for bucket in Bucket
    }
