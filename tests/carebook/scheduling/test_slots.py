from datetime import date

import pytest

from carebook.scheduling.errors import InvalidDate, InvalidRequest
from carebook.scheduling.slots import (
    WEEKDAYS,
    normalize_template,
    normalize_time,
    parse_date,
    resolve_candidates,
    weekday_name,
)

TEMPLATE = {
    'monday': ['09:00', '09:30'],
    'tuesday': ['08:00', '09:00', '13:30'],
}


def test_weekday_name_uses_calendar_weekday() -> None:
    assert weekday_name(date(2025, 6, 9)) == 'monday'
    assert weekday_name('2025-06-10') == 'tuesday'
    assert weekday_name('2025-06-15') == 'sunday'
    assert len(WEEKDAYS) == 7


def test_resolve_candidates_returns_times_for_weekday() -> None:
    assert resolve_candidates(TEMPLATE, date(2025, 6, 10)) == ['08:00', '09:00', '13:30']


def test_resolve_candidates_returns_empty_for_day_off() -> None:
    assert resolve_candidates(TEMPLATE, date(2025, 6, 11)) == []
    assert resolve_candidates({}, date(2025, 6, 10)) == []
    assert resolve_candidates(None, date(2025, 6, 10)) == []


def test_resolve_candidates_returns_a_copy() -> None:
    candidates = resolve_candidates(TEMPLATE, '2025-06-09')
    candidates.append('23:00')

    assert TEMPLATE['monday'] == ['09:00', '09:30']


@pytest.mark.parametrize('raw_date', ['2025-13-01', 'tomorrow', '', '2025/06/10'])
def test_resolve_candidates_rejects_invalid_date(raw_date: str) -> None:
    with pytest.raises(InvalidDate):
        resolve_candidates(TEMPLATE, raw_date)


def test_invalid_date_is_an_invalid_request() -> None:
    with pytest.raises(InvalidRequest):
        parse_date('not-a-date')


def test_normalize_time_pads_hours() -> None:
    assert normalize_time(' 8:30 ') == '08:30'


@pytest.mark.parametrize('raw_time', ['8', '25:00', '09:15', 'noon', ''])
def test_normalize_time_rejects_off_grid_or_malformed(raw_time: str) -> None:
    with pytest.raises(InvalidRequest):
        normalize_time(raw_time)


def test_normalize_template_sorts_dedupes_and_drops_empty_days() -> None:
    template = normalize_template({
        'Wednesday': ['10:00', '08:00', '10:00'],
        'monday': ['09:30', '09:00'],
        'friday': [],
    })

    assert template == {
        'monday': ['09:00', '09:30'],
        'wednesday': ['08:00', '10:00'],
    }
    assert list(template) == ['monday', 'wednesday']


def test_normalize_template_accepts_none() -> None:
    assert normalize_template(None) == {}


@pytest.mark.parametrize(
    'raw_template',
    [
        {'funday': ['09:00']},
        {'monday': '09:00'},
        {'monday': ['9am']},
        {'monday': ['09:00'], 'Monday': ['10:00']},
        ['monday'],
    ],
)
def test_normalize_template_rejects_invalid_templates(raw_template) -> None:
    with pytest.raises(InvalidRequest):
        normalize_template(raw_template)
