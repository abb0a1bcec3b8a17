from datetime import date, datetime

from carebook.core import config
from carebook.scheduling.errors import InvalidDate, InvalidRequest

# Index matches date.weekday(), so lookups never depend on the locale.
WEEKDAYS = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')

TIME_FORMAT = '%H:%M'


def parse_date(value: date | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise InvalidDate(f'Invalid date: {value!r}. Expected YYYY-MM-DD.', date=str(value)) from exc


def weekday_name(value: date | str) -> str:
    return WEEKDAYS[parse_date(value).weekday()]


def normalize_time(value: str) -> str:
    """Return ``value`` as zero padded ``HH:MM`` on the slot grid."""
    raw = (value or '').strip()
    try:
        parsed = datetime.strptime(raw, TIME_FORMAT)
    except ValueError as exc:
        raise InvalidRequest(f'Invalid time: {value!r}. Expected HH:MM.', time=raw or None) from exc

    if parsed.minute % config.SLOT_INCREMENT_MINUTES != 0:
        raise InvalidRequest(
            f'Times must be on {config.SLOT_INCREMENT_MINUTES}-minute boundaries.',
            time=raw,
        )

    return parsed.strftime(TIME_FORMAT)


def normalize_template(raw: dict | None) -> dict[str, list[str]]:
    """Validate a weekly template and return it with each day's times unique and sorted.

    Days without times are dropped, the same way clearing every time for a
    day removes the day from the schedule.
    """
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise InvalidRequest('Availability must map weekdays to lists of times.')

    template: dict[str, list[str]] = {}
    for day, times in raw.items():
        day_key = str(day).strip().lower()
        if day_key not in WEEKDAYS:
            raise InvalidRequest(f'Unknown weekday: {day!r}.')
        if day_key in template:
            raise InvalidRequest(f'Weekday listed twice: {day!r}.')
        if not isinstance(times, (list, tuple)):
            raise InvalidRequest(f'Times for {day_key} must be a list.')

        normalized = sorted({normalize_time(slot_time) for slot_time in times})
        if normalized:
            template[day_key] = normalized

    return {day: template[day] for day in WEEKDAYS if day in template}


def resolve_candidates(template: dict | None, target_date: date | str) -> list[str]:
    day = weekday_name(target_date)
    if not template:
        return []
    return list(template.get(day, []))
