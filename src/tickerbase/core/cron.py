"""5-field crontab expressions translated into APScheduler triggers.

APScheduler numbers weekdays from Monday (``0 = mon``) while crontab numbers
them from Sunday (``0`` and ``7`` = Sunday). The day-of-week field is
therefore expanded here and handed to ``CronTrigger`` as day names, so
``30 21 * * 1-5`` means Monday to Friday as it would under cron.
"""

from __future__ import annotations

from datetime import tzinfo

from apscheduler.triggers.cron import CronTrigger

_CRON_DAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


def crontab_trigger(expr: str, timezone: tzinfo | None = None) -> CronTrigger:
    """Build a trigger from ``minute hour day month day_of_week``.

    Raises:
        ValueError: If the expression does not have five fields or any
            field is out of range.
    """
    fields = expr.split()
    if len(fields) != 5:
        raise ValueError(f"Wrong number of fields; got {len(fields)}, expected 5")

    minute, hour, day, month, day_of_week = fields
    return CronTrigger(
        minute=minute,
        hour=hour,
        day=day,
        month=month,
        day_of_week=translate_day_of_week(day_of_week),
        timezone=timezone,
    )


def translate_day_of_week(field: str) -> str:
    """Rewrite a crontab day-of-week field as APScheduler day names.

    Supports ``*``, single days, ranges, steps and comma lists, with
    numbers (0-7) or three-letter names.
    """
    if field == "*":
        return "*"

    days: set[int] = set()
    for part in field.split(","):
        body, _, step_text = part.partition("/")
        step = int(step_text) if step_text else 1
        if step < 1:
            raise ValueError(f"Invalid step in day-of-week field: {part!r}")

        if body == "*":
            first, last = 0, 6
        elif "-" in body:
            start, end = body.split("-", 1)
            first, last = _day_number(start), _day_number(end)
        else:
            first = _day_number(body)
            last = max(first, 6) if step_text else first

        if first > last:
            raise ValueError(f"Day-of-week range runs backwards: {part!r}")
        days.update(d % 7 for d in range(first, last + 1, step))

    return ",".join(_CRON_DAYS[d] for d in sorted(days))


def _day_number(token: str) -> int:
    name = token.strip().lower()
    if name in _CRON_DAYS:
        return _CRON_DAYS.index(name)
    number = int(name)
    if not 0 <= number <= 7:
        raise ValueError(f"Day-of-week value out of range (0-7): {token!r}")
    return number
