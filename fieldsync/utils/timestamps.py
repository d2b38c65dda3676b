from __future__ import annotations

from datetime import datetime, timezone as dt_timezone

from django.core.exceptions import ValidationError
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime


def to_epoch_ms(value: datetime | None) -> int | None:
    if value is None:
        return None
    return int(value.timestamp() * 1000)


def from_epoch_ms(ms) -> datetime:
    return datetime.fromtimestamp(float(ms) / 1000.0, tz=dt_timezone.utc)


def now_ms() -> int:
    return to_epoch_ms(timezone.now())


def parse_since(value) -> datetime | None:
    """Turn a client watermark into an aware datetime.

    ``None``, ``0`` and empty strings mean "full sync". Numbers (or numeric
    strings) are epoch milliseconds; anything else must be ISO 8601.
    """
    if value is None or value == "" or value == 0:
        return None
    if isinstance(value, bool):
        raise ValidationError("Invalid sync watermark.")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValidationError("Invalid sync watermark.")
        return from_epoch_ms(value) if value else None
    text = str(value).strip()
    try:
        number = float(text)
    except ValueError:
        number = None
    if number is not None:
        return parse_since(number)
    try:
        dt = parse_datetime(text)
        if dt is None:
            d = parse_date(text)
            if d is None:
                raise ValidationError("Invalid sync watermark.")
            dt = datetime.combine(d, datetime.min.time())
    except ValueError as exc:
        raise ValidationError("Invalid sync watermark.") from exc
    if timezone.is_naive(dt):
        dt = timezone.make_aware(dt, dt_timezone.utc)
    return dt
