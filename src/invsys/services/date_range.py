from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from invsys.domain.errors import ValidationError


def parse_date(value: object, label: str = "date") -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError as e:
            raise ValidationError(f"Invalid {label}: {value!r}. Expected YYYY-MM-DD.") from e
    raise ValidationError(f"Invalid {label}: {value!r}")


def date_range(date_from: object, date_to: object) -> tuple[Optional[date], Optional[date]]:
    start = parse_date(date_from, "date_from")
    end = parse_date(date_to, "date_to")
    if start is not None and end is not None and start > end:
        raise ValidationError(f"date_from ({start}) must not be after date_to ({end}).")
    return start, end
