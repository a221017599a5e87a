"""ECPay timestamp helpers. ECPay speaks Taiwan local time (UTC+8, no DST)."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from infrastructure.external.payments.ecpay.constants import DATETIME_FORMAT


TAIPEI_TZ = timezone(timedelta(hours=8), "Asia/Taipei")

_DATE_FORMAT = "%Y/%m/%d"


def now_in_taipei() -> datetime:
    return datetime.now(TAIPEI_TZ)


def format_datetime(dt: datetime) -> str:
    if dt.tzinfo is not None:
        dt = dt.astimezone(TAIPEI_TZ)
    return dt.strftime(DATETIME_FORMAT)


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse `YYYY/MM/DD HH:mm:ss` (or a bare `YYYY/MM/DD`) as Taipei time; blank -> None."""
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    for fmt in (DATETIME_FORMAT, _DATE_FORMAT):
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=TAIPEI_TZ)
        except ValueError:
            continue
    raise ValueError(f"Invalid ECPay datetime: {value!r}")
