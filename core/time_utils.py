"""
Вспомогательные функции для работы со временем.

- разбор "HH:MM" в абсолютное время текущего дня
- разбор строк длительности в стиле "1h30m", "5s", "250ms"
- разбор timestamp'ов Home Assistant (ISO-8601, допускается суффикс Z)
"""

import re
from datetime import datetime, timedelta
from typing import Any, Optional, Union


# Начало века — "давно в прошлом", чтобы первое уведомление не попадало под throttle
def start_of_century(now: Optional[datetime] = None) -> datetime:
    now = now or local_now()
    century = now.year // 100 * 100
    return now.replace(
        year=century, month=1, day=1, hour=0, minute=0, second=0, microsecond=0
    )


def local_now() -> datetime:
    """Текущее локальное время с таймзоной."""
    return datetime.now().astimezone()


_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$")


def parse_time(value: str, now: Optional[datetime] = None) -> datetime:
    """
    Преобразовать "HH:MM" (или "HH:MM:SS") в абсолютное время на дату `now`.

    Args:
        value: время суток
        now: опорный момент (по умолчанию — текущее локальное время)

    Returns:
        datetime того же дня и той же таймзоны, что и `now`

    Raises:
        ValueError: если строка не является корректным временем суток
    """
    match = _TIME_RE.match(value or "")
    if not match:
        raise ValueError(f"invalid time of day {value!r}, expected HH:MM")
    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3) or 0)
    if hour > 23 or minute > 59 or second > 59:
        raise ValueError(f"invalid time of day {value!r}, expected HH:MM")

    now = now or local_now()
    return now.replace(hour=hour, minute=minute, second=second, microsecond=0)


_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|h|m|s)")

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: Union[str, int, float, timedelta, None]) -> timedelta:
    """
    Разобрать длительность.

    Принимает timedelta, число секунд или строку вида "1h30m", "45s", "250ms".
    Пустая строка и None означают нулевую длительность.

    Raises:
        ValueError: если строку нельзя разобрать или длительность отрицательная
    """
    if value is None or value == "":
        return timedelta(0)
    if isinstance(value, timedelta):
        result = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        result = timedelta(seconds=value)
    elif isinstance(value, str):
        raw = value.strip().replace(" ", "")
        pos = 0
        seconds = 0.0
        for part in _DURATION_PART_RE.finditer(raw):
            if part.start() != pos:
                break
            seconds += float(part.group(1)) * _DURATION_UNITS[part.group(2)]
            pos = part.end()
        if pos == 0 or pos != len(raw):
            raise ValueError(f"invalid duration {value!r}")
        result = timedelta(seconds=seconds)
    else:
        raise ValueError(f"invalid duration {value!r}")

    if result < timedelta(0):
        raise ValueError(f"duration must not be negative, got {value!r}")
    return result


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Разобрать timestamp Home Assistant. Возвращает None для пустых/битых значений."""
    if not isinstance(value, str) or not value.strip():
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = f"{raw[:-1]}+00:00"
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        return None


def align_tz(moment: datetime, reference: datetime) -> datetime:
    """
    Привести `moment` к виду `reference` (naive/aware), чтобы их можно было сравнивать.

    Naive значения считаются локальным временем.
    """
    if reference.tzinfo is None and moment.tzinfo is not None:
        return moment.astimezone().replace(tzinfo=None)
    if reference.tzinfo is not None and moment.tzinfo is None:
        return moment.astimezone(reference.tzinfo)
    return moment
