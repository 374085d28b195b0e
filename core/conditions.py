"""
Condition gates — предикаты, которые решают, может ли listener сработать.

Каждый gate возвращает True, если listener проходит проверку, и False,
если уведомление нужно пропустить. Все проверки времени принимают `now`
явно, чтобы их можно было детерминированно тестировать.

Gate'ы не меняют состояние listener'а: check_throttle только читает last_ran.
"""

import asyncio
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from core.state import StateOracle, StateQueryError
from core.time_utils import align_tz, local_now, parse_time


def check_within_time_range(
    start: str, end: str, now: Optional[datetime] = None
) -> bool:
    """
    Проверить окно времени суток [start, end).

    - заданы оба конца: окно может пересекать полночь (23:00–07:00)
    - задан только start: проходит, когда start уже наступил сегодня
    - задан только end: проходит, пока end не прошёл (now == end ещё проходит)
    - ничего не задано: всегда проходит
    """
    now = now or local_now()

    if start and end:
        parsed_start = parse_time(start, now)
        parsed_end = parse_time(end, now)

        # Окно через полночь, например ночник с 23:00 до 07:00
        if parsed_end < parsed_start:
            if parsed_end < now:
                # сейчас, например, 15:00 или 23:30 — конец окна завтра
                parsed_end += timedelta(days=1)
            else:
                # сейчас, например, 03:00 — окно началось вчера
                parsed_start -= timedelta(days=1)

        return parsed_start <= now < parsed_end

    if start:
        return parse_time(start, now) <= now
    if end:
        return now <= parse_time(end, now)
    return True


def check_states_match(expected: str, observed: str) -> bool:
    """Фильтр from/to state: пустое ожидаемое значение означает "любое"."""
    return not expected or expected == observed


def check_throttle(
    throttle: timedelta, last_ran: datetime, now: Optional[datetime] = None
) -> bool:
    """
    Проверить, что с последнего фактического срабатывания прошло не меньше `throttle`.

    Отсчёт ведётся от last_ran, который обновляет только диспетчер в момент вызова callback.
    """
    if throttle <= timedelta(0):
        return True
    now = now or local_now()
    elapsed = abs(now - align_tz(last_ran, now))
    return elapsed >= throttle


def check_exception_dates(
    dates: Iterable[date], now: Optional[datetime] = None
) -> bool:
    """Не срабатывать в указанные календарные дни (время суток не учитывается)."""
    now = now or local_now()
    today = now.date()
    for exception in dates:
        if isinstance(exception, datetime):
            exception = align_tz(exception, now).date()
        if exception == today:
            return False
    return True


def check_exception_ranges(ranges: Iterable, now: Optional[datetime] = None) -> bool:
    """Не срабатывать, если `now` попадает в любой из закрытых интервалов [start, end]."""
    now = now or local_now()
    for time_range in ranges:
        start = align_tz(time_range.start, now)
        end = align_tz(time_range.end, now)
        if start <= now <= end:
            return False
    return True


async def _query_state(state: StateOracle, entity_id: str, timeout: Optional[float]) -> str:
    """Получить состояние с timeout. Любая ошибка превращается в StateQueryError."""
    try:
        if timeout is not None:
            result = await asyncio.wait_for(state.get(entity_id), timeout=timeout)
        else:
            result = await state.get(entity_id)
    except StateQueryError:
        raise
    except asyncio.TimeoutError as e:
        raise StateQueryError(entity_id, "timeout") from e
    except Exception as e:
        raise StateQueryError(entity_id, f"{type(e).__name__}: {e}") from e
    return result.state


async def check_enabled_entities(
    state: Optional[StateOracle],
    infos: Iterable,
    timeout: Optional[float] = None,
) -> bool:
    """
    Listener включён, только если каждая сущность из enabled_when в нужном состоянии.

    При ошибке запроса результат определяется флагом run_on_error конкретной записи.
    """
    for info in infos:
        try:
            if state is None:
                raise StateQueryError(info.entity_id, "no state oracle configured")
            current = await _query_state(state, info.entity_id, timeout)
        except StateQueryError:
            if not info.run_on_error:
                return False
            continue
        if current != info.state:
            return False
    return True


async def check_disabled_entities(
    state: Optional[StateOracle],
    infos: Iterable,
    timeout: Optional[float] = None,
) -> bool:
    """
    Listener выключен, если хотя бы одна сущность из disabled_when в указанном состоянии.

    При ошибке запроса результат определяется флагом run_on_error конкретной записи.
    """
    for info in infos:
        try:
            if state is None:
                raise StateQueryError(info.entity_id, "no state oracle configured")
            current = await _query_state(state, info.entity_id, timeout)
        except StateQueryError:
            if not info.run_on_error:
                return False
            continue
        if current == info.state:
            return False
    return True
