"""
Listener'ы — зарегистрированные правила "ключ → условия → callback".

Два вида:
- EntityListener — реагирует на state_changed конкретных сущностей
- EventListener — реагирует на произвольные события по их типу

Listener создаётся через пошаговый builder, который не даёт вызвать call()
раньше entity_ids()/event_types() и build() раньше call():

    listener = (
        EntityListenerBuilder()
        .entity_ids("binary_sensor.pantry_door")
        .call(pantry_lights)
        .to_state("on")
        .throttle("30s")
        .build()
    )

После build() меняются только last_ran, delay_timer и run_on_startup_completed —
их пишет диспетчер. Запись в остальные поля поднимает ListenerFrozenError.
"""

import asyncio
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Any, Callable, Optional, Union

from core.time_utils import parse_duration, parse_time, start_of_century


class ListenerConfigError(ValueError):
    """Ошибка конфигурации listener'а. Это ошибка программы, она должна прерывать старт."""


DurationLike = Union[str, int, float, timedelta]


@dataclass(frozen=True)
class EnabledDisabledInfo:
    """Условие enabled_when / disabled_when на состояние другой сущности."""

    entity_id: str
    state: str
    run_on_error: bool


@dataclass(frozen=True)
class TimeRange:
    """Закрытый интервал [start, end]."""

    start: datetime
    end: datetime


@dataclass(frozen=True)
class EntityData:
    """Payload callback'а EntityListener."""

    trigger_entity_id: str
    from_state: str
    from_attributes: dict[str, Any]
    to_state: str
    to_attributes: dict[str, Any]
    last_changed: Optional[datetime]


@dataclass(frozen=True)
class EventData:
    """Payload callback'а EventListener: тип события, его data и исходное сообщение."""

    event_type: str
    data: dict[str, Any]
    raw: dict[str, Any]


class ListenerFrozenError(AttributeError):
    """Попытка изменить конфигурацию listener'а после build()."""


_RUNTIME_FIELDS = frozenset({"last_ran", "delay_timer", "run_on_startup_completed"})


class _SealedListener:
    """
    После __init__ разрешена запись только в runtime-поля диспетчера.

    dataclasses.replace в builder'ах создаёт новый экземпляр через __init__,
    поэтому пошаговая сборка продолжает работать.
    """

    def __post_init__(self) -> None:
        object.__setattr__(self, "_sealed", True)

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, "_sealed", False) and name not in _RUNTIME_FIELDS:
            raise ListenerFrozenError(f"cannot assign to field {name!r} of a built listener")
        object.__setattr__(self, name, value)

    def __delattr__(self, name: str) -> None:
        raise ListenerFrozenError(f"cannot delete field {name!r} of a built listener")


@dataclass(eq=False)
class EntityListener(_SealedListener):
    entity_ids: tuple[str, ...]
    callback: Callable[[EntityData], Any]
    name: str = ""
    from_state: str = ""
    to_state: str = ""
    between_start: str = ""
    between_end: str = ""
    throttle: timedelta = timedelta(0)
    delay: timedelta = timedelta(0)
    exception_dates: tuple[date, ...] = ()
    exception_ranges: tuple[TimeRange, ...] = ()
    enabled_entities: tuple[EnabledDisabledInfo, ...] = ()
    disabled_entities: tuple[EnabledDisabledInfo, ...] = ()
    run_on_startup: bool = False

    # Изменяемое runtime-состояние, принадлежит диспетчеру
    last_ran: datetime = field(default_factory=start_of_century)
    delay_timer: Optional[asyncio.TimerHandle] = field(default=None, repr=False)
    run_on_startup_completed: bool = False

    @property
    def match_keys(self) -> tuple[str, ...]:
        return self.entity_ids


@dataclass(eq=False)
class EventListener(_SealedListener):
    event_types: tuple[str, ...]
    callback: Callable[[EventData], Any]
    name: str = ""
    between_start: str = ""
    between_end: str = ""
    throttle: timedelta = timedelta(0)
    exception_dates: tuple[date, ...] = ()
    exception_ranges: tuple[TimeRange, ...] = ()
    enabled_entities: tuple[EnabledDisabledInfo, ...] = ()
    disabled_entities: tuple[EnabledDisabledInfo, ...] = ()

    last_ran: datetime = field(default_factory=start_of_century)

    @property
    def match_keys(self) -> tuple[str, ...]:
        return self.event_types


# ---------------------------------------------------------------------------
# Валидация
# ---------------------------------------------------------------------------


def _clean_keys(keys: tuple, what: str) -> tuple[str, ...]:
    if len(keys) == 1 and isinstance(keys[0], (list, tuple, set, frozenset)):
        keys = tuple(keys[0])
    cleaned: list[str] = []
    for key in keys:
        if not isinstance(key, str) or not key.strip():
            raise ListenerConfigError(f"{what} must be non-empty strings, got {key!r}")
        key = key.strip()
        if key not in cleaned:
            cleaned.append(key)
    if not cleaned:
        raise ListenerConfigError(f"must pass at least one value to {what}")
    return tuple(cleaned)


def _check_time(value: str, what: str) -> str:
    if not value:
        return ""
    try:
        parse_time(value)
    except ValueError as e:
        raise ListenerConfigError(f"{what}: {e}") from e
    return value


def _duration(value: DurationLike, what: str) -> timedelta:
    try:
        return parse_duration(value)
    except ValueError as e:
        raise ListenerConfigError(f"{what}: {e}") from e


def _enabled_disabled(kind: str, entity_id: str, state: str, run_on_error: bool) -> EnabledDisabledInfo:
    if not entity_id:
        raise ListenerConfigError(
            f"entity_id is empty in {kind} entity_id={entity_id!r} state={state!r} "
            f"run_on_network_error={run_on_error!r}"
        )
    return EnabledDisabledInfo(entity_id=entity_id, state=state, run_on_error=run_on_error)


def _callback_name(callback: Callable) -> str:
    return getattr(callback, "__qualname__", None) or getattr(callback, "__name__", None) or repr(callback)


# ---------------------------------------------------------------------------
# Builder'ы EntityListener
# ---------------------------------------------------------------------------


class EntityListenerBuilder:
    """Шаг 1: выбор сущностей."""

    def entity_ids(self, *entity_ids: str) -> "_EntityListenerCallStage":
        return _EntityListenerCallStage(_clean_keys(entity_ids, "entity_ids()"))


class _EntityListenerCallStage:
    """Шаг 2: callback."""

    def __init__(self, entity_ids: tuple[str, ...]):
        self._entity_ids = entity_ids

    def call(self, callback: Callable[[EntityData], Any]) -> "EntityListenerOptions":
        if not callable(callback):
            raise ListenerConfigError(f"callback must be callable, got {callback!r}")
        return EntityListenerOptions(
            EntityListener(
                entity_ids=self._entity_ids,
                callback=callback,
                name=_callback_name(callback),
            )
        )


class EntityListenerOptions:
    """Шаг 3: необязательные условия и build()."""

    def __init__(self, listener: EntityListener):
        self._listener = listener

    def _with(self, **changes: Any) -> "EntityListenerOptions":
        return EntityListenerOptions(replace(self._listener, **changes))

    def name(self, name: str) -> "EntityListenerOptions":
        return self._with(name=name)

    def only_between(self, start: str, end: str) -> "EntityListenerOptions":
        return self._with(
            between_start=_check_time(start, "only_between start"),
            between_end=_check_time(end, "only_between end"),
        )

    def only_after(self, start: str) -> "EntityListenerOptions":
        return self._with(between_start=_check_time(start, "only_after"))

    def only_before(self, end: str) -> "EntityListenerOptions":
        return self._with(between_end=_check_time(end, "only_before"))

    def from_state(self, state: str) -> "EntityListenerOptions":
        return self._with(from_state=state)

    def to_state(self, state: str) -> "EntityListenerOptions":
        return self._with(to_state=state)

    def duration(self, delay: DurationLike) -> "EntityListenerOptions":
        """Сработать, только если сущность удерживает состояние `delay` (debounce)."""
        return self._with(delay=_duration(delay, "duration"))

    def throttle(self, throttle: DurationLike) -> "EntityListenerOptions":
        return self._with(throttle=_duration(throttle, "throttle"))

    def exception_dates(self, first: date, *rest: date) -> "EntityListenerOptions":
        return self._with(exception_dates=(first, *rest))

    def exception_range(self, start: datetime, end: datetime) -> "EntityListenerOptions":
        if end < start:
            raise ListenerConfigError(f"exception_range end {end} is before start {start}")
        return self._with(
            exception_ranges=self._listener.exception_ranges + (TimeRange(start, end),)
        )

    def run_on_startup(self) -> "EntityListenerOptions":
        return self._with(run_on_startup=True)

    def enabled_when(self, entity_id: str, state: str, run_on_network_error: bool) -> "EntityListenerOptions":
        """
        Включать listener, только если текущее состояние `entity_id` равно `state`.

        Если состояние не удалось получить, listener срабатывает при run_on_network_error=True.
        """
        info = _enabled_disabled("enabled_when", entity_id, state, run_on_network_error)
        return self._with(enabled_entities=self._listener.enabled_entities + (info,))

    def disabled_when(self, entity_id: str, state: str, run_on_network_error: bool) -> "EntityListenerOptions":
        """
        Выключать listener, когда текущее состояние `entity_id` равно `state`.

        Если состояние не удалось получить, listener срабатывает при run_on_network_error=True.
        """
        info = _enabled_disabled("disabled_when", entity_id, state, run_on_network_error)
        return self._with(disabled_entities=self._listener.disabled_entities + (info,))

    def build(self) -> EntityListener:
        return replace(self._listener)


# ---------------------------------------------------------------------------
# Builder'ы EventListener
# ---------------------------------------------------------------------------


class EventListenerBuilder:
    """Шаг 1: выбор типов событий."""

    def event_types(self, *event_types: str) -> "_EventListenerCallStage":
        return _EventListenerCallStage(_clean_keys(event_types, "event_types()"))


class _EventListenerCallStage:
    def __init__(self, event_types: tuple[str, ...]):
        self._event_types = event_types

    def call(self, callback: Callable[[EventData], Any]) -> "EventListenerOptions":
        if not callable(callback):
            raise ListenerConfigError(f"callback must be callable, got {callback!r}")
        return EventListenerOptions(
            EventListener(
                event_types=self._event_types,
                callback=callback,
                name=_callback_name(callback),
            )
        )


class EventListenerOptions:
    def __init__(self, listener: EventListener):
        self._listener = listener

    def _with(self, **changes: Any) -> "EventListenerOptions":
        return EventListenerOptions(replace(self._listener, **changes))

    def name(self, name: str) -> "EventListenerOptions":
        return self._with(name=name)

    def only_between(self, start: str, end: str) -> "EventListenerOptions":
        return self._with(
            between_start=_check_time(start, "only_between start"),
            between_end=_check_time(end, "only_between end"),
        )

    def only_after(self, start: str) -> "EventListenerOptions":
        return self._with(between_start=_check_time(start, "only_after"))

    def only_before(self, end: str) -> "EventListenerOptions":
        return self._with(between_end=_check_time(end, "only_before"))

    def throttle(self, throttle: DurationLike) -> "EventListenerOptions":
        return self._with(throttle=_duration(throttle, "throttle"))

    def exception_dates(self, first: date, *rest: date) -> "EventListenerOptions":
        return self._with(exception_dates=(first, *rest))

    def exception_range(self, start: datetime, end: datetime) -> "EventListenerOptions":
        if end < start:
            raise ListenerConfigError(f"exception_range end {end} is before start {start}")
        return self._with(
            exception_ranges=self._listener.exception_ranges + (TimeRange(start, end),)
        )

    def enabled_when(self, entity_id: str, state: str, run_on_network_error: bool) -> "EventListenerOptions":
        info = _enabled_disabled("event listener enabled_when", entity_id, state, run_on_network_error)
        return self._with(enabled_entities=self._listener.enabled_entities + (info,))

    def disabled_when(self, entity_id: str, state: str, run_on_network_error: bool) -> "EventListenerOptions":
        info = _enabled_disabled("event listener disabled_when", entity_id, state, run_on_network_error)
        return self._with(disabled_entities=self._listener.disabled_entities + (info,))

    def build(self) -> EventListener:
        return replace(self._listener)
