"""
ListenerDispatcher — движок диспетчеризации уведомлений Home Assistant.

Принцип работы:
- intake loop отдаёт сообщения по одному, в порядке получения
- dispatch() декодирует минимальные поля и ищет listener'ы по ключу
- каждый listener проходит цепочку gate'ов в фиксированном порядке,
  первая неудача прекращает проверку этого listener'а
- callback запускается как независимая задача и никогда не блокирует intake loop
- при заданном delay вместо вызова взводится таймер (debounce, один на listener)

Порядок gate'ов для state_changed:
    time window → from_state → to_state → throttle → exception dates
    → exception ranges → enabled_when → disabled_when

Для произвольных событий from_state/to_state отсутствуют.

Всё изменяемое состояние listener'ов (last_ran, delay_timer) трогается только
из event loop'а: и intake loop, и срабатывание таймера выполняются в нём же,
поэтому гонок между проверкой и срабатыванием нет.
"""

import asyncio
import inspect
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Union

from core import logger_helper
from core.conditions import (
    check_disabled_entities,
    check_enabled_entities,
    check_exception_dates,
    check_exception_ranges,
    check_states_match,
    check_throttle,
    check_within_time_range,
)
from core.listener_registry import ListenerRegistry
from core.listeners import EntityData, EntityListener, EventData, EventListener
from core.state import StateOracle, StateQueryError
from core.time_utils import local_now, parse_timestamp


STATE_CHANGED = "state_changed"


@dataclass(frozen=True)
class MessageState:
    """Состояние сущности внутри state_changed."""

    state: str
    attributes: dict[str, Any] = field(default_factory=dict)
    last_changed: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Any) -> "MessageState":
        # old_state/new_state бывают null при появлении/удалении сущности
        if not isinstance(data, dict):
            return cls(state="")
        attributes = data.get("attributes")
        return cls(
            state=str(data.get("state") or ""),
            attributes=attributes if isinstance(attributes, dict) else {},
            last_changed=parse_timestamp(data.get("last_changed")),
        )


@dataclass(frozen=True)
class StateChangedMessage:
    entity_id: str
    old_state: MessageState
    new_state: MessageState


@dataclass(frozen=True)
class EventMessage:
    event_type: str
    data: dict[str, Any]
    raw: dict[str, Any]


Message = Union[StateChangedMessage, EventMessage]


def decode_message(raw: Any) -> Optional[Message]:
    """
    Извлечь минимальные поля для маршрутизации.

    Принимает сообщение websocket API вида {"type": "event", "event": {...}}
    или сам объект события {"event_type": ..., "data": ...}.
    Нераспознанные сообщения возвращают None.
    """
    if not isinstance(raw, dict):
        return None
    event = raw.get("event") if "event" in raw else raw
    if not isinstance(event, dict):
        return None
    event_type = event.get("event_type")
    if not isinstance(event_type, str) or not event_type:
        return None
    data = event.get("data")
    if not isinstance(data, dict):
        data = {}

    if event_type != STATE_CHANGED:
        return EventMessage(event_type=event_type, data=data, raw=raw)

    entity_id = data.get("entity_id")
    if not isinstance(entity_id, str) or not entity_id:
        return None
    return StateChangedMessage(
        entity_id=entity_id,
        old_state=MessageState.from_dict(data.get("old_state")),
        new_state=MessageState.from_dict(data.get("new_state")),
    )


class ListenerDispatcher:
    """
    Движок диспетчеризации.

    Один экземпляр на runtime. Реестр должен быть заполнен до первого dispatch().
    """

    def __init__(
        self,
        registry: ListenerRegistry,
        state: Optional[StateOracle] = None,
        *,
        runtime: Optional[Any] = None,
        metrics: Optional[Any] = None,
        state_query_timeout: Optional[float] = 5.0,
        callback_workers: int = 8,
        clock: Callable[[], datetime] = local_now,
    ):
        """
        Args:
            registry: реестр listener'ов
            state: источник текущих состояний для enabled_when/disabled_when
            runtime: CoreRuntime для логирования (может быть None)
            metrics: MonitoringModule или None
            state_query_timeout: timeout запроса состояния (секунды)
            callback_workers: размер пула потоков для синхронных callback'ов
            clock: источник текущего времени
        """
        self.registry = registry
        self.state = state
        self.runtime = runtime
        self.metrics = metrics
        self.state_query_timeout = state_query_timeout
        self.clock = clock
        self._callback_workers = callback_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        # Активные задачи callback'ов (держим ссылки, чтобы их не собрал GC)
        self._tasks: set[asyncio.Future] = set()
        # Listener'ы с взведённым таймером
        self._armed: set[EntityListener] = set()

    # ------------------------------------------------------------------
    # Вход
    # ------------------------------------------------------------------

    async def dispatch(self, raw: Any) -> None:
        """Обработать одно сырое сообщение из транспорта."""
        msg = decode_message(raw)
        if msg is None:
            self._metric("notification_dropped", "malformed")
            return
        if isinstance(msg, StateChangedMessage):
            self._metric("notification_received", "state_changed")
            await self.handle_state_changed(msg)
        else:
            self._metric("notification_received", "event")
            await self.handle_event(msg)

    async def handle_state_changed(self, msg: StateChangedMessage) -> None:
        # Изменились только атрибуты — такие обновления шумят (например, device_tracker)
        if msg.new_state.state == msg.old_state.state:
            self._metric("notification_dropped", "same_state")
            return

        listeners = self.registry.entity_listeners(msg.entity_id)
        if not listeners:
            return

        for listener in listeners:
            if not await self._entity_gates_pass(listener, msg):
                continue

            data = EntityData(
                trigger_entity_id=msg.entity_id,
                from_state=msg.old_state.state,
                from_attributes=msg.old_state.attributes,
                to_state=msg.new_state.state,
                to_attributes=msg.new_state.attributes,
                last_changed=msg.old_state.last_changed,
            )

            if listener.delay.total_seconds() > 0:
                self._arm_timer(listener, data)
                continue

            # Без delay — вызываем сразу
            listener.last_ran = self.clock()
            self._invoke(listener, data, "entity")

    async def handle_event(self, msg: EventMessage) -> None:
        listeners = self.registry.event_listeners(msg.event_type)
        if not listeners:
            return

        for listener in listeners:
            if not await self._common_gates_pass(listener, msg.event_type):
                continue
            listener.last_ran = self.clock()
            self._invoke(
                listener,
                EventData(event_type=msg.event_type, data=msg.data, raw=msg.raw),
                "event",
            )

    # ------------------------------------------------------------------
    # Gate'ы
    # ------------------------------------------------------------------

    async def _entity_gates_pass(self, listener: EntityListener, msg: StateChangedMessage) -> bool:
        now = self.clock()
        if not check_within_time_range(listener.between_start, listener.between_end, now):
            return await self._rejected(listener, "time_window", msg.entity_id)
        if not check_states_match(listener.from_state, msg.old_state.state):
            return await self._rejected(listener, "from_state", msg.entity_id)
        if not check_states_match(listener.to_state, msg.new_state.state):
            # Сущность ушла из целевого состояния — отложенный вызов больше не актуален
            self.cancel_timer(listener)
            return await self._rejected(listener, "to_state", msg.entity_id)
        return await self._remaining_gates_pass(listener, msg.entity_id, now)

    async def _common_gates_pass(self, listener: EventListener, key: str) -> bool:
        now = self.clock()
        if not check_within_time_range(listener.between_start, listener.between_end, now):
            return await self._rejected(listener, "time_window", key)
        return await self._remaining_gates_pass(listener, key, now)

    async def _remaining_gates_pass(self, listener: Any, key: str, now: datetime) -> bool:
        if not check_throttle(listener.throttle, listener.last_ran, now):
            return await self._rejected(listener, "throttle", key)
        if not check_exception_dates(listener.exception_dates, now):
            return await self._rejected(listener, "exception_dates", key)
        if not check_exception_ranges(listener.exception_ranges, now):
            return await self._rejected(listener, "exception_ranges", key)
        if listener.enabled_entities and not await check_enabled_entities(
            self.state, listener.enabled_entities, self.state_query_timeout
        ):
            return await self._rejected(listener, "enabled_entities", key)
        if listener.disabled_entities and not await check_disabled_entities(
            self.state, listener.disabled_entities, self.state_query_timeout
        ):
            return await self._rejected(listener, "disabled_entities", key)
        return True

    async def _rejected(self, listener: Any, gate: str, key: str) -> bool:
        self._metric("gate_rejected", gate)
        await logger_helper.debug(
            self.runtime,
            f"listener {listener.name} skipped by {gate} gate",
            module="dispatcher",
            key=key,
        )
        return False

    # ------------------------------------------------------------------
    # Таймеры
    # ------------------------------------------------------------------

    def _arm_timer(self, listener: EntityListener, data: EntityData) -> None:
        """Взвести (или перевзвести) таймер listener'а. Старый таймер отменяется."""
        self.cancel_timer(listener)
        loop = asyncio.get_running_loop()
        listener.delay_timer = loop.call_later(
            listener.delay.total_seconds(), self._fire_timer, listener, data
        )
        self._armed.add(listener)
        self._metric("timer_armed")

    def _fire_timer(self, listener: EntityListener, data: EntityData) -> None:
        # Пишем в тот же экземпляр listener'а, что хранится в реестре
        listener.delay_timer = None
        self._armed.discard(listener)
        listener.last_ran = self.clock()
        self._invoke(listener, data, "entity")

    def cancel_timer(self, listener: EntityListener) -> bool:
        """
        Отменить отложенный вызов listener'а.

        Returns:
            True если был взведённый таймер. Для уже сработавшего таймера — no-op.
        """
        timer = listener.delay_timer
        if timer is None:
            return False
        listener.delay_timer = None
        self._armed.discard(listener)
        timer.cancel()
        self._metric("timer_cancelled")
        return True

    def cancel_all_timers(self) -> int:
        """Отменить все взведённые таймеры (при остановке runtime)."""
        cancelled = 0
        for listener in list(self._armed):
            if self.cancel_timer(listener):
                cancelled += 1
        return cancelled

    # ------------------------------------------------------------------
    # Вызов callback'ов
    # ------------------------------------------------------------------

    def _invoke(self, listener: Any, payload: Any, kind: str) -> None:
        """
        Запустить callback, не дожидаясь его завершения.

        async def callback'и планируются как задачи event loop'а,
        обычные функции выполняются в пуле потоков.
        """
        self._metric("callback_fired", kind)
        loop = asyncio.get_running_loop()
        callback = listener.callback
        if inspect.iscoroutinefunction(callback) or inspect.iscoroutinefunction(
            getattr(callback, "__call__", None)
        ):
            future: asyncio.Future = loop.create_task(callback(payload))
        else:
            future = loop.run_in_executor(self._get_executor(), callback, payload)
        self._tasks.add(future)
        future.add_done_callback(lambda f: self._on_callback_done(listener, f))

    def _on_callback_done(self, listener: Any, future: asyncio.Future) -> None:
        self._tasks.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is None:
            return
        self._metric("callback_failed")
        report = asyncio.get_running_loop().create_task(
            logger_helper.error(
                self.runtime,
                f"listener {listener.name} callback failed: {type(exc).__name__}: {exc}",
                module="dispatcher",
                error_type=type(exc).__name__,
            )
        )
        self._tasks.add(report)
        report.add_done_callback(self._tasks.discard)

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._callback_workers, thread_name_prefix="listener-callback"
            )
        return self._executor

    async def wait_idle(self, timeout: Optional[float] = None) -> None:
        """Дождаться завершения запущенных callback'ов и записи их ошибок в лог."""
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while self._tasks:
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                return
            await asyncio.wait(set(self._tasks), timeout=remaining)

    def close(self) -> None:
        """Отменить таймеры и освободить пул потоков."""
        self.cancel_all_timers()
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    # ------------------------------------------------------------------
    # run_on_startup
    # ------------------------------------------------------------------

    async def run_startup_listeners(self) -> int:
        """
        Однократно вызвать listener'ы с run_on_startup текущим состоянием их сущностей.

        Returns:
            количество вызванных callback'ов
        """
        fired = 0
        for listener in self.registry.all_entity_listeners():
            if not listener.run_on_startup or listener.run_on_startup_completed:
                continue
            for entity_id in listener.entity_ids:
                try:
                    if self.state is None:
                        raise StateQueryError(entity_id, "no state oracle configured")
                    current = await asyncio.wait_for(
                        self.state.get(entity_id), timeout=self.state_query_timeout
                    )
                except Exception as e:
                    await logger_helper.warning(
                        self.runtime,
                        f"run_on_startup skipped for {entity_id}: {e}",
                        module="dispatcher",
                    )
                    continue
                data = EntityData(
                    trigger_entity_id=entity_id,
                    from_state=current.state,
                    from_attributes=current.attributes,
                    to_state=current.state,
                    to_attributes=current.attributes,
                    last_changed=current.last_changed,
                )
                listener.last_ran = self.clock()
                self._invoke(listener, data, "startup")
                fired += 1
            listener.run_on_startup_completed = True
        return fired

    def _metric(self, name: str, *args: Any) -> None:
        if self.metrics is None:
            return
        try:
            getattr(self.metrics, name)(*args)
        except Exception:
            # Метрики не должны влиять на диспетчеризацию
            pass
