"""
CoreRuntime - главный класс Core Runtime.

Объединяет все компоненты:
- ListenerRegistry и ListenerDispatcher
- ServiceRegistry (logger.log, каталог call_service)
- подключение к Home Assistant (websocket) и источник состояний (REST)
- встроенные модули (logger, monitoring, services, api)

Жизненный цикл:
    runtime = CoreRuntime(config)
    runtime.register_entity_listener(...)     # только до start()
    runtime.register_event_listener(...)
    await runtime.start()
    await runtime.run_until_stopped()
    await runtime.shutdown()

Входящие сообщения попадают в очередь и обрабатываются одним intake loop'ом
строго по одному, в порядке получения.
"""

from typing import Any, Callable, Optional
import asyncio
import contextlib

from core import logger_helper
from core.config import Config
from core.dispatcher import ListenerDispatcher
from core.listener_registry import ListenerRegistry
from core.listeners import EntityListener, EventListener
from core.runtime_module import RuntimeModule
from core.service_registry import ServiceRegistry
from core.state import StateOracle
from core.time_utils import local_now


class CoreRuntime:
    """
    Главный класс Core Runtime.

    Один экземпляр владеет реестром listener'ов; глобального состояния нет,
    поэтому в тестах можно создавать сколько угодно независимых runtime.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        state: Optional[StateOracle] = None,
        connection: Optional[Any] = None,
        *,
        clock: Callable = local_now,
    ):
        """
        Args:
            config: конфигурация (по умолчанию — Config())
            state: источник состояний; по умолчанию REST клиент Home Assistant
            connection: подключение с методами start/stop/send и атрибутом on_message;
                        по умолчанию websocket клиент Home Assistant
            clock: источник текущего времени для gate'ов
        """
        self.config = config or Config()
        self.service_registry = ServiceRegistry(default_timeout=self.config.service_call_timeout)
        self.registry = ListenerRegistry()

        if state is None:
            from adapters.home_assistant_rest import HomeAssistantStateClient

            state = HomeAssistantStateClient(
                self.config.ha_url,
                self.config.ha_token,
                timeout=self.config.state_query_timeout,
            )
        self.state = state

        if connection is None:
            from adapters.home_assistant_ws import HomeAssistantWS

            connection = HomeAssistantWS(self.config.ws_url, self.config.ha_token, runtime=self)
        self.connection = connection
        self.connection.on_message = self.feed

        # Модули в порядке регистрации; logger первым, чтобы остальные могли логировать
        from modules.logger import LoggerModule
        from modules.services import Services, ServicesModule

        self.services = Services(self.connection)
        self.modules: list[RuntimeModule] = [LoggerModule(self)]
        self.monitoring = None
        if self.config.metrics_enabled:
            from modules.monitoring import MonitoringModule

            self.monitoring = MonitoringModule(self)
            self.modules.append(self.monitoring)
        self.modules.append(ServicesModule(self, self.services))
        if self.config.http_enabled:
            from modules.api import ApiModule

            self.modules.append(ApiModule(self, self.config.http_host, self.config.http_port))

        self.dispatcher = ListenerDispatcher(
            self.registry,
            self.state,
            runtime=self,
            metrics=self.monitoring,
            state_query_timeout=self.config.state_query_timeout,
            callback_workers=self.config.callback_workers,
            clock=clock,
        )

        self._queue: Optional[asyncio.Queue] = None
        self._intake_task: Optional[asyncio.Task] = None
        self._stopped: Optional[asyncio.Event] = None
        self._modules_registered = False
        self._running = False

    @property
    def is_running(self) -> bool:
        """Запущен ли runtime."""
        return self._running

    def register_entity_listener(self, *listeners: EntityListener) -> None:
        """Зарегистрировать EntityListener'ы. После start() бросает RegistryFrozenError."""
        for listener in listeners:
            self.registry.register_entity_listener(listener)

    def register_event_listener(self, *listeners: EventListener) -> None:
        """Зарегистрировать EventListener'ы. После start() бросает RegistryFrozenError."""
        for listener in listeners:
            self.registry.register_event_listener(listener)

    def get_module(self, name: str) -> Optional[RuntimeModule]:
        for module in self.modules:
            if module.name == name:
                return module
        return None

    async def start(self) -> None:
        """
        Запустить Core Runtime.

        - регистрирует и запускает модули
        - закрывает реестр listener'ов для регистрации
        - запускает intake loop и подключение к Home Assistant
        - вызывает listener'ы с run_on_startup
        """
        if self._running:
            return

        if not self._modules_registered:
            for module in self.modules:
                await module.register()
            self._modules_registered = True
        for module in self.modules:
            await module.start()

        self.registry.freeze()
        self._queue = asyncio.Queue(maxsize=self.config.intake_queue_size)
        self._stopped = asyncio.Event()
        self._running = True

        await self.connection.start()
        # Сообщения, пришедшие во время run_on_startup, ждут в очереди:
        # intake стартует только после того, как startup-вызовы выставят last_ran
        await self.dispatcher.run_startup_listeners()
        self._intake_task = asyncio.create_task(self._intake_loop())

        await logger_helper.info(
            self,
            "Core Runtime started",
            module="runtime",
            entity_keys=len(self.registry.entity_keys()),
            event_keys=len(self.registry.event_keys()),
        )

    async def feed(self, raw: Any) -> None:
        """Поставить сырое сообщение в очередь intake loop'а."""
        if self._queue is None:
            return
        await self._queue.put(raw)

    async def _intake_loop(self) -> None:
        """Обрабатывать сообщения строго по одному, в порядке получения."""
        assert self._queue is not None
        while True:
            raw = await self._queue.get()
            try:
                await self.dispatcher.dispatch(raw)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # Ошибка одного сообщения не должна останавливать обработку следующих
                await logger_helper.error(
                    self,
                    f"dispatch failed: {type(e).__name__}: {e}",
                    module="runtime",
                )
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        """Дождаться обработки всех сообщений, уже поставленных в очередь."""
        if self._queue is not None:
            await self._queue.join()

    async def run_until_stopped(self) -> None:
        """Ждать, пока runtime не будет остановлен через stop()."""
        if self._stopped is not None:
            await self._stopped.wait()

    async def stop(self) -> None:
        """
        Остановить Core Runtime.

        - останавливает подключение и intake loop
        - отменяет отложенные вызовы и дожидается уже запущенных callback'ов
        - останавливает модули в обратном порядке
        """
        if not self._running:
            return

        await self.connection.stop()

        if self._intake_task is not None:
            self._intake_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._intake_task
            self._intake_task = None

        self.dispatcher.cancel_all_timers()
        await self.dispatcher.wait_idle(timeout=self.config.shutdown_timeout)

        for module in reversed(self.modules):
            try:
                await module.stop()
            except Exception as e:
                # Ошибка одного модуля не прерывает остановку остальных
                await logger_helper.warning(
                    self, f"module {module.name} failed to stop: {e}", module="runtime"
                )
        # Модули сняли свои сервисы — при повторном start() их нужно зарегистрировать заново
        self._modules_registered = False

        self._running = False
        if self._stopped is not None:
            self._stopped.set()

    async def shutdown(self) -> None:
        """Полное завершение: stop() + освобождение пула потоков и HTTP сессии."""
        await self.stop()
        self.dispatcher.close()
        close = getattr(self.state, "close", None)
        if close is not None:
            await close()
        await self.service_registry.clear()
