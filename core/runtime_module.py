"""
Базовый класс для встроенных модулей Runtime (RuntimeModule).

Модули — это домены, которые подключаются к CoreRuntime напрямую:
logger (сервис logger.log), monitoring (prometheus метрики диспетчера),
services (каталог вызовов Home Assistant).

КОНТРАКТ LIFECYCLE:
- register() вызывается ровно один раз, до start()
- start() вызывается при runtime.start(), stop() — при runtime.stop()
- Порядок: __init__ → register() → start() → stop()
- stop() должен быть безопасным, даже если start() не вызывался
"""

from abc import ABC, abstractmethod
from typing import Any


class RuntimeModule(ABC):
    """Базовый класс для встроенных модулей Runtime."""

    def __init__(self, runtime: Any):
        """
        Args:
            runtime: экземпляр CoreRuntime
        """
        self.runtime = runtime

    @property
    @abstractmethod
    def name(self) -> str:
        """Уникальное имя модуля (например, "logger", "monitoring")."""

    async def register(self) -> None:
        """Регистрация сервисов в service_registry. По умолчанию — no-op."""

    async def start(self) -> None:
        """Запуск модуля. По умолчанию — no-op."""

    async def stop(self) -> None:
        """Остановка модуля и отмена регистрации сервисов. По умолчанию — no-op."""
