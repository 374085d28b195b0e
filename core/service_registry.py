"""
ServiceRegistry — реестр сервисов, доступных callback'ам listener'ов.

Модули регистрируют сервисы по имени ("logger.log", "light.turn_on", ...),
пользовательские callback'и вызывают их через registry, не зная реализации.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional


# Тип для сервисной функции
ServiceFunc = Callable[..., Awaitable[Any]]


class ServiceRegistry:
    """
    Реестр сервисов.

    - сервисы регистрируются под уникальным именем
    - вызов маршрутизируется по имени
    - если задан default_timeout, каждый вызов ограничен им
    """

    def __init__(self, default_timeout: Optional[float] = None):
        """
        Args:
            default_timeout: timeout для вызовов сервисов (секунды), None — без ограничения
        """
        self._services: dict[str, ServiceFunc] = {}
        self._lock = asyncio.Lock()
        self._default_timeout = default_timeout

    async def register(self, service_name: str, func: ServiceFunc) -> None:
        """
        Зарегистрировать сервис.

        Raises:
            ValueError: если сервис с таким именем уже есть

        Пример:
            async def turn_on(entity_id: str, service_data=None):
                ...

            await service_registry.register("light.turn_on", turn_on)
        """
        async with self._lock:
            if service_name in self._services:
                raise ValueError(f"Сервис '{service_name}' уже зарегистрирован")
            self._services[service_name] = func

    async def unregister(self, service_name: str) -> None:
        async with self._lock:
            self._services.pop(service_name, None)

    async def call(self, service_name: str, *args, **kwargs) -> Any:
        """
        Вызвать сервис.

        Raises:
            ValueError: если сервис не найден
            asyncio.TimeoutError: если вызов превысил default_timeout

        Пример:
            await service_registry.call("light.turn_on", "light.pantry")
        """
        async with self._lock:
            func = self._services.get(service_name)
        if func is None:
            raise ValueError(f"Сервис '{service_name}' не найден")

        # Вызываем вне lock, чтобы медленный сервис не блокировал остальные
        if self._default_timeout is not None:
            return await asyncio.wait_for(func(*args, **kwargs), timeout=self._default_timeout)
        return await func(*args, **kwargs)

    async def call_with_timeout(self, service_name: str, timeout: float, *args, **kwargs) -> Any:
        """Вызвать сервис с явным timeout (asyncio.TimeoutError при превышении)."""
        return await asyncio.wait_for(self.call(service_name, *args, **kwargs), timeout=timeout)

    async def has_service(self, service_name: str) -> bool:
        async with self._lock:
            return service_name in self._services

    async def list_services(self) -> list[str]:
        async with self._lock:
            return sorted(self._services.keys())

    async def clear(self) -> None:
        """Очистить все сервисы."""
        async with self._lock:
            self._services.clear()
