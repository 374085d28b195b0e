"""
ServicesModule — регистрирует каталог call_service в service_registry.

Имена сервисов: "<domain>.<service>", например "light.turn_on",
"homeassistant.toggle", "vacuum.return_to_base".
"""

import inspect

from core.runtime_module import RuntimeModule
from .catalog import Services


class ServicesModule(RuntimeModule):
    """Модуль каталога сервисов Home Assistant."""

    def __init__(self, runtime, services: Services):
        super().__init__(runtime)
        self.services = services
        self._registered: list[str] = []

    @property
    def name(self) -> str:
        return "services"

    async def register(self) -> None:
        for domain_service in self.services.domains():
            for attr, method in inspect.getmembers(domain_service, inspect.iscoroutinefunction):
                if attr.startswith("_"):
                    continue
                service_name = f"{domain_service.domain}.{attr}"
                await self.runtime.service_registry.register(service_name, method)
                self._registered.append(service_name)

    async def stop(self) -> None:
        for service_name in self._registered:
            await self.runtime.service_registry.unregister(service_name)
        self._registered.clear()
