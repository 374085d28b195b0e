"""
Каталог call_service запросов к Home Assistant.

Каждый метод собирает запрос
    {"type": "call_service", "domain": ..., "service": ..., "target": {"entity_id": ...}}
и отправляет его через подключение (HomeAssistantWS.send), которое
присваивает id. Ответ Home Assistant не ожидается.
"""

from dataclasses import dataclass
from typing import Any, Optional, Protocol


class Sender(Protocol):
    async def send(self, payload: dict[str, Any]) -> int:
        ...


@dataclass
class CallServiceRequest:
    domain: str
    service: str
    entity_id: str
    service_data: Optional[dict[str, Any]] = None

    def to_message(self) -> dict[str, Any]:
        message: dict[str, Any] = {
            "type": "call_service",
            "domain": self.domain,
            "service": self.service,
            "target": {"entity_id": self.entity_id},
        }
        if self.service_data:
            message["service_data"] = self.service_data
        return message


class _DomainService:
    """Общая часть сервисов одного домена."""

    domain = ""

    def __init__(self, conn: Sender):
        self.conn = conn

    async def _call(self, service: str, entity_id: str, service_data: Optional[dict[str, Any]] = None) -> int:
        if not entity_id:
            raise ValueError(f"{self.domain}.{service}: entity_id is required")
        request = CallServiceRequest(self.domain, service, entity_id, service_data)
        return await self.conn.send(request.to_message())


class HomeAssistantService(_DomainService):
    """Сервисы домена homeassistant — работают с сущностью любого домена."""

    domain = "homeassistant"

    async def turn_on(self, entity_id: str, service_data: Optional[dict[str, Any]] = None) -> int:
        """Включить сущность. service_data передаётся как есть."""
        return await self._call("turn_on", entity_id, service_data)

    async def toggle(self, entity_id: str, service_data: Optional[dict[str, Any]] = None) -> int:
        return await self._call("toggle", entity_id, service_data)

    async def turn_off(self, entity_id: str) -> int:
        return await self._call("turn_off", entity_id)


class SwitchService(_DomainService):
    domain = "switch"

    async def turn_on(self, entity_id: str) -> int:
        return await self._call("turn_on", entity_id)

    async def toggle(self, entity_id: str) -> int:
        return await self._call("toggle", entity_id)

    async def turn_off(self, entity_id: str) -> int:
        return await self._call("turn_off", entity_id)


class LightService(_DomainService):
    domain = "light"

    async def turn_on(self, entity_id: str, service_data: Optional[dict[str, Any]] = None) -> int:
        """Включить свет. service_data — например {"brightness_pct": 40}."""
        return await self._call("turn_on", entity_id, service_data)

    async def toggle(self, entity_id: str, service_data: Optional[dict[str, Any]] = None) -> int:
        return await self._call("toggle", entity_id, service_data)

    async def turn_off(self, entity_id: str, service_data: Optional[dict[str, Any]] = None) -> int:
        return await self._call("turn_off", entity_id, service_data)


class VacuumService(_DomainService):
    """Команды пылесоса."""

    domain = "vacuum"

    async def clean_spot(self, entity_id: str) -> int:
        """Локальная уборка."""
        return await self._call("clean_spot", entity_id)

    async def locate(self, entity_id: str) -> int:
        """Найти робота (звуковой сигнал)."""
        return await self._call("locate", entity_id)

    async def pause(self, entity_id: str) -> int:
        return await self._call("pause", entity_id)

    async def return_to_base(self, entity_id: str) -> int:
        """Вернуть на базу."""
        return await self._call("return_to_base", entity_id)

    async def send_command(self, entity_id: str, service_data: Optional[dict[str, Any]] = None) -> int:
        """Произвольная команда, параметры — в service_data."""
        return await self._call("send_command", entity_id, service_data)

    async def set_fan_speed(self, entity_id: str, service_data: Optional[dict[str, Any]] = None) -> int:
        return await self._call("set_fan_speed", entity_id, service_data)

    async def start(self, entity_id: str) -> int:
        """Начать или продолжить уборку."""
        return await self._call("start", entity_id)

    async def start_pause(self, entity_id: str) -> int:
        return await self._call("start_pause", entity_id)

    async def stop(self, entity_id: str) -> int:
        return await self._call("stop", entity_id)

    async def turn_off(self, entity_id: str) -> int:
        """Остановить уборку и вернуться на базу."""
        return await self._call("turn_off", entity_id)

    async def turn_on(self, entity_id: str) -> int:
        return await self._call("turn_on", entity_id)


class Services:
    """Все сервисы каталога поверх одного подключения."""

    def __init__(self, conn: Sender):
        self.home_assistant = HomeAssistantService(conn)
        self.switch = SwitchService(conn)
        self.light = LightService(conn)
        self.vacuum = VacuumService(conn)

    def domains(self) -> list[_DomainService]:
        return [self.home_assistant, self.switch, self.light, self.vacuum]
