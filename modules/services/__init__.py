"""
Services Module — каталог вызовов сервисов Home Assistant (call_service).

Callback'и listener'ов используют его либо напрямую через runtime.services,
либо по имени через service_registry ("light.turn_on", "vacuum.locate", ...).
"""

from .catalog import (
    CallServiceRequest,
    HomeAssistantService,
    LightService,
    Services,
    SwitchService,
    VacuumService,
)
from .module import ServicesModule

__all__ = [
    "CallServiceRequest",
    "HomeAssistantService",
    "LightService",
    "Services",
    "SwitchService",
    "VacuumService",
    "ServicesModule",
]
