"""
Адаптеры для работы с внешними системами (Home Assistant websocket/REST, in-memory).
"""

from .home_assistant_rest import HomeAssistantStateClient
from .home_assistant_ws import ConnectionAuthError, ConnectionClosedError, HomeAssistantWS
from .memory import InMemoryConnection, StaticStateOracle

__all__ = [
    "HomeAssistantStateClient",
    "HomeAssistantWS",
    "ConnectionAuthError",
    "ConnectionClosedError",
    "InMemoryConnection",
    "StaticStateOracle",
]
