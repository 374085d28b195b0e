"""
Core Runtime - движок listener'ов для клиента Home Assistant.
"""

from .config import Config
from .conditions import (
    check_disabled_entities,
    check_enabled_entities,
    check_exception_dates,
    check_exception_ranges,
    check_states_match,
    check_throttle,
    check_within_time_range,
)
from .dispatcher import ListenerDispatcher, decode_message
from .listener_registry import ListenerRegistry, RegistryFrozenError
from .listeners import (
    EntityData,
    EntityListener,
    EntityListenerBuilder,
    EventData,
    EventListener,
    EventListenerBuilder,
    ListenerConfigError,
    ListenerFrozenError,
)
from .runtime import CoreRuntime
from .runtime_module import RuntimeModule
from .service_registry import ServiceRegistry
from .state import EntityState, StateOracle, StateQueryError

__all__ = [
    "Config",
    "CoreRuntime",
    "EntityData",
    "EntityListener",
    "EntityListenerBuilder",
    "EntityState",
    "EventData",
    "EventListener",
    "EventListenerBuilder",
    "ListenerConfigError",
    "ListenerFrozenError",
    "ListenerDispatcher",
    "ListenerRegistry",
    "RegistryFrozenError",
    "RuntimeModule",
    "ServiceRegistry",
    "StateOracle",
    "StateQueryError",
    "check_disabled_entities",
    "check_enabled_entities",
    "check_exception_dates",
    "check_exception_ranges",
    "check_states_match",
    "check_throttle",
    "check_within_time_range",
    "decode_message",
]
