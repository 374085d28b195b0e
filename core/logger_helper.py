"""
Logger Helper — обёртка для логирования в core компонентах.

Используется диспетчером, runtime и адаптерами подключения к Home Assistant.
Пользовательские callback'и могут логировать так же:
    await logger_helper.info(runtime, "door opened", module="automations.pantry")

Запись уходит в сервис `logger.log`, который регистрирует LoggerModule
(modules/logger/module.py). До старта runtime, или если runtime не передан,
сообщение печатается в stderr.
"""

import sys
from typing import Any, Optional


LOG_SERVICE = "logger.log"


def _to_stderr(level: str, message: str, context: dict[str, Any]) -> None:
    suffix = f" {context}" if context else ""
    print(f"[{level.upper()}] {message}{suffix}", file=sys.stderr)


async def log(runtime: Optional[Any], level: str, message: str, **context: Any) -> None:
    """
    Записать сообщение через сервис logger.log.

    Args:
        runtime: CoreRuntime или любой объект с service_registry (None — сразу stderr)
        level: debug, info, warning или error; прочие значения пишутся как info
        message: сообщение
        **context: module, listener, entity_id и т.д.
    """
    level = (level or "info").lower()
    if level not in ("debug", "info", "warning", "error"):
        level = "info"

    registry = getattr(runtime, "service_registry", None)
    if registry is not None:
        try:
            if await registry.has_service(LOG_SERVICE):
                await registry.call(LOG_SERVICE, level=level, message=message, **context)
                return
        except Exception as e:
            # Сбой сервиса логирования не должен ронять диспетчер
            context = dict(context, log_service_error=repr(e))

    _to_stderr(level, message, context)


async def debug(runtime: Optional[Any], message: str, **context: Any) -> None:
    await log(runtime, "debug", message, **context)


async def info(runtime: Optional[Any], message: str, **context: Any) -> None:
    await log(runtime, "info", message, **context)


async def warning(runtime: Optional[Any], message: str, **context: Any) -> None:
    await log(runtime, "warning", message, **context)


async def error(runtime: Optional[Any], message: str, **context: Any) -> None:
    """Логировать ошибку (сбой callback'а, отказ авторизации и т.п.)."""
    await log(runtime, "error", message, **context)
