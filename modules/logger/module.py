"""
LoggerModule — встроенный модуль логирования.

Предоставляет сервис `logger.log`, через который пишут диспетчер,
runtime, адаптеры Home Assistant и пользовательские callback'и.

Уровень фильтрации берётся из LOG_LEVEL (имена уровней модуля `logging`).
Формат — text (по умолчанию) или json, из Config.log_format / RUNTIME_LOG_FORMAT:
    text: [LEVEL] [module] message (key=value ...)
    json: {"level": ..., "message": ..., "module": ..., "context": {...}}
"""

import json
import logging
import os
import sys
from typing import Any, Optional, TextIO

from core.runtime_module import RuntimeModule


_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_SCALARS = (str, int, float, bool, type(None))


def resolve_format(runtime: Any) -> str:
    """Формат вывода: Config.log_format, затем RUNTIME_LOG_FORMAT / LOG_FORMAT."""
    config = getattr(runtime, "config", None)
    fmt = getattr(config, "log_format", None) or os.getenv("RUNTIME_LOG_FORMAT") or os.getenv("LOG_FORMAT")
    fmt = (fmt or "text").lower()
    return fmt if fmt in ("text", "json") else "text"


class LoggerModule(RuntimeModule):
    """
    Модуль логирования.

    Не меняет глобальное состояние logging (root logger не трогается).
    """

    def __init__(self, runtime: Any, stream: Optional[TextIO] = None):
        super().__init__(runtime)
        self._stream = stream
        self.level = logging.INFO
        self.format = "text"

    @property
    def name(self) -> str:
        return "logger"

    async def register(self) -> None:
        self.level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
        self.format = resolve_format(self.runtime)
        await self.runtime.service_registry.register("logger.log", self._log_service)

    async def start(self) -> None:
        await self._log_service("info", "Logger module started", module="logger", format=self.format)

    async def stop(self) -> None:
        await self._log_service("info", "Logger module stopped", module="logger")
        await self.runtime.service_registry.unregister("logger.log")

    async def _log_service(self, level: str, message: str, **context: Any) -> None:
        """
        Сервис логирования.

        Args:
            level: уровень (debug, info, warning, error); неизвестный считается info
            message: сообщение
            **context: контекст (module, listener, entity_id и т.д.)
        """
        lvl = (level or "").lower()
        if lvl not in _LEVELS:
            lvl = "info"
        if _LEVELS[lvl] < self.level:
            return

        if self.format == "json":
            line = json.dumps(self._json_event(lvl, message, context), ensure_ascii=False)
        else:
            line = self._text_line(lvl, message, context)
        print(line, file=self._stream or sys.stdout, flush=True)

    @staticmethod
    def _json_event(lvl: str, message: str, context: dict[str, Any]) -> dict[str, Any]:
        event: dict[str, Any] = {"level": lvl.upper(), "message": message}
        extra = dict(context)
        module = extra.pop("module", None)
        if module:
            event["module"] = module
        if extra:
            event["context"] = {
                k: v if isinstance(v, _SCALARS + (dict, list)) else str(v) for k, v in extra.items()
            }
        return event

    @staticmethod
    def _text_line(lvl: str, message: str, context: dict[str, Any]) -> str:
        module = context.get("module")
        head = f"[{lvl.upper()}] [{module}]" if module else f"[{lvl.upper()}]"
        # В текстовом формате выводим только скалярный контекст
        pairs = " ".join(
            f"{k}={v}" for k, v in context.items() if k != "module" and isinstance(v, _SCALARS)
        )
        return f"{head} {message} ({pairs})" if pairs else f"{head} {message}"
