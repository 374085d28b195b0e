"""
Logger Module - встроенный модуль логирования.

Регистрируется первым при создании CoreRuntime, чтобы сервис logger.log
был доступен остальным модулям и диспетчеру.
"""

from .module import LoggerModule

__all__ = ["LoggerModule"]
