"""
API Module — встроенный HTTP сервер диагностики.

Включается через Config.http_enabled (RUNTIME_HTTP_ENABLED=true).
"""

from .module import ApiModule

__all__ = ["ApiModule"]
