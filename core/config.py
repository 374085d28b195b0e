"""
Конфигурация Core Runtime.

Минимальные настройки подключения к Home Assistant и диспетчера listener'ов.
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Config:
    """Конфигурация Core Runtime."""
    # Адрес Home Assistant, например http://192.168.1.10:8123
    ha_url: str = "http://localhost:8123"
    # Long-lived access token
    ha_token: str = ""

    # Тайм-аут запроса состояния сущности для enabled_when/disabled_when (секунды)
    # Истёкший timeout считается сетевой ошибкой (run_on_network_error)
    state_query_timeout: float = 5.0

    # Размер пула потоков для синхронных callback'ов
    callback_workers: int = 8

    # Размер очереди входящих сообщений (0 — без ограничения)
    intake_queue_size: int = 0

    # Тайм-аут для вызовов сервисов (секунды)
    service_call_timeout: Optional[float] = 30.0

    # Тайм-аут для shutdown (секунды)
    shutdown_timeout: int = 10

    # Logging: "text" | "json"
    log_format: str = "text"

    # Prometheus метрики диспетчера
    metrics_enabled: bool = True

    # HTTP диагностика (/metrics, /health, /listeners, /services)
    http_enabled: bool = False
    http_host: str = "127.0.0.1"
    http_port: int = 8000

    def validate(self) -> None:
        """
        Валидировать конфигурацию.

        Raises:
            ValueError: если конфигурация невалидна
        """
        if not isinstance(self.ha_url, str) or not self.ha_url.startswith(("http://", "https://")):
            raise ValueError(f"ha_url must start with http:// or https://, got: {self.ha_url!r}")
        if not isinstance(self.ha_token, str):
            raise ValueError(f"ha_token must be string, got: {type(self.ha_token).__name__}")

        if not isinstance(self.state_query_timeout, (int, float)) or self.state_query_timeout <= 0:
            raise ValueError(
                f"state_query_timeout must be positive number, got: {self.state_query_timeout}"
            )
        if not isinstance(self.callback_workers, int) or self.callback_workers <= 0:
            raise ValueError(f"callback_workers must be positive integer, got: {self.callback_workers}")
        if not isinstance(self.intake_queue_size, int) or self.intake_queue_size < 0:
            raise ValueError(
                f"intake_queue_size must be non-negative integer, got: {self.intake_queue_size}"
            )
        if self.service_call_timeout is not None and self.service_call_timeout <= 0:
            raise ValueError(
                f"service_call_timeout must be positive or None, got: {self.service_call_timeout}"
            )
        if not isinstance(self.shutdown_timeout, int) or self.shutdown_timeout <= 0:
            raise ValueError(
                f"shutdown_timeout must be positive integer, got: {self.shutdown_timeout}"
            )
        if self.log_format not in ("text", "json"):
            raise ValueError("log_format must be 'text' or 'json'")
        if not isinstance(self.http_port, int) or not 0 < self.http_port < 65536:
            raise ValueError(f"http_port must be in 1..65535, got: {self.http_port}")

    @property
    def ws_url(self) -> str:
        """URL websocket API Home Assistant."""
        base = self.ha_url.strip().rstrip("/")
        if base.startswith("https://"):
            return f"wss://{base[len('https://'):]}/api/websocket"
        return f"ws://{base[len('http://'):]}/api/websocket"

    @classmethod
    def from_env(cls) -> "Config":
        """
        Создать конфигурацию из переменных окружения.

        Raises:
            ValueError: если конфигурация невалидна
        """
        timeout_raw = os.getenv("RUNTIME_SERVICE_CALL_TIMEOUT", "30.0")
        config = cls(
            ha_url=os.getenv("RUNTIME_HA_URL", "http://localhost:8123"),
            ha_token=os.getenv("RUNTIME_HA_TOKEN", ""),
            state_query_timeout=float(os.getenv("RUNTIME_STATE_QUERY_TIMEOUT", "5.0")),
            callback_workers=int(os.getenv("RUNTIME_CALLBACK_WORKERS", "8")),
            intake_queue_size=int(os.getenv("RUNTIME_INTAKE_QUEUE_SIZE", "0")),
            service_call_timeout=float(timeout_raw) if timeout_raw.lower() != "none" else None,
            shutdown_timeout=int(os.getenv("RUNTIME_SHUTDOWN_TIMEOUT", "10")),
            log_format=os.getenv("RUNTIME_LOG_FORMAT", "text").lower(),
            metrics_enabled=os.getenv("RUNTIME_METRICS_ENABLED", "true").lower() == "true",
            http_enabled=os.getenv("RUNTIME_HTTP_ENABLED", "false").lower() == "true",
            http_host=os.getenv("RUNTIME_HTTP_HOST", "127.0.0.1"),
            http_port=int(os.getenv("RUNTIME_HTTP_PORT", "8000")),
        )
        config.validate()
        return config
