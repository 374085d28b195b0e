"""
ApiModule — встроенный HTTP сервер диагностики runtime.

Маршруты:
- /metrics, /health — router MonitoringModule (если метрики включены)
- /listeners — ключи реестра и количество listener'ов на ключ
- /services — имена сервисов в service_registry

Сервер uvicorn запускается в отдельном потоке, чтобы не конкурировать
с event loop'ом runtime за обработку сигналов.
"""

from typing import Any, Optional
import asyncio
import threading

from fastapi import FastAPI
import uvicorn

from core import logger_helper
from core.runtime_module import RuntimeModule


class ApiModule(RuntimeModule):
    """Модуль HTTP диагностики."""

    def __init__(self, runtime: Any, host: str = "127.0.0.1", port: int = 8000):
        super().__init__(runtime)
        self.host = host
        self.port = port
        self.app: Optional[FastAPI] = None
        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def name(self) -> str:
        return "api"

    async def register(self) -> None:
        """Создать FastAPI приложение и подключить маршруты."""
        self.app = FastAPI(title="Home Console Listeners", version="0.1.0")
        monitoring = getattr(self.runtime, "monitoring", None)
        if monitoring is not None:
            self.app.include_router(monitoring.router)
        self.app.add_api_route("/listeners", self.listeners_endpoint, methods=["GET"])
        self.app.add_api_route("/services", self.services_endpoint, methods=["GET"])

    async def listeners_endpoint(self) -> dict:
        registry = self.runtime.registry
        return {
            "frozen": registry.frozen,
            "entities": {key: registry.get_listeners_count(key) for key in registry.entity_keys()},
            "events": {key: registry.get_listeners_count(key) for key in registry.event_keys()},
        }

    async def services_endpoint(self) -> dict:
        return {"services": await self.runtime.service_registry.list_services()}

    async def start(self) -> None:
        if self.app is None:
            return
        config = uvicorn.Config(self.app, host=self.host, port=self.port, log_level="warning")
        server = uvicorn.Server(config)
        self._server = server
        loop = asyncio.get_running_loop()

        def run_server():
            try:
                server.run()
            except SystemExit:
                # uvicorn вызывает SystemExit(1), если порт занят
                asyncio.run_coroutine_threadsafe(
                    logger_helper.warning(
                        self.runtime,
                        "uvicorn exited during startup (port may be in use)",
                        module="api",
                        port=self.port,
                    ),
                    loop,
                )

        self._thread = threading.Thread(target=run_server, name="api-server", daemon=True)
        self._thread.start()
        await logger_helper.info(
            self.runtime, "HTTP diagnostics started", module="api", host=self.host, port=self.port
        )

    async def stop(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._thread is not None:
            # join в отдельном потоке, чтобы не блокировать event loop
            await asyncio.to_thread(self._thread.join, 1)
            self._thread = None
        self._server = None
