from typing import Any
import time

from prometheus_client import CollectorRegistry, generate_latest, CONTENT_TYPE_LATEST
from prometheus_client import Counter, Gauge
from fastapi import APIRouter, Response

from core.runtime_module import RuntimeModule


class MonitoringModule(RuntimeModule):
    """Prometheus metrics for the listener dispatcher plus a health check.

    The dispatcher calls the recording methods below; `router` can be mounted
    into a FastAPI app to expose `/metrics` and `/health`.
    """

    def __init__(self, runtime: Any = None):
        super().__init__(runtime)
        self.registry = CollectorRegistry()
        self._start_time = time.time()

        self.uptime = Gauge("hc_uptime_seconds", "Runtime uptime seconds", registry=self.registry)
        self.notifications_total = Counter(
            "hc_notifications_total",
            "Notifications received from Home Assistant",
            ["kind"],
            registry=self.registry,
        )
        self.notifications_dropped_total = Counter(
            "hc_notifications_dropped_total",
            "Notifications dropped before listener evaluation",
            ["reason"],
            registry=self.registry,
        )
        self.gate_rejections_total = Counter(
            "hc_listener_gate_rejections_total",
            "Listener evaluations stopped by a condition gate",
            ["gate"],
            registry=self.registry,
        )
        self.callbacks_total = Counter(
            "hc_listener_callbacks_total",
            "Listener callbacks dispatched",
            ["kind"],
            registry=self.registry,
        )
        self.callback_errors_total = Counter(
            "hc_listener_callback_errors_total",
            "Listener callbacks that raised",
            registry=self.registry,
        )
        self.timers_armed_total = Counter(
            "hc_listener_delay_timers_armed_total",
            "Delay timers armed",
            registry=self.registry,
        )
        self.timers_cancelled_total = Counter(
            "hc_listener_delay_timers_cancelled_total",
            "Delay timers cancelled before firing",
            registry=self.registry,
        )

        self.router = APIRouter()
        self.router.add_api_route("/metrics", self.metrics_endpoint, methods=["GET"])
        self.router.add_api_route("/health", self.health_endpoint, methods=["GET"])

    @property
    def name(self) -> str:
        return "monitoring"

    # Recording hooks used by ListenerDispatcher

    def notification_received(self, kind: str) -> None:
        self.notifications_total.labels(kind=kind).inc()

    def notification_dropped(self, reason: str) -> None:
        self.notifications_dropped_total.labels(reason=reason).inc()

    def gate_rejected(self, gate: str) -> None:
        self.gate_rejections_total.labels(gate=gate).inc()

    def callback_fired(self, kind: str) -> None:
        self.callbacks_total.labels(kind=kind).inc()

    def callback_failed(self) -> None:
        self.callback_errors_total.inc()

    def timer_armed(self) -> None:
        self.timers_armed_total.inc()

    def timer_cancelled(self) -> None:
        self.timers_cancelled_total.inc()

    def render(self) -> bytes:
        self.uptime.set(time.time() - self._start_time)
        return generate_latest(self.registry)

    async def metrics_endpoint(self) -> Response:
        return Response(content=self.render(), media_type=CONTENT_TYPE_LATEST)

    async def health_endpoint(self) -> dict:
        checks: dict[str, Any] = {"status": "ok", "uptime": time.time() - self._start_time}
        if self.runtime is not None:
            checks["running"] = bool(getattr(self.runtime, "is_running", False))
            connection = getattr(self.runtime, "connection", None)
            if connection is not None:
                connected = bool(getattr(connection, "is_connected", False))
                checks["connection"] = "ok" if connected else "disconnected"
                if not connected:
                    checks["status"] = "degraded"
        return checks
