"""Monitoring module: Prometheus метрики диспетчера listener'ов и health check.

Router модуля (`/metrics`, `/health`) можно подключить к любому FastAPI приложению.
"""

from .monitoring_module import MonitoringModule

__all__ = ["MonitoringModule"]
