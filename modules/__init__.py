from .api import ApiModule
from .logger import LoggerModule
from .monitoring import MonitoringModule
from .services import ServicesModule

__all__ = ["ApiModule", "LoggerModule", "MonitoringModule", "ServicesModule"]
