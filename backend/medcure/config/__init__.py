# Config module
from medcure.config.settings import Settings, settings

__all__ = ["Settings", "settings"]
