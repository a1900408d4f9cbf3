# Reorder module
from medcure.services.reorder.reorder import ReorderService, URGENCY_ORDER

__all__ = ["ReorderService", "URGENCY_ORDER"]
