"""
Async Tasks for Celery.
"""

import logging

from medcure.worker import celery_app
from medcure.models.database import session_scope
from medcure.services.reorder import ReorderService

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="medcure.tasks.refresh_reorder_recommendations")
def refresh_reorder_recommendations(self, history_window_days: int = None):
    """
    Forecast every product and replace the active reorder list.
    """
    try:
        with session_scope() as db:
            service = ReorderService(db)
            forecasts = service.forecaster.forecast_all(history_window_days)
            recommendations = service.generate_recommendations(forecasts=forecasts)
            saved = service.save_recommendations(recommendations)
    except Exception:
        logger.exception("Background forecast refresh failed (task %s)", self.request.id)
        raise

    logger.info("Forecast refresh done: %s products, %s reorder items", len(forecasts), saved)
    return {
        "products_forecasted": len(forecasts),
        "reorder_recs_generated": saved,
        "status": "completed"
    }
