import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from medcure.models import ReorderRecommendation, UrgencyLevel
from medcure.services.forecasting import ForecasterService, ForecastResult

logger = logging.getLogger(__name__)

URGENCY_ORDER = {
    UrgencyLevel.CRITICAL: 0,
    UrgencyLevel.HIGH: 1,
    UrgencyLevel.MEDIUM: 2,
    UrgencyLevel.LOW: 3,
    UrgencyLevel.NONE: 4
}


class ReorderService:
    def __init__(self, db: Session, forecaster: Optional[ForecasterService] = None):
        self.db = db
        self.forecaster = forecaster or ForecasterService(db)

    def generate_recommendations(
        self,
        history_window_days: Optional[int] = None,
        as_of: Optional[datetime] = None,
        forecasts: Optional[List[ForecastResult]] = None
    ) -> List[ForecastResult]:
        """
        Forecasts of products that need restocking, most urgent first.
        """
        if forecasts is None:
            forecasts = self.forecaster.forecast_all(history_window_days, as_of)

        needed = [f for f in forecasts if f.reorder.should_reorder]
        needed.sort(key=lambda f: (URGENCY_ORDER[f.reorder.urgency], -f.reorder.suggested_quantity))
        return needed

    def save_recommendations(self, forecasts: List[ForecastResult]) -> int:
        """
        Replace the active reorder list.

        Returns:
            Number of recommendations saved
        """
        self.db.query(ReorderRecommendation).filter(
            ReorderRecommendation.is_active == True
        ).update({'is_active': False})

        count = 0
        for f in forecasts:
            rec = f.reorder
            if not rec.should_reorder:
                continue
            self.db.add(ReorderRecommendation(
                product_id=f.product_id,
                urgency=rec.urgency,
                suggested_quantity=rec.suggested_quantity,
                reorder_point=rec.reorder_point,
                safety_stock=rec.safety_stock,
                current_stock=rec.current_stock,
                daily_usage=rec.daily_usage,
                message=rec.message,
                is_active=True
            ))
            count += 1

        self.db.commit()
        logger.info("Saved %s reorder recommendations", count)
        return count

    def get_active(self) -> List[ReorderRecommendation]:
        recs = self.db.query(ReorderRecommendation).filter(
            ReorderRecommendation.is_active == True
        ).all()
        return sorted(recs, key=lambda r: (URGENCY_ORDER[r.urgency], -r.suggested_quantity))

    def get_summary(self) -> dict:
        """Quick summary of pending recommendations."""
        recs = self.get_active()
        return {
            'total_items': len(recs),
            'critical': sum(1 for r in recs if r.urgency == UrgencyLevel.CRITICAL),
            'high': sum(1 for r in recs if r.urgency == UrgencyLevel.HIGH),
            'medium': sum(1 for r in recs if r.urgency == UrgencyLevel.MEDIUM),
            'low': sum(1 for r in recs if r.urgency == UrgencyLevel.LOW),
        }
