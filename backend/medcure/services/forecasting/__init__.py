# Forecasting module
from medcure.services.forecasting.baseline import (
    DemandBaseline, DemandLevel, TrendDirection, ForecastPoint, SaleObservation,
    classify_demand, classify_trend, trend_percentage, confidence_score
)
from medcure.services.forecasting.seasonality import (
    SeasonalProfile, SeasonalityTable, SeasonalityResult,
    load_seasonality_table, resolve_seasonality
)
from medcure.services.forecasting.reorder_point import ReorderSuggestion, recommend_reorder
from medcure.services.forecasting.forecaster import (
    DemandForecaster, ForecasterService, ForecastResult, ProductSnapshot, NO_HISTORY_NOTICE
)

__all__ = [
    "DemandBaseline",
    "DemandLevel",
    "TrendDirection",
    "ForecastPoint",
    "SaleObservation",
    "classify_demand",
    "classify_trend",
    "trend_percentage",
    "confidence_score",
    "SeasonalProfile",
    "SeasonalityTable",
    "SeasonalityResult",
    "load_seasonality_table",
    "resolve_seasonality",
    "ReorderSuggestion",
    "recommend_reorder",
    "DemandForecaster",
    "ForecasterService",
    "ForecastResult",
    "ProductSnapshot",
    "NO_HISTORY_NOTICE"
]
