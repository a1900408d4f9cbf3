"""
Reorder point and restock suggestion.

reorder_point = daily_usage * lead_time + safety_stock
safety_stock  = z * sqrt(demand_variance) * daily_usage
"""

import math
from dataclasses import dataclass
from typing import Optional

from medcure.models import UrgencyLevel

NO_CONSUMPTION_DAYS = 999.0


@dataclass
class ReorderSuggestion:
    """Restock recommendation for one product."""
    should_reorder: bool
    urgency: UrgencyLevel
    suggested_quantity: int
    reorder_point: float
    safety_stock: float
    current_stock: int
    reorder_level: int
    daily_usage: float
    days_of_stock: float
    stock_status: str
    estimated_cost: float
    message: str
    low_confidence: bool = False


def calculate_safety_stock(daily_usage: float, demand_variance: float, z_score: float = 1.65) -> float:
    if daily_usage <= 0 or demand_variance <= 0:
        return 0.0
    return z_score * math.sqrt(demand_variance) * daily_usage


def calculate_reorder_point(daily_usage: float, lead_time_days: int, safety_stock: float) -> float:
    return daily_usage * lead_time_days + safety_stock


def calculate_days_of_stock(current_stock: int, daily_usage: float) -> float:
    if daily_usage <= 0:
        return NO_CONSUMPTION_DAYS
    return round(current_stock / daily_usage, 1)


def get_stock_status(current_stock: int, days_of_stock: float) -> str:
    if current_stock <= 0:
        return "out_of_stock"
    elif days_of_stock <= 3:
        return "critical"
    elif days_of_stock <= 7:
        return "low"
    elif days_of_stock <= 14:
        return "moderate"
    return "good"


def _reorder_message(urgency: UrgencyLevel, days_of_stock: float, quantity: int) -> str:
    days_text = "99+" if days_of_stock > 99 else f"{days_of_stock:.0f}"
    if urgency == UrgencyLevel.CRITICAL:
        return f"Out of stock! Order {quantity} units immediately."
    elif urgency == UrgencyLevel.HIGH:
        return f"Only {days_text} days of stock left. Order {quantity} units."
    elif urgency == UrgencyLevel.MEDIUM:
        return f"{days_text} days remaining. Suggest ordering {quantity} units."
    elif urgency == UrgencyLevel.LOW:
        return f"At or below reorder level. Consider ordering {quantity} units soon."
    return f"Stock sufficient for {days_text} days."


def recommend_reorder(
    current_stock: int,
    daily_usage: float,
    demand_variance: float,
    reorder_level: int = 0,
    unit_cost: Optional[float] = None,
    lead_time_days: int = 7,
    z_score: float = 1.65,
    restock_multiplier: float = 2.0
) -> ReorderSuggestion:
    """
    Urgency from where stock sits against the reorder point:
    - stock <= 0: critical
    - stock <= 50% of reorder point: high
    - stock <= reorder point: medium
    - above reorder point but at/below the manual reorder level: low
    """
    safety_stock = calculate_safety_stock(daily_usage, demand_variance, z_score)
    reorder_point = calculate_reorder_point(daily_usage, lead_time_days, safety_stock)
    days_of_stock = calculate_days_of_stock(current_stock, daily_usage)

    # round() first so float noise like 99.0000001 does not add a unit
    restock_target = max(0, math.ceil(round(reorder_point * restock_multiplier - current_stock, 6)))

    if reorder_point > 0 and current_stock <= reorder_point:
        if current_stock <= 0:
            urgency = UrgencyLevel.CRITICAL
        elif current_stock <= 0.5 * reorder_point:
            urgency = UrgencyLevel.HIGH
        else:
            urgency = UrgencyLevel.MEDIUM
        suggested = restock_target
    elif reorder_level > 0 and current_stock <= reorder_level:
        urgency = UrgencyLevel.LOW
        suggested = max(restock_target, reorder_level - current_stock)
    else:
        urgency = UrgencyLevel.NONE
        suggested = 0

    return ReorderSuggestion(
        should_reorder=urgency != UrgencyLevel.NONE,
        urgency=urgency,
        suggested_quantity=suggested,
        reorder_point=round(reorder_point, 2),
        safety_stock=round(safety_stock, 2),
        current_stock=current_stock,
        reorder_level=reorder_level,
        daily_usage=round(daily_usage, 2),
        days_of_stock=days_of_stock,
        stock_status=get_stock_status(current_stock, days_of_stock),
        estimated_cost=round(suggested * (unit_cost or 0.0), 2),
        message=_reorder_message(urgency, days_of_stock, suggested)
    )


def no_history_suggestion(current_stock: int, reorder_level: int = 0) -> ReorderSuggestion:
    """Placeholder for products without sales history: no reorder, low confidence."""
    return ReorderSuggestion(
        should_reorder=False,
        urgency=UrgencyLevel.NONE,
        suggested_quantity=0,
        reorder_point=0.0,
        safety_stock=0.0,
        current_stock=current_stock,
        reorder_level=reorder_level,
        daily_usage=0.0,
        days_of_stock=NO_CONSUMPTION_DAYS,
        stock_status=get_stock_status(current_stock, NO_CONSUMPTION_DAYS),
        estimated_cost=0.0,
        message="Not enough sales history to recommend a reorder. Review stock manually.",
        low_confidence=True
    )
