"""
Seasonality for pharmacy categories.

Two sources, in order:
1. Dynamic detection from a product's own month-by-month sales, when there
   is enough history (100+ sale lines across 6+ months)
2. A category table (category -> seasonal flag + peak months), loaded from
   configuration so new categories need no code change
"""

import json
import logging
import numpy as np
import pandas as pd
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

logger = logging.getLogger(__name__)

ALL_MONTHS = range(1, 13)

# Default pharmacy categories - override with SEASONALITY_CONFIG_PATH
DEFAULT_SEASONAL_CATEGORIES = {
    "Pain Relief": {"seasonal": False, "peak_months": []},
    "Antibiotics": {"seasonal": True, "peak_months": [12, 1, 2, 6, 7]},  # Cold/flu season
    "Antihistamine": {"seasonal": True, "peak_months": [3, 4, 5, 9, 10]},  # Allergy season
    "Respiratory": {"seasonal": True, "peak_months": [12, 1, 2, 6, 7]},
    "Vitamins": {"seasonal": True, "peak_months": [1, 6, 9, 12]},  # New year, back to school
    "Cardiovascular": {"seasonal": False, "peak_months": []},
    "Diabetes": {"seasonal": False, "peak_months": []},
    "Gastro": {"seasonal": False, "peak_months": []},
}


@dataclass(frozen=True)
class SeasonalProfile:
    seasonal: bool
    peak_months: FrozenSet[int] = frozenset()


NON_SEASONAL = SeasonalProfile(seasonal=False)


class SeasonalityTable(Mapping):
    """
    Category -> SeasonalProfile mapping with case-insensitive lookup.
    Unknown categories are non-seasonal.
    """

    def __init__(self, profiles: Dict[str, SeasonalProfile]):
        self._profiles = dict(profiles)
        self._by_key = {name.strip().lower(): profile for name, profile in self._profiles.items()}

    @classmethod
    def from_dict(cls, raw: Dict[str, dict]) -> "SeasonalityTable":
        profiles = {}
        for category, entry in raw.items():
            months = frozenset(int(m) for m in entry.get("peak_months", []))
            invalid = [m for m in months if m not in ALL_MONTHS]
            if invalid:
                raise ValueError(f"Invalid peak months for {category}: {sorted(invalid)}")
            profiles[category] = SeasonalProfile(
                seasonal=bool(entry.get("seasonal", bool(months))),
                peak_months=months
            )
        return cls(profiles)

    def lookup(self, category: Optional[str]) -> SeasonalProfile:
        if not category:
            return NON_SEASONAL
        return self._by_key.get(category.strip().lower(), NON_SEASONAL)

    def __getitem__(self, category: str) -> SeasonalProfile:
        return self._by_key[category.strip().lower()]

    def __iter__(self):
        return iter(self._profiles)

    def __len__(self) -> int:
        return len(self._profiles)


def load_seasonality_table(path: Optional[str] = None) -> SeasonalityTable:
    """
    Load the category table from a JSON file, or the built-in defaults.

    File format:
        {"Antibiotics": {"seasonal": true, "peak_months": [12, 1, 2]}, ...}
    """
    if not path:
        return SeasonalityTable.from_dict(DEFAULT_SEASONAL_CATEGORIES)

    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    table = SeasonalityTable.from_dict(raw)
    logger.info("Loaded %s seasonality categories from %s", len(table), path)
    return table


@dataclass
class SeasonalityResult:
    """Seasonality verdict for a product plus per-month multipliers."""
    is_seasonal: bool
    peak_months: List[int]
    method: str
    confidence: float
    monthly_factors: Dict[int, float] = field(default_factory=dict)

    def multiplier_for(self, month: int) -> float:
        return self.monthly_factors.get(month, 1.0)


def static_seasonality(
    profile: SeasonalProfile,
    peak_multiplier: float = 1.3,
    off_peak_multiplier: float = 0.9
) -> SeasonalityResult:
    """Peak months get peak_multiplier, other months off_peak_multiplier."""
    if not profile.seasonal:
        return SeasonalityResult(
            is_seasonal=False,
            peak_months=[],
            method="static-none",
            confidence=1.0,
            monthly_factors={m: 1.0 for m in ALL_MONTHS}
        )

    return SeasonalityResult(
        is_seasonal=True,
        peak_months=sorted(profile.peak_months),
        method="static-category",
        confidence=0.7,
        monthly_factors={
            m: peak_multiplier if m in profile.peak_months else off_peak_multiplier
            for m in ALL_MONTHS
        }
    )


def detect_dynamic_seasonality(observations: Sequence, min_observations: int = 100) -> Optional[SeasonalityResult]:
    """
    Find peak months from the product's own history.

    A month is a peak when its average sale-line quantity is more than 30%
    above the mean of monthly averages. Seasonal needs 2+ peaks and a
    coefficient of variation above 0.25. Returns None without enough data.
    """
    if len(observations) < min_observations:
        return None

    df = pd.DataFrame({
        'month': [o.timestamp.month for o in observations],
        'units_sold': [o.quantity for o in observations]
    })
    monthly = df.groupby('month')['units_sold'].mean()
    monthly = monthly[monthly > 0]

    if len(monthly) < 6:
        return None

    overall = monthly.mean()
    deviations = (monthly - overall) / overall
    peak_months = sorted(int(m) for m in deviations[deviations > 0.30].index)

    # Population variance across months with data
    cv = float(monthly.std(ddof=0) / overall)

    if len(peak_months) < 2 or cv <= 0.25:
        return SeasonalityResult(
            is_seasonal=False,
            peak_months=[],
            method="dynamic-no-pattern",
            confidence=0.8,
            monthly_factors={m: 1.0 for m in ALL_MONTHS}
        )

    data_quality = min(len(monthly) / 12, 1.0)
    variance_score = min(cv / 0.5, 1.0)
    peak_score = min(len(peak_months) / 4, 1.0)
    confidence = round(data_quality * 0.4 + variance_score * 0.3 + peak_score * 0.3, 2)

    factors = {}
    for m in ALL_MONTHS:
        deviation = float(deviations.get(m, 0.0))
        if m in peak_months:
            factors[m] = round(float(np.clip(1.0 + deviation, 1.0, 1.8)), 2)
        elif deviation < -0.2:
            factors[m] = round(max(1.0 + deviation, 0.6), 2)
        else:
            factors[m] = 1.0

    return SeasonalityResult(
        is_seasonal=True,
        peak_months=peak_months,
        method="dynamic-detected",
        confidence=confidence,
        monthly_factors=factors
    )


def resolve_seasonality(
    category: Optional[str],
    observations: Iterable,
    table: SeasonalityTable,
    peak_multiplier: float = 1.3,
    off_peak_multiplier: float = 0.9,
    min_observations: int = 100,
    min_confidence: float = 0.6
) -> SeasonalityResult:
    """Dynamic detection when it is confident, the category table otherwise."""
    dynamic = detect_dynamic_seasonality(list(observations), min_observations)
    if dynamic is not None and dynamic.is_seasonal and dynamic.confidence >= min_confidence:
        return dynamic

    return static_seasonality(table.lookup(category), peak_multiplier, off_peak_multiplier)
