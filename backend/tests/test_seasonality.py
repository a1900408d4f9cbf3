import json
import pytest
from datetime import datetime

from medcure.services.forecasting.baseline import SaleObservation
from medcure.services.forecasting.seasonality import (
    NON_SEASONAL, SeasonalityTable, load_seasonality_table,
    static_seasonality, detect_dynamic_seasonality, resolve_seasonality
)


def monthly_observations(peak_months, peak_qty=20, normal_qty=5, per_month=10):
    """A year of sale lines, heavier in the given months."""
    return [
        SaleObservation(1, peak_qty if month in peak_months else normal_qty, datetime(2024, month, day + 1, 12))
        for month in range(1, 13)
        for day in range(per_month)
    ]


def test_default_table_lookup_is_case_insensitive():
    table = load_seasonality_table()

    assert table.lookup("antibiotics").seasonal
    assert table.lookup("  ANTIHISTAMINE ").peak_months == frozenset({3, 4, 5, 9, 10})
    assert not table.lookup("Pain Relief").seasonal


def test_unknown_or_missing_category_is_non_seasonal():
    table = load_seasonality_table()

    assert table.lookup("Dermatology") == NON_SEASONAL
    assert table.lookup(None) == NON_SEASONAL


def test_table_loads_from_json(tmp_path):
    path = tmp_path / "seasonality.json"
    path.write_text(json.dumps({"Sunscreen": {"seasonal": True, "peak_months": [5, 6, 7]}}))

    table = load_seasonality_table(str(path))

    assert len(table) == 1
    assert list(table) == ["Sunscreen"]
    assert table["sunscreen"].peak_months == frozenset({5, 6, 7})


def test_table_rejects_invalid_months():
    with pytest.raises(ValueError):
        SeasonalityTable.from_dict({"Broken": {"seasonal": True, "peak_months": [0, 13]}})


def test_static_multipliers():
    profile = load_seasonality_table().lookup("Vitamins")
    result = static_seasonality(profile, peak_multiplier=1.3, off_peak_multiplier=0.9)

    assert result.is_seasonal
    assert result.method == "static-category"
    assert result.peak_months == [1, 6, 9, 12]
    assert result.multiplier_for(1) == 1.3
    assert result.multiplier_for(2) == 0.9


def test_non_seasonal_multiplier_is_one():
    result = static_seasonality(NON_SEASONAL)

    assert not result.is_seasonal
    assert all(result.multiplier_for(m) == 1.0 for m in range(1, 13))


def test_dynamic_detection_needs_enough_history():
    assert detect_dynamic_seasonality(monthly_observations({1, 2})[:50]) is None


def test_dynamic_detection_finds_peaks():
    result = detect_dynamic_seasonality(monthly_observations({1, 2, 7}))

    assert result.is_seasonal
    assert result.method == "dynamic-detected"
    assert result.peak_months == [1, 2, 7]
    assert result.confidence >= 0.6
    assert result.multiplier_for(1) == 1.8
    assert result.multiplier_for(3) == 0.6


def test_dynamic_detection_flat_history_has_no_pattern():
    result = detect_dynamic_seasonality(monthly_observations(set()))

    assert not result.is_seasonal
    assert result.method == "dynamic-no-pattern"


def test_resolve_prefers_confident_dynamic_pattern():
    table = load_seasonality_table()

    result = resolve_seasonality("Pain Relief", monthly_observations({1, 2, 7}), table)

    assert result.method == "dynamic-detected"


def test_resolve_falls_back_to_category_table():
    table = load_seasonality_table()

    result = resolve_seasonality("Antibiotics", monthly_observations(set())[:20], table)

    assert result.method == "static-category"
    assert result.peak_months == [1, 2, 6, 7, 12]
