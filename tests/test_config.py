from datetime import date, datetime

import pytest

from power_bidding.config import AppConfig, ConfigStore, merge_config
from power_bidding.errors import ConfigValidationError
from power_bidding.models import ServiceStatus


def test_merge_config_nested_override():
    cfg = AppConfig()
    merged = merge_config(
        cfg,
        {
            "prediction": {"horizon_points": 24},
            "optimization": {"cost_upward": 530.0},
        },
    )
    assert merged.prediction.horizon_points == 24
    assert merged.optimization.cost_upward == 530.0
    assert merged.optimization.cost_generation == cfg.optimization.cost_generation


def test_update_rejects_zero_horizon_and_leaves_store_unchanged():
    store = ConfigStore()
    before = store.get()

    with pytest.raises(ConfigValidationError) as excinfo:
        store.update({"prediction": {"horizon_points": 0}})

    assert excinfo.value.field == "prediction.horizon_points"
    assert store.get() == before


def test_update_with_one_bad_field_applies_nothing():
    store = ConfigStore()

    with pytest.raises(ConfigValidationError) as excinfo:
        store.update(
            {
                "prediction": {"horizon_points": 48},
                "optimization": {"cost_downward": -1.0},
            }
        )

    assert excinfo.value.field == "optimization.cost_downward"
    assert store.get().prediction.horizon_points == 96


@pytest.mark.parametrize(
    "partial",
    [
        {"prediction": {"horizon_points": 169}},
        {"prediction": {"confidence_level": 0.5}},
        {"prediction": {"models": []}},
        {"prediction": {"models": ["xgboost", "xgboost"]}},
        {"prediction": {"models": ["arima"]}},
        {"historical": {"time_range": "90d"}},
        {"service": {"base_url": "ftp://example"}},
        {"prediction": {"unknown": 1}},
    ],
)
def test_update_rejects_invalid_values(partial):
    store = ConfigStore()
    with pytest.raises(ConfigValidationError):
        store.update(partial)
    assert store.get() == AppConfig()


def test_update_returns_new_frozen_snapshot():
    store = ConfigStore()
    old = store.get()
    new = store.update({"optimization": {"cost_generation": 375.0}})

    assert new is store.get()
    assert old.optimization.cost_generation == 400.0
    with pytest.raises(Exception):
        new.optimization.cost_generation = 1.0  # type: ignore[misc]


def test_seed_prediction_date_uses_last_service_day():
    store = ConfigStore()
    status = ServiceStatus(real_data_records=10, time_range_end=datetime(2024, 5, 2, 23, 45))

    store.seed_prediction_date(status)

    assert store.get().prediction.prediction_date == date(2024, 5, 2)


def test_seed_prediction_date_keeps_user_choice():
    store = ConfigStore()
    store.update({"prediction": {"prediction_date": "2024-06-15"}})
    status = ServiceStatus(real_data_records=10, time_range_end=datetime(2024, 5, 2, 23, 45))

    store.seed_prediction_date(status)

    assert store.get().prediction.prediction_date == date(2024, 6, 15)


def test_seed_prediction_date_without_time_range_is_noop():
    store = ConfigStore()
    store.seed_prediction_date(ServiceStatus(real_data_records=0))
    assert store.get().prediction.prediction_date is None
