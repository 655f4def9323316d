"""Tests for configuration snapshots and live updates."""

import dataclasses
import math

import pytest

from basic_nav.config import LINEAR_TOLERANCE, Config, ConfigStore


def test_defaults_match_module_constants():
    """Test the default snapshot uses the documented constants."""
    assert Config().linear_tolerance == LINEAR_TOLERANCE
    assert Config().base_frame == "base_footprint"


def test_snapshot_is_frozen():
    """Test a snapshot cannot be mutated in place."""
    with pytest.raises(dataclasses.FrozenInstanceError):
        Config().lateral_kp = 1.0


def test_update_replaces_snapshot_atomically():
    """Test a held snapshot keeps its values after an update."""
    store = ConfigStore()
    held = store.snapshot

    new = store.update(max_linear_velocity=0.3, preferred_driving_frame="odom")

    assert held.max_linear_velocity == 0.5
    assert store.snapshot is new
    assert new.max_linear_velocity == 0.3
    assert new.preferred_driving_frame == "odom"


def test_update_accepts_ints():
    """Test integer values are stored as floats."""
    config = Config.from_dict({"abort_timeout": 7})
    assert config.abort_timeout == 7.0
    assert isinstance(config.abort_timeout, float)


@pytest.mark.parametrize(
    "params",
    [
        {"no_such_param": 1.0},
        {"lateral_kp": "fast"},
        {"lateral_kp": True},
        {"lateral_kp": math.nan},
        {"base_frame": 3},
    ],
)
def test_invalid_update_rejected(params):
    """Test invalid updates raise and leave the store untouched."""
    store = ConfigStore()
    before = store.snapshot

    with pytest.raises(ValueError):
        store.update(**params)

    assert store.snapshot is before


def test_to_dict_round_trip():
    """Test to_dict output rebuilds an equal snapshot."""
    config = Config(lateral_kd=5.0)
    assert Config.from_dict(config.to_dict()) == config
