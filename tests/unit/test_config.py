"""
Tests for TrialConfig construction, validation and loading.
"""

import json
import pickle

import numpy as np
import pytest

from nipower.core.conditions import Condition
from nipower.core.config import PROTOCOL_DEFAULTS, TrialConfig, flatten_record, load_config
from nipower.errors import InvalidConfig


class TestFromDict:
    """Test TrialConfig.from_dict."""

    def test_flat_record(self, protocol_record):
        config = TrialConfig.from_dict(protocol_record)
        assert config.sample_sizes[Condition.F2F] == 50
        assert config.effects[Condition.APP_NONEXPERT] == 1.24
        assert config.total_participants == 110
        assert config.n_dropouts == 22
        assert config.ci_coverage == 0.89

    def test_nested_record(self, protocol_record):
        record = {k: v for k, v in protocol_record.items() if not k.startswith(("n_f", "n_app", "d_"))}
        record["sample_sizes"] = {"F2F": 50, "App_Expert": 30, "App_NonExpert": 30}
        record["effects"] = {"f2f": 1.0, "app_expert": 0.9, "app_nonexpert": 0.8}
        config = TrialConfig.from_dict(record)
        assert config.sample_sizes[Condition.APP_EXPERT] == 30
        assert config.effects[Condition.APP_NONEXPERT] == 0.8

    def test_unknown_key(self, protocol_record):
        with pytest.raises(InvalidConfig, match="Unknown configuration key 'alpha'"):
            TrialConfig.from_dict(dict(protocol_record, alpha=0.05))

    def test_missing_required_key(self, protocol_record):
        record = dict(protocol_record)
        del record["icc"]
        with pytest.raises(InvalidConfig, match="Missing required key 'icc'"):
            TrialConfig.from_dict(record)

    def test_missing_arm(self, protocol_record):
        record = dict(protocol_record)
        del record["n_app_expert"]
        with pytest.raises(InvalidConfig, match="app_expert"):
            TrialConfig.from_dict(record)

    def test_not_a_mapping(self):
        with pytest.raises(InvalidConfig, match="mapping"):
            TrialConfig.from_dict([("icc", 0.5)])

    def test_round_trip_record(self, protocol_record):
        config = TrialConfig.from_dict(protocol_record)
        assert TrialConfig.from_dict(config.to_dict()) == config


class TestValidation:
    """Invalid parameters fail before any simulation work."""

    @pytest.mark.parametrize(
        "field, value, message",
        [
            ("n_f2f", 0, "n_f2f must be positive"),
            ("n_app_expert", -3, "n_app_expert must be positive"),
            ("n_app_nonexpert", 12.5, "n_app_nonexpert must be an integer"),
            ("icc", 1.5, "icc must be <= 1"),
            ("icc", -0.1, "icc must be >= 0"),
            ("dropout_rate", 1.01, "dropout_rate must be <= 1"),
            ("prob_threshold", 1.0, "prob_threshold must be < 1"),
            ("prob_threshold", 0, "prob_threshold must be > 0"),
            ("n_simulations", 0, "n_simulations must be >= 1"),
            ("seed", -1, "seed must be non-negative"),
            ("ci_coverage", 0.0, "ci_coverage must be > 0"),
            ("d_f2f", "large", "d_f2f must be one of"),
        ],
    )
    def test_invalid_field(self, protocol_record, field, value, message):
        with pytest.raises(InvalidConfig, match=message):
            TrialConfig.from_dict(dict(protocol_record, **{field: value}))

    def test_collects_all_errors(self, protocol_record):
        with pytest.raises(InvalidConfig) as excinfo:
            TrialConfig.from_dict(dict(protocol_record, icc=2.0, dropout_rate=-1.0))
        assert len(excinfo.value.errors) == 2

    def test_invalid_config_is_value_error(self, protocol_record):
        with pytest.raises(ValueError):
            TrialConfig.from_dict(dict(protocol_record, icc=2.0))

    def test_boundaries_accepted(self, protocol_record):
        config = TrialConfig.from_dict(dict(protocol_record, icc=0.0, dropout_rate=1.0))
        assert config.icc == 0.0
        assert config.n_dropouts == 110

    def test_low_simulation_count_is_a_warning(self, protocol_record):
        config = TrialConfig.from_dict(dict(protocol_record, n_simulations=5))
        assert any("Low replicate count" in w for w in config.warnings)


class TestImmutability:
    """TrialConfig is read-only once built."""

    def test_frozen(self, protocol_config):
        with pytest.raises(AttributeError):
            protocol_config.icc = 0.1

    def test_mappings_read_only(self, protocol_config):
        with pytest.raises(TypeError):
            protocol_config.sample_sizes[Condition.F2F] = 10

    def test_replace_returns_new_config(self, protocol_config):
        changed = protocol_config.replace(icc=0.15)
        assert changed.icc == 0.15
        assert protocol_config.icc == 0.5

    def test_picklable(self, protocol_config):
        assert pickle.loads(pickle.dumps(protocol_config)) == protocol_config

    def test_numpy_integers_stored_as_int(self, protocol_record):
        record = dict(protocol_record, n_f2f=np.int64(40), n_simulations=np.int32(20), seed=np.int64(5))
        config = TrialConfig.from_dict(record)
        assert config.sample_sizes[Condition.F2F] == 40
        assert type(config.sample_sizes[Condition.F2F]) is int
        assert type(config.n_simulations) is int
        assert type(config.seed) is int
        assert config.to_dict()["n_f2f"] == 40


class TestLoadConfig:
    """Test load_config and flatten_record."""

    def test_load_json(self, tmp_path, protocol_record):
        path = tmp_path / "config.json"
        path.write_text(json.dumps(protocol_record))
        assert load_config(path).n_simulations == 50

    def test_bad_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{icc: 0.5")
        with pytest.raises(InvalidConfig, match="Could not parse"):
            load_config(path)

    def test_flatten_nested(self):
        flat = flatten_record({"sample_sizes": {"F2F": 10}, "effects": {"app_expert": 0.3}, "icc": 0.2})
        assert flat == {"n_f2f": 10, "d_app_expert": 0.3, "icc": 0.2}

    def test_protocol_defaults_valid(self):
        config = TrialConfig.from_dict(PROTOCOL_DEFAULTS)
        assert config.icc == 0.5
        assert config.seed == 1
