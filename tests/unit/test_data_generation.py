"""
Tests for synthetic trial data: generation, standardization, dropout.
"""

import numpy as np
import pandas as pd
import pytest

from nipower.core.conditions import LABELS
from nipower.errors import DegenerateSample
from nipower.stats.data_generation import (
    CONDITION,
    PARTICIPANT,
    TIME,
    Y,
    Y_RAW,
    generate_trial_data,
    inject_missingness,
    simulate_dataset,
    standardize,
)


class TestGenerateTrialData:
    """Test generate_trial_data."""

    def test_participant_and_row_counts(self, protocol_config):
        data = generate_trial_data(protocol_config, 123)
        assert data[PARTICIPANT].nunique() == 110
        assert len(data) == 220

    def test_one_pre_and_one_post_per_participant(self, protocol_config):
        data = generate_trial_data(protocol_config, 123)
        counts = data.groupby(PARTICIPANT)[TIME].agg(["count", "sum", "min", "max"])
        assert (counts["count"] == 2).all()
        assert (counts["min"] == 0).all()
        assert (counts["max"] == 1).all()

    def test_arm_sizes(self, protocol_config):
        data = generate_trial_data(protocol_config, 123)
        per_arm = data.drop_duplicates(PARTICIPANT)[CONDITION].value_counts()
        assert per_arm[LABELS[0]] == 50
        assert per_arm[LABELS[1]] == 30
        assert per_arm[LABELS[2]] == 30

    def test_deterministic_for_same_seed(self, protocol_config):
        a = generate_trial_data(protocol_config, 99)
        b = generate_trial_data(protocol_config, 99)
        pd.testing.assert_frame_equal(a, b)

    def test_different_seeds_differ(self, protocol_config):
        a = generate_trial_data(protocol_config, 1)
        b = generate_trial_data(protocol_config, 2)
        assert not np.allclose(a[Y_RAW], b[Y_RAW])

    def test_person_effect_constant_within_participant(self, protocol_config):
        data = generate_trial_data(protocol_config, 5)
        assert (data.groupby(PARTICIPANT)["person_effect"].nunique() == 1).all()

    def test_icc_zero_has_no_person_effect(self, protocol_config):
        config = protocol_config.replace(icc=0.0)
        data = generate_trial_data(config, 5)
        assert np.allclose(data["person_effect"], 0.0)

    def test_icc_one_has_no_occasion_noise(self, protocol_config):
        config = protocol_config.replace(icc=1.0, d_f2f=0.0, d_app_expert=0.0, d_app_nonexpert=0.0)
        data = generate_trial_data(config, 5)
        wide = data.pivot(index=PARTICIPANT, columns=TIME, values=Y_RAW)
        assert np.allclose(wide[0], wide[1])

    def test_effect_only_at_post(self, protocol_config):
        """A big F2F effect shifts post but not pre outcomes."""
        config = protocol_config.replace(
            n_f2f=2000, n_app_expert=2000, n_app_nonexpert=2000, d_f2f=3.0, d_app_expert=0.0, d_app_nonexpert=0.0
        )
        data = generate_trial_data(config, 11)
        means = data.groupby([CONDITION, TIME], observed=True)[Y_RAW].mean()
        assert abs(means[(LABELS[0], 0)] - means[(LABELS[1], 0)]) < 0.15
        assert means[(LABELS[0], 1)] - means[(LABELS[1], 1)] == pytest.approx(3.0, abs=0.15)

    def test_total_variance_is_one(self, protocol_config):
        config = protocol_config.replace(
            n_f2f=5000, n_app_expert=5000, n_app_nonexpert=5000, d_f2f=0.0, d_app_expert=0.0, d_app_nonexpert=0.0
        )
        data = generate_trial_data(config, 3)
        pre = data.loc[data[TIME] == 0, Y_RAW]
        assert pre.var() == pytest.approx(1.0, abs=0.05)

    def test_accepts_generator(self, protocol_config):
        rng = np.random.default_rng(0)
        data = generate_trial_data(protocol_config, rng)
        assert len(data) == 220


class TestStandardize:
    """Test standardize."""

    def test_pre_moments(self, protocol_config):
        data = standardize(generate_trial_data(protocol_config, 7))
        pre = data.loc[data[TIME] == 0, Y]
        assert pre.mean() == pytest.approx(0.0, abs=1e-12)
        assert pre.std(ddof=1) == pytest.approx(1.0, abs=1e-12)

    def test_pooled_not_per_condition(self, protocol_config):
        """Arm-level pre means are not forced to zero."""
        data = standardize(generate_trial_data(protocol_config, 7))
        arm_means = data[data[TIME] == 0].groupby(CONDITION, observed=True)[Y].mean()
        assert not np.allclose(arm_means.to_numpy(), 0.0)

    def test_does_not_modify_input(self, protocol_config):
        raw = generate_trial_data(protocol_config, 7)
        standardize(raw)
        assert Y not in raw.columns

    def test_zero_sd_raises(self):
        data = pd.DataFrame({PARTICIPANT: [0, 0, 1, 1], TIME: [0, 1, 0, 1], Y_RAW: [1.0, 2.0, 1.0, 3.0]})
        with pytest.raises(DegenerateSample, match="zero"):
            standardize(data)

    def test_single_pre_raises(self):
        data = pd.DataFrame({PARTICIPANT: [0, 0], TIME: [0, 1], Y_RAW: [1.0, 2.0]})
        with pytest.raises(DegenerateSample, match="at least 2"):
            standardize(data)


class TestInjectMissingness:
    """Test inject_missingness."""

    def test_exact_count(self, protocol_config):
        data = standardize(generate_trial_data(protocol_config, 1))
        out = inject_missingness(data, 0.20, 1)
        assert out.loc[out[TIME] == 1, Y].isna().sum() == 22
        assert out.loc[out[TIME] == 0, Y].isna().sum() == 0

    def test_rows_are_kept(self, protocol_config):
        data = standardize(generate_trial_data(protocol_config, 1))
        out = inject_missingness(data, 0.5, 1)
        assert len(out) == len(data)
        assert out[Y_RAW].notna().all()

    def test_zero_rate(self, protocol_config):
        data = standardize(generate_trial_data(protocol_config, 1))
        out = inject_missingness(data, 0.0, 1)
        assert out[Y].notna().all()

    def test_full_rate(self, protocol_config):
        data = standardize(generate_trial_data(protocol_config, 1))
        out = inject_missingness(data, 1.0, 1)
        assert out.loc[out[TIME] == 1, Y].isna().all()
        assert out.loc[out[TIME] == 0, Y].notna().all()

    def test_one_missing_row_per_dropped_participant(self, protocol_config):
        data = standardize(generate_trial_data(protocol_config, 1))
        out = inject_missingness(data, 0.3, 4)
        per_participant = out[Y].isna().groupby(out[PARTICIPANT]).sum()
        assert per_participant.max() == 1
        assert per_participant.sum() == round(110 * 0.3)

    def test_dropout_spans_arms(self, protocol_config):
        """Selection ignores condition: over many draws every arm loses someone."""
        data = standardize(generate_trial_data(protocol_config, 1))
        out = inject_missingness(data, 0.5, 8)
        lost = out.loc[out[Y].isna(), CONDITION].value_counts()
        assert (lost.reindex(LABELS).fillna(0) > 0).all()

    def test_requires_standardized_data(self, protocol_config):
        with pytest.raises(ValueError, match="standardize"):
            inject_missingness(generate_trial_data(protocol_config, 1), 0.2, 1)


class TestSimulateDataset:
    """Test the chained pipeline."""

    def test_deterministic(self, protocol_config):
        a = simulate_dataset(protocol_config, 42)
        b = simulate_dataset(protocol_config, 42)
        pd.testing.assert_frame_equal(a, b)

    def test_missing_count(self, protocol_config):
        data = simulate_dataset(protocol_config, 42)
        assert data[Y].isna().sum() == protocol_config.n_dropouts == 22
