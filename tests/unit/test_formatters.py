"""
Tests for the text report and the probability plot (matplotlib mocked).
"""

import sys
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from nipower.core.results import ResultsProcessor, build_power_result
from nipower.core.simulation import ReplicateResult
from nipower.stats.estimation import SamplerSettings
from nipower.utils.formatters import _format_results
from nipower.utils.visualization import _create_probability_plot


def _make_result(config, p_h1, p_h2, stop_reason=None):
    replicates = []
    for i, (a, b) in enumerate(zip(p_h1, p_h2)):
        if np.isnan(a):
            replicates.append(ReplicateResult.failed(i, i + 1, "non-convergence (ess)"))
        else:
            replicates.append(ReplicateResult(i, i + 1, a, b))
    n_failed = sum(not r.converged for r in replicates)
    sim_results = {
        "replicates": replicates,
        "n_dispatched": len(replicates),
        "n_failed": n_failed,
        "failure_reasons": {"non-convergence (ess)": n_failed} if n_failed else {},
        "partial": stop_reason is not None,
        "stop_reason": stop_reason,
    }
    summaries = ResultsProcessor(config.prob_threshold, config.ci_coverage).summarize(replicates)
    return build_power_result(config, SamplerSettings(nuts_sampler="pymc"), summaries, sim_results)


@pytest.fixture
def result(small_config):
    return _make_result(small_config, [0.95, 0.9, 0.5, 0.99], [0.2, 0.95, 0.97, 0.99])


class TestFormatResults:
    """Test _format_results."""

    def test_short_table(self, result):
        text = _format_results(result, "short")
        assert "Sample sizes: F2F=50, App_Expert=30, App_NonExpert=30" in text
        assert "89% CI" in text
        assert "75.0%" in text
        assert "4/4" in text
        assert "4 of 10 replicates contributed (0 failed, status: complete)" in text
        assert "Hypotheses:" not in text

    def test_long_adds_details(self, result):
        text = _format_results(result, "long")
        assert "H1: F2F - mean(App_Expert, App_NonExpert) < 0.5" in text
        assert "Power (95% Monte Carlo interval):" in text
        assert "Sampler: pymc, 4 chains x 1000 draws" in text

    def test_failures_and_stop_reason(self, small_config):
        result = _make_result(
            small_config, [0.95, float("nan")], [0.95, float("nan")], stop_reason="time budget of 1s exhausted"
        )
        text = _format_results(result, "long")
        assert "1 failed, status: partial" in text
        assert "Run stopped early: time budget of 1s exhausted" in text
        assert "non-convergence (ess): 1" in text

    def test_all_failed_shows_na(self, small_config):
        nan = float("nan")
        text = _format_results(_make_result(small_config, [nan, nan], [nan, nan]), "short")
        assert "NA" in text
        assert "status: failed" in text

    def test_invalid_summary(self, result):
        with pytest.raises(ValueError, match="summary must be"):
            _format_results(result, "medium")


def _setup_mock_plt(n_panels=2):
    mock_plt = MagicMock()
    mock_fig = MagicMock()
    axes = np.empty(n_panels, dtype=object)
    for i in range(n_panels):
        axes[i] = MagicMock()
    mock_plt.subplots.return_value = (mock_fig, axes)
    mock_plt.get_cmap.return_value = MagicMock(return_value=np.zeros((n_panels, 4)))
    mock_mpl = MagicMock()
    mock_mpl.pyplot = mock_plt
    return mock_mpl, mock_plt, mock_fig, axes


class TestProbabilityPlot:
    """Test _create_probability_plot with matplotlib mocked."""

    def test_one_panel_per_hypothesis(self, result):
        mock_mpl, mock_plt, mock_fig, axes = _setup_mock_plt()
        with patch.dict(sys.modules, {"matplotlib": mock_mpl, "matplotlib.pyplot": mock_plt}):
            fig = _create_probability_plot(result, show=False)

        assert fig is mock_fig
        mock_plt.show.assert_not_called()
        for ax in axes:
            ax.hist.assert_called_once()
            ax.axvline.assert_called_once()
        assert "H1: power 75.0%" in axes[0].set_title.call_args[0][0]

    def test_failed_replicates_not_plotted(self, small_config):
        result = _make_result(small_config, [0.95, float("nan"), 0.5], [0.9, float("nan"), 0.9])
        mock_mpl, mock_plt, _, axes = _setup_mock_plt()
        with patch.dict(sys.modules, {"matplotlib": mock_mpl, "matplotlib.pyplot": mock_plt}):
            _create_probability_plot(result, show=False)

        plotted = axes[0].hist.call_args[0][0]
        assert len(plotted) == 2

    def test_show(self, result):
        mock_mpl, mock_plt, _, _ = _setup_mock_plt()
        with patch.dict(sys.modules, {"matplotlib": mock_mpl, "matplotlib.pyplot": mock_plt}):
            _create_probability_plot(result, title="Protocol design", show=True)

        mock_plt.show.assert_called_once()
