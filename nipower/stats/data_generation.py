"""
Synthetic trial data for NIPower.

Generates one replicate's long-format pre/post dataset:

- Person-level random effect ``u ~ N(0, icc)`` drawn once per participant
- Occasion noise ``e ~ N(0, 1 - icc)`` drawn independently per occasion
- ``y_raw = u + time * d[condition] + e`` (total variance fixed at 1)

followed by baseline standardization and MCAR dropout at post-treatment.
"""

from typing import Optional, Union

import numpy as np
import pandas as pd

from ..core.conditions import CONDITIONS, LABELS
from ..errors import DegenerateSample

# Column names of the long-format table
PARTICIPANT = "participant"
CONDITION = "condition"
CONDITION_IDX = "condition_idx"
PERSON_EFFECT = "person_effect"
TIME = "time"
Y_RAW = "y_raw"
Y = "y"

PRE, POST = 0, 1


def _as_rng(rng: Union[np.random.Generator, int, None]) -> np.random.Generator:
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(rng)


def generate_trial_data(config, rng: Union[np.random.Generator, int, None]) -> pd.DataFrame:
    """Generate raw outcomes for every participant at both occasions.

    Args:
        config: ``TrialConfig`` (already validated).
        rng: Seeded generator, or a seed for a fresh one.

    Returns:
        DataFrame with two rows per participant (``time`` 0 then 1),
        sorted by participant id.
    """
    rng = _as_rng(rng)

    sizes = np.array([config.sample_sizes[c] for c in CONDITIONS])
    effects = np.array([config.effects[c] for c in CONDITIONS], dtype=float)
    n_total = int(sizes.sum())

    condition_idx = np.repeat(np.arange(len(CONDITIONS)), sizes)
    person_effect = rng.normal(0.0, np.sqrt(config.icc), size=n_total)
    noise = rng.normal(0.0, np.sqrt(1.0 - config.icc), size=(n_total, 2))

    # (n_total, 2): columns are pre and post
    raw = person_effect[:, None] + noise
    raw[:, POST] += effects[condition_idx]

    ids = np.arange(n_total)
    data = pd.DataFrame(
        {
            PARTICIPANT: np.repeat(ids, 2),
            CONDITION: pd.Categorical.from_codes(np.repeat(condition_idx, 2), categories=LABELS),
            CONDITION_IDX: np.repeat(condition_idx, 2),
            PERSON_EFFECT: np.repeat(person_effect, 2),
            TIME: np.tile([PRE, POST], n_total),
            Y_RAW: raw.ravel(),
        }
    )
    return data


def standardize(data: pd.DataFrame) -> pd.DataFrame:
    """Z-score ``y_raw`` against the pooled pre-treatment mean and SD.

    Pooling is across all conditions so the outcome is in baseline SD
    units, comparable to literature Cohen's d.

    Raises:
        DegenerateSample: Fewer than two pre rows, or zero baseline SD.
    """
    pre = data.loc[data[TIME] == PRE, Y_RAW].to_numpy()
    if pre.size < 2:
        raise DegenerateSample(f"Need at least 2 pre-treatment observations to standardize, got {pre.size}")

    mean = pre.mean()
    sd = pre.std(ddof=1)
    if not np.isfinite(sd) or sd <= 0:
        raise DegenerateSample("Pre-treatment standard deviation is zero")

    out = data.copy()
    out[Y] = (out[Y_RAW] - mean) / sd
    return out


def inject_missingness(
    data: pd.DataFrame,
    dropout_rate: float,
    rng: Union[np.random.Generator, int, None],
) -> pd.DataFrame:
    """Blank the post-treatment outcome for a random subset of participants.

    Exactly ``round(n_participants * dropout_rate)`` participants are
    chosen uniformly without replacement, independently of condition and
    outcome (missing completely at random). Pre rows are never touched.
    """
    if Y not in data.columns:
        raise ValueError("inject_missingness expects standardized data (run standardize first)")

    rng = _as_rng(rng)
    participants = data[PARTICIPANT].unique()
    n_drop = int(round(len(participants) * dropout_rate))

    out = data.copy()
    if n_drop == 0:
        return out

    dropped = rng.choice(participants, size=n_drop, replace=False)
    mask = out[PARTICIPANT].isin(dropped) & (out[TIME] == POST)
    out.loc[mask, Y] = np.nan
    return out


def simulate_dataset(config, seed: Optional[int]) -> pd.DataFrame:
    """Generate, standardize and apply dropout with one seeded stream."""
    rng = np.random.default_rng(seed)
    data = generate_trial_data(config, rng)
    data = standardize(data)
    return inject_missingness(data, config.dropout_rate, rng)
