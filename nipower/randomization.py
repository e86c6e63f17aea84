"""
Block randomization lists for the three-arm trial.

Within each block every condition appears equally often in a shuffled
order, so allocation stays balanced throughout recruitment. Strata (e.g.
low/high symptom severity) are randomized independently with their own
id prefix.
"""

from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .core.conditions import LABELS
from .errors import InvalidConfig

DEFAULT_STRATA: Dict[str, Tuple[int, str]] = {
    "Low": (90, "L"),
    "High": (90, "H"),
}


def block_randomize(
    n: int,
    levels: Sequence[str] = tuple(LABELS),
    block_size: int = 3,
    id_prefix: str = "",
    stratum: Optional[str] = None,
    seed: Union[int, np.random.Generator, None] = None,
) -> pd.DataFrame:
    """Generate a block-randomized allocation list.

    Args:
        n: Minimum number of participants; rounded up to whole blocks.
        levels: Condition labels.
        block_size: Assignments per block (multiple of ``len(levels)``).
        id_prefix: Prefix for participant ids, e.g. ``"L"`` -> ``L001``.
        stratum: Stratum label recorded on every row.
        seed: Seed or generator for reproducibility.

    Returns:
        DataFrame with columns ``id``, ``stratum``, ``block_id``,
        ``block_size`` and ``treatment``.

    Raises:
        InvalidConfig: For non-positive ``n`` or an unbalanced block size.
    """
    levels = list(levels)
    errors = []
    if isinstance(n, bool) or not isinstance(n, int) or n <= 0:
        errors.append(f"n must be a positive integer, got {n}")
    if len(levels) < 2 or len(set(levels)) != len(levels):
        errors.append("levels must contain at least two distinct labels")
    elif isinstance(block_size, bool) or not isinstance(block_size, int) or block_size <= 0 or block_size % len(levels):
        errors.append(f"block_size ({block_size}) must be a positive multiple of the number of levels ({len(levels)})")
    if errors:
        raise InvalidConfig("Validation failed:\n" + "\n".join(f"• {err}" for err in errors), errors)

    rng = seed if isinstance(seed, np.random.Generator) else np.random.default_rng(seed)

    n_blocks = -(-n // block_size)
    template = np.repeat(levels, block_size // len(levels))
    treatments = np.concatenate([rng.permutation(template) for _ in range(n_blocks)])

    total = n_blocks * block_size
    width = max(3, len(str(total)))
    return pd.DataFrame(
        {
            "id": [f"{id_prefix}{i:0{width}d}" for i in range(1, total + 1)],
            "stratum": stratum,
            "block_id": np.repeat(np.arange(1, n_blocks + 1), block_size),
            "block_size": block_size,
            "treatment": treatments,
        }
    )


def stratified_block_randomize(
    strata: Optional[Dict[str, Tuple[int, str]]] = None,
    block_size: int = 3,
    seed: Optional[int] = None,
    levels: Sequence[str] = tuple(LABELS),
) -> pd.DataFrame:
    """Randomize each stratum independently and stack the lists.

    Args:
        strata: Mapping of stratum label to ``(n, id_prefix)``. Defaults to
            90 participants each in ``Low`` (``L``) and ``High`` (``H``).
        block_size: Assignments per block.
        seed: Base seed; stratum ``k`` uses ``seed + k``.
        levels: Condition labels.
    """
    strata = DEFAULT_STRATA if strata is None else strata
    frames = []
    for k, (label, (n, prefix)) in enumerate(strata.items()):
        stratum_seed = None if seed is None else seed + k
        frames.append(
            block_randomize(n, levels=levels, block_size=block_size, id_prefix=prefix, stratum=label, seed=stratum_seed)
        )
    return pd.concat(frames, ignore_index=True)


def write_randomization(allocation: pd.DataFrame, path: Union[str, Path]) -> None:
    """Write an allocation list to CSV."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    allocation.to_csv(path, index=False)
