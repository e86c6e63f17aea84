"""
Trial configuration for NIPower.

``TrialConfig`` is the single declarative parameter record for a power
analysis run. It is constructed once, validated in full, and passed
read-only to every pipeline stage.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union

from ..errors import InvalidConfig
from ..utils.validators import (
    _merge,
    _validate_arm_size,
    _validate_ci_coverage,
    _validate_dropout,
    _validate_effect,
    _validate_icc,
    _validate_margin,
    _validate_seed,
    _validate_simulations,
    _validate_threshold,
)
from .conditions import CONDITIONS, Condition, resolve_condition

DEFAULT_CI_COVERAGE = 0.89

# Preregistered design: the single source of default parameters
PROTOCOL_DEFAULTS: Dict[str, Any] = {
    "n_f2f": 50,
    "n_app_expert": 30,
    "n_app_nonexpert": 30,
    "d_f2f": 1.24,
    "d_app_expert": 1.24,
    "d_app_nonexpert": 1.24,
    "icc": 0.5,
    "dropout_rate": 0.20,
    "ni_margin": 0.5,
    "prob_threshold": 0.89,
    "n_simulations": 50,
    "seed": 1,
    "ci_coverage": DEFAULT_CI_COVERAGE,
}

_SCALAR_KEYS = ("icc", "dropout_rate", "ni_margin", "prob_threshold", "n_simulations", "seed", "ci_coverage")


def _freeze(values: Mapping, what: str) -> Mapping[Condition, Any]:
    """Key a mapping by ``Condition`` and make it read-only."""
    resolved: Dict[Condition, Any] = {}
    errors = []
    for name, value in values.items():
        try:
            resolved[resolve_condition(name)] = value
        except KeyError as e:
            errors.append(f"{what}: {e.args[0]}")
    missing = [c.key for c in CONDITIONS if c not in resolved]
    if missing:
        errors.append(f"{what} missing for: {', '.join(missing)}")
    if errors:
        raise InvalidConfig("Validation failed:\n" + "\n".join(f"• {err}" for err in errors), errors)
    return MappingProxyType({c: resolved[c] for c in CONDITIONS})


@dataclass(frozen=True)
class TrialConfig:
    """Immutable parameters of one power-analysis run.

    Attributes:
        sample_sizes: Participants per condition.
        effects: True standardized pre-post effect per condition.
        icc: Share of outcome variance due to stable person differences.
        dropout_rate: Fraction of participants missing at post-treatment.
        ni_margin: Non-inferiority margin for the slope contrasts.
        prob_threshold: Posterior probability needed to declare
            non-inferiority in one replicate.
        n_simulations: Number of replicates.
        seed: Base random seed (``None`` for random seeding).
        ci_coverage: Coverage of the interval reported over replicate
            probabilities.
    """

    sample_sizes: Mapping[Condition, int]
    effects: Mapping[Condition, float]
    icc: float
    dropout_rate: float
    ni_margin: float
    prob_threshold: float
    n_simulations: int
    seed: Optional[int] = None
    ci_coverage: float = DEFAULT_CI_COVERAGE
    _warnings: tuple = field(default=(), init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "sample_sizes", _freeze(self.sample_sizes, "sample_sizes"))
        object.__setattr__(self, "effects", _freeze(self.effects, "effects"))

        _, sims_result = _validate_simulations(self.n_simulations)
        result = _merge(
            *(_validate_arm_size(self.sample_sizes[c], f"n_{c.key}") for c in CONDITIONS),
            *(_validate_effect(self.effects[c], f"d_{c.key}") for c in CONDITIONS),
            _validate_icc(self.icc),
            _validate_dropout(self.dropout_rate),
            _validate_margin(self.ni_margin),
            _validate_threshold(self.prob_threshold),
            _validate_ci_coverage(self.ci_coverage),
            sims_result,
            _validate_seed(self.seed),
        )
        result.raise_if_invalid()
        object.__setattr__(self, "_warnings", tuple(result.warnings))

        # numpy integers pass validation; store plain ints
        object.__setattr__(self, "sample_sizes", MappingProxyType({c: int(n) for c, n in self.sample_sizes.items()}))
        object.__setattr__(self, "n_simulations", int(self.n_simulations))
        if self.seed is not None:
            object.__setattr__(self, "seed", int(self.seed))

    def __reduce__(self):
        # mappingproxy fields are not picklable; rebuild from the flat record
        return (TrialConfig.from_dict, (self.to_dict(),))

    @property
    def warnings(self) -> tuple:
        """Non-fatal validation messages collected at construction."""
        return self._warnings

    @property
    def total_participants(self) -> int:
        return sum(self.sample_sizes.values())

    @property
    def n_dropouts(self) -> int:
        """Participants whose post-treatment outcome is set missing."""
        return int(round(self.total_participants * self.dropout_rate))

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> "TrialConfig":
        """Build a config from a flat key/value record.

        Accepts ``n_<arm>`` / ``d_<arm>`` keys or nested ``sample_sizes`` /
        ``effects`` mappings keyed by condition name.

        Raises:
            InvalidConfig: On unknown, missing, or invalid fields.
        """
        if not isinstance(record, Mapping):
            raise InvalidConfig(f"Configuration must be a mapping, got {type(record).__name__}")

        sizes: Dict[Any, Any] = dict(record.get("sample_sizes", {}) or {})
        effects: Dict[Any, Any] = dict(record.get("effects", {}) or {})
        scalars: Dict[str, Any] = {}
        unknown = []

        for key, value in record.items():
            if key in ("sample_sizes", "effects"):
                continue
            if key in _SCALAR_KEYS:
                scalars[key] = value
            elif key.startswith("n_") and key != "n_simulations":
                sizes[key[2:]] = value
            elif key.startswith("d_"):
                effects[key[2:]] = value
            else:
                unknown.append(key)

        errors = [f"Unknown configuration key '{k}'" for k in unknown]
        for key in ("icc", "dropout_rate", "ni_margin", "prob_threshold", "n_simulations"):
            if key not in scalars:
                errors.append(f"Missing required key '{key}'")
        if errors:
            raise InvalidConfig("Validation failed:\n" + "\n".join(f"• {err}" for err in errors), errors)

        return cls(sample_sizes=sizes, effects=effects, **scalars)

    def to_dict(self) -> Dict[str, Any]:
        """Flat key/value record (inverse of ``from_dict``)."""
        record: Dict[str, Any] = {}
        for c in CONDITIONS:
            record[f"n_{c.key}"] = self.sample_sizes[c]
        for c in CONDITIONS:
            record[f"d_{c.key}"] = self.effects[c]
        for key in _SCALAR_KEYS:
            record[key] = getattr(self, key)
        return record

    def replace(self, **changes) -> "TrialConfig":
        """Return a new validated config with fields replaced."""
        record = self.to_dict()
        record.update(changes)
        return TrialConfig.from_dict(record)


def flatten_record(record: Mapping[str, Any]) -> Dict[str, Any]:
    """Expand nested ``sample_sizes`` / ``effects`` into ``n_*`` / ``d_*`` keys."""
    flat: Dict[str, Any] = {}
    for key, value in record.items():
        if key in ("sample_sizes", "effects"):
            prefix = "n_" if key == "sample_sizes" else "d_"
            for name, v in (value or {}).items():
                try:
                    flat[prefix + resolve_condition(name).key] = v
                except KeyError as e:
                    raise InvalidConfig(f"{key}: {e.args[0]}") from None
        else:
            flat[key] = value
    return flat


def load_config(path: Union[str, Path]) -> TrialConfig:
    """Read a JSON key/value record into a ``TrialConfig``."""
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            record = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidConfig(f"Could not parse {path}: {e}") from e
    return TrialConfig.from_dict(record)
