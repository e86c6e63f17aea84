"""
Validation utilities for NIPower.

This module provides validation functions for trial parameters. Each
validator returns a ``_ValidationResult`` so that callers can collect
every problem before raising a single ``InvalidConfig``.
"""

import warnings
from dataclasses import dataclass
from numbers import Integral
from typing import Any, List, Optional, Tuple, Union

from ..errors import InvalidConfig

__all__ = []

MAX_SEED = 3_000_000_000


@dataclass
class _ValidationResult:
    """Outcome of a validation check, carrying errors and warnings.

    Attributes:
        is_valid: ``True`` if no errors were found.
        errors: List of error messages (empty when valid).
        warnings: List of non-fatal warning messages.
    """

    is_valid: bool
    errors: List[str]
    warnings: List[str]

    def raise_if_invalid(self):
        """Raise ``InvalidConfig`` if the validation failed."""
        if not self.is_valid:
            error_msg = "Validation failed:\n" + "\n".join(f"• {err}" for err in self.errors)
            raise InvalidConfig(error_msg, list(self.errors))

    def emit_warnings(self):
        """Forward collected warnings to ``warnings.warn``."""
        for msg in self.warnings:
            warnings.warn(msg, UserWarning, stacklevel=3)


def _merge(*results: _ValidationResult) -> _ValidationResult:
    """Combine several results into one."""
    errors: List[str] = []
    warns: List[str] = []
    for r in results:
        errors.extend(r.errors)
        warns.extend(r.warnings)
    return _ValidationResult(len(errors) == 0, errors, warns)


def _is_integer(value: Any) -> bool:
    """Python and numpy integers count; ``bool`` does not."""
    return isinstance(value, Integral) and not isinstance(value, bool)


def _check_type(value: Any, expected_types: tuple, name: str) -> Optional[str]:
    """Check if value has expected type (``bool`` never counts as a number)."""
    if isinstance(value, bool) or not isinstance(value, expected_types):
        actual_type = type(value).__name__
        expected = expected_types[0].__name__ if len(expected_types) == 1 else f"one of {[t.__name__ for t in expected_types]}"
        return f"{name} must be {expected}, got {actual_type}"
    return None


def _validate_numeric_parameter(
    value: Any,
    name: str,
    expected_types: tuple = (int, float),
    min_val: Optional[float] = None,
    max_val: Optional[float] = None,
    exclusive: bool = False,
) -> _ValidationResult:
    """Generic validation for numeric parameters.

    With ``exclusive=True`` the bounds themselves are rejected.
    """
    type_error = _check_type(value, expected_types, name)
    if type_error:
        return _ValidationResult(False, [type_error], [])

    if value != value:
        return _ValidationResult(False, [f"{name} must not be NaN"], [])

    errors = []
    if exclusive:
        if min_val is not None and value <= min_val:
            errors.append(f"{name} must be > {min_val}, got {value}")
        if max_val is not None and value >= max_val:
            errors.append(f"{name} must be < {max_val}, got {value}")
    else:
        if min_val is not None and value < min_val:
            errors.append(f"{name} must be >= {min_val}, got {value}")
        if max_val is not None and value > max_val:
            errors.append(f"{name} must be <= {max_val}, got {value}")

    return _ValidationResult(len(errors) == 0, errors, [])


def _validate_arm_size(n: Any, name: str) -> _ValidationResult:
    """An arm size must be a positive integer."""
    if not _is_integer(n):
        return _ValidationResult(False, [f"{name} must be an integer, got {type(n).__name__}"], [])
    if n <= 0:
        return _ValidationResult(False, [f"{name} must be positive, got {n}"], [])
    warns = []
    if n < 10:
        warns.append(f"{name} is very small ({n}); random-slope variance will be poorly identified.")
    return _ValidationResult(True, [], warns)


def _validate_icc(icc: Any) -> _ValidationResult:
    """Validate the intraclass correlation (0-1 inclusive)."""
    return _validate_numeric_parameter(icc, "icc", min_val=0, max_val=1)


def _validate_dropout(rate: Any) -> _ValidationResult:
    """Validate the dropout rate (0-1 inclusive)."""
    return _validate_numeric_parameter(rate, "dropout_rate", min_val=0, max_val=1)


def _validate_threshold(threshold: Any) -> _ValidationResult:
    """Validate the decision probability threshold (strictly inside 0-1)."""
    return _validate_numeric_parameter(threshold, "prob_threshold", min_val=0, max_val=1, exclusive=True)


def _validate_ci_coverage(coverage: Any) -> _ValidationResult:
    """Validate the credible-interval coverage (strictly inside 0-1)."""
    return _validate_numeric_parameter(coverage, "ci_coverage", min_val=0, max_val=1, exclusive=True)


def _validate_margin(margin: Any) -> _ValidationResult:
    """Validate the non-inferiority margin (any finite real)."""
    result = _validate_numeric_parameter(margin, "ni_margin")
    if result.is_valid and abs(margin) == float("inf"):
        return _ValidationResult(False, ["ni_margin must be finite"], [])
    return result


def _validate_effect(effect: Any, name: str) -> _ValidationResult:
    """Validate a standardized effect size."""
    result = _validate_numeric_parameter(effect, name)
    if result.is_valid and abs(effect) > 5:
        result.warnings.append(f"{name}={effect} is an unusually large standardized effect.")
    return result


def _validate_simulations(n_simulations: Any) -> Tuple[int, _ValidationResult]:
    """Validate and process number of replicates."""
    if not _is_integer(n_simulations):
        return 0, _ValidationResult(
            False, [f"n_simulations must be an integer, got {type(n_simulations).__name__}"], []
        )
    if n_simulations < 1:
        return 0, _ValidationResult(False, [f"n_simulations must be >= 1, got {n_simulations}"], [])

    warns = []
    if n_simulations < 100:
        warns.append(f"Low replicate count ({n_simulations}). Consider using at least 100 for a stable power estimate.")
    return int(n_simulations), _ValidationResult(True, [], warns)


def _validate_seed(seed: Any) -> _ValidationResult:
    """Validate the base seed (``None`` enables random seeding)."""
    if seed is None:
        return _ValidationResult(True, [], [])
    if not _is_integer(seed):
        return _ValidationResult(False, ["seed must be an integer or None"], [])
    if seed < 0:
        return _ValidationResult(False, ["seed must be non-negative"], [])
    if seed > MAX_SEED:
        return _ValidationResult(False, ["seed must be lower than 3,000,000,000"], [])
    return _ValidationResult(True, [], [])


def _validate_parallel_settings(enable: Any, n_cores: Optional[int]) -> Tuple[Tuple[bool, int], _ValidationResult]:
    """Validate parallel processing settings."""
    import multiprocessing as mp

    errors: List[str] = []
    warns: List[str] = []

    if not isinstance(enable, bool):
        errors.append(f"enable must be a bool, got {type(enable).__name__}")

    max_cores = mp.cpu_count() or 1
    if n_cores is None:
        n_cores = max(1, max_cores // 2)
    elif isinstance(n_cores, bool) or not isinstance(n_cores, int) or n_cores < 1:
        errors.append(f"n_cores must be a positive integer, got {n_cores}")
        n_cores = 1
    elif n_cores > max_cores:
        warns.append(f"n_cores ({n_cores}) exceeds available cores ({max_cores}); using {max_cores}.")
        n_cores = max_cores

    return (bool(enable), n_cores), _ValidationResult(len(errors) == 0, errors, warns)


def _validate_budget(value: Union[int, float, None], name: str) -> _ValidationResult:
    """Validate an optional positive time or iteration budget."""
    if value is None:
        return _ValidationResult(True, [], [])
    return _validate_numeric_parameter(value, name, min_val=0, exclusive=True)
