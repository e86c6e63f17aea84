"""
Exception taxonomy for NIPower.

``InvalidConfig`` is the only fatal error: it aborts a run before any
simulation work. The per-replicate errors (``DegenerateSample``,
``NonConvergence``) are caught by the simulation driver and recorded on
the failed replicate. ``ResourceExhausted`` marks a run that stopped
early because its wall-clock or iteration budget ran out.
"""

from typing import List, Optional


class NIPowerError(Exception):
    """Base class for all NIPower errors."""

    pass


class InvalidConfig(NIPowerError, ValueError):
    """Raised when trial parameters fail validation.

    Attributes:
        errors: Individual validation messages.
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors if errors is not None else [message]


class DegenerateSample(NIPowerError):
    """Raised when a synthetic dataset cannot be standardized."""

    pass


class NonConvergence(NIPowerError):
    """Raised when a fit fails or its MCMC diagnostics miss the thresholds.

    Attributes:
        reason: Short failure label: ``"rhat"``, ``"ess"`` or ``"sampling"``.
        max_rhat: Largest R-hat across the gated parameters.
        min_ess: Smallest bulk effective sample size.
    """

    def __init__(self, message: str, reason: str, max_rhat: float = float("nan"), min_ess: float = float("nan")):
        super().__init__(message)
        self.reason = reason
        self.max_rhat = max_rhat
        self.min_ess = min_ess


class ResourceExhausted(NIPowerError):
    """Raised when the driver's time or iteration budget is exceeded."""

    pass


__all__ = [
    "NIPowerError",
    "InvalidConfig",
    "DegenerateSample",
    "NonConvergence",
    "ResourceExhausted",
]
