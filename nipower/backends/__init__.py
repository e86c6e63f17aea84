"""
NUTS sampler selection for NIPower.

PyMC can hand the compiled model to several NUTS implementations. This
module picks one, so that the estimator does not need to know which
optional packages are installed.

The automatic selection follows priority order:
1. nutpie - fastest, requires the ``nutpie`` package
2. numpyro - JAX-based, requires ``numpyro``
3. pymc - PyMC's own sampler, always available

Users can override the selection via set_sampler('nutpie' | 'numpyro' | 'pymc' | 'default').
"""

import importlib
import warnings

# Valid sampler names for set_sampler()
_SAMPLER_NAMES = {"default", "nutpie", "numpyro", "pymc"}

# Modules that must import for each sampler to be usable
_REQUIREMENTS = {
    "nutpie": "nutpie",
    "numpyro": "numpyro",
    "pymc": "pymc",
}

# Global sampler choice
_sampler_name = None
_sampler_forced = False
_warn_on_fallback = True


def _check_available(name: str) -> str:
    """
    Verify that the sampler's package imports.

    Raises:
        ImportError: If the requested sampler is not available.
        ValueError: If the name is not recognized.
    """
    if name not in _REQUIREMENTS:
        raise ValueError(f"Unknown sampler: {name!r}")
    importlib.import_module(_REQUIREMENTS[name])
    return name


def _auto_select() -> str:
    """Auto-select the best available sampler: nutpie > numpyro > pymc."""
    for name in ("nutpie", "numpyro"):
        try:
            return _check_available(name)
        except ImportError:
            continue

    if _warn_on_fallback:
        warnings.warn(
            "No nutpie or numpyro found - using PyMC's built-in NUTS (slower). "
            "Install nutpie for better performance: pip install NIPower[fast]",
            stacklevel=3,
        )
    return "pymc"


def get_sampler() -> str:
    """
    Get the active NUTS sampler name.

    On first call, auto-selects the best available sampler.
    Subsequent calls return the cached choice unless reset_sampler() is called.
    """
    global _sampler_name

    if _sampler_name is not None:
        return _sampler_name

    _sampler_name = _auto_select()
    return _sampler_name


def set_sampler(sampler: str) -> None:
    """
    Set the NUTS sampler.

    Args:
        sampler: One of:
            - 'default' - auto-select best available
            - 'nutpie'  - force nutpie
            - 'numpyro' - force numpyro
            - 'pymc'    - force PyMC's own NUTS

    Raises:
        ImportError: If the requested sampler is not available.
        ValueError: If the string is not recognized.
    """
    global _sampler_name, _sampler_forced

    name = sampler.lower().strip()
    if name not in _SAMPLER_NAMES:
        raise ValueError(f"Unknown sampler {sampler!r}. Choose from: {', '.join(sorted(_SAMPLER_NAMES))}")
    if name == "default":
        _sampler_name = _auto_select()
        _sampler_forced = False
    else:
        _sampler_name = _check_available(name)
        _sampler_forced = True


def reset_sampler() -> None:
    """Reset sampler to automatic selection."""
    global _sampler_name, _sampler_forced
    _sampler_name = None
    _sampler_forced = False


def set_fallback_warning(enabled: bool = True) -> None:
    """Enable or disable the warning emitted when falling back to PyMC's NUTS."""
    global _warn_on_fallback
    _warn_on_fallback = enabled


def get_sampler_info() -> dict:
    """
    Get information about the current sampler.

    Returns:
        Dictionary with sampler name and whether it was forced.
    """
    name = get_sampler()
    return {
        "name": name,
        "is_external": name != "pymc",
        "forced": _sampler_forced,
    }


__all__ = [
    "get_sampler",
    "set_sampler",
    "reset_sampler",
    "get_sampler_info",
    "set_fallback_warning",
]
