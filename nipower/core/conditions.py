"""
Trial arms.

The three conditions form a closed enumeration. Intercepts, slopes,
sample sizes and effects are all addressed by ``Condition`` members
rather than by factor levels parsed out of a model formula.
"""

from enum import Enum
from typing import Dict, List


class Condition(str, Enum):
    """Treatment arm of the three-arm trial."""

    F2F = "F2F"
    APP_EXPERT = "App_Expert"
    APP_NONEXPERT = "App_NonExpert"

    @property
    def position(self) -> int:
        """Position of the condition in the canonical ordering."""
        return CONDITIONS.index(self)

    @property
    def key(self) -> str:
        """Lower-case key used in config records (``n_<key>``, ``d_<key>``)."""
        return _KEYS[self]


CONDITIONS: List[Condition] = [Condition.F2F, Condition.APP_EXPERT, Condition.APP_NONEXPERT]
LABELS: List[str] = [c.value for c in CONDITIONS]

_KEYS: Dict[Condition, str] = {
    Condition.F2F: "f2f",
    Condition.APP_EXPERT: "app_expert",
    Condition.APP_NONEXPERT: "app_nonexpert",
}

# Accepted spellings -> condition (case-insensitive lookup)
_ALIASES: Dict[str, Condition] = {}
for _c in CONDITIONS:
    _ALIASES[_c.value.lower()] = _c
    _ALIASES[_KEYS[_c]] = _c
_ALIASES["face_to_face"] = Condition.F2F
_ALIASES["active_control"] = Condition.F2F


def resolve_condition(name) -> Condition:
    """Map a user-supplied name (or ``Condition``) to a ``Condition``.

    Raises:
        KeyError: If the name does not match any arm.
    """
    if isinstance(name, Condition):
        return name
    key = str(name).strip().lower().replace("-", "_")
    if key not in _ALIASES:
        raise KeyError(f"Unknown condition '{name}'. Available: {', '.join(c.key for c in CONDITIONS)}")
    return _ALIASES[key]
