"""
Parsing utilities for NIPower.

This module parses the comma-separated ``name=value`` strings accepted by
``NIPower.set_sample_sizes`` and ``NIPower.set_effects``, e.g.
``"f2f=50, app_expert=30, app_nonexpert=30"``.
"""

from typing import Callable, Dict, List, Tuple

from ..core.conditions import CONDITIONS, Condition, resolve_condition

__all__ = []


class _AssignmentParser:
    """Parses comma-separated ``condition=value`` assignment strings.

    Supports two parse types, ``"sample_size"`` and ``"effect"``, each with
    a specialised value handler. A module-level singleton ``_parser`` is
    used throughout the codebase.
    """

    def __init__(self):
        self.handlers: Dict[str, Callable[[str], Tuple[object, str]]] = {
            "sample_size": self._parse_sample_size_value,
            "effect": self._parse_effect_value,
        }

    def _parse(self, input_string: str, parse_type: str) -> Tuple[Dict[Condition, object], List[str]]:
        """Parse a comma-separated assignment string.

        A bare number (no ``=``) applies to all three conditions.

        Returns:
            Tuple of ``(parsed_dict, error_list)`` keyed by ``Condition``.
        """
        if parse_type not in self.handlers:
            return {}, [f"Unknown parse type: {parse_type}"]

        if not isinstance(input_string, str) or not input_string.strip():
            return {}, ["Empty assignment string"]

        handler = self.handlers[parse_type]
        stripped = input_string.strip()

        if "=" not in stripped and "," not in stripped:
            value, error = handler(stripped)
            if error:
                return {}, [error]
            return dict.fromkeys(CONDITIONS, value), []

        parsed_items: Dict[Condition, object] = {}
        errors = []

        for assignment in (a.strip() for a in stripped.split(",")):
            if not assignment:
                continue
            if "=" not in assignment:
                errors.append(f"Invalid format: '{assignment}'. Expected 'name=value'")
                continue

            name, value = (part.strip() for part in assignment.split("=", 1))
            try:
                condition = resolve_condition(name)
            except KeyError as e:
                errors.append(str(e.args[0]))
                continue

            if condition in parsed_items:
                errors.append(f"'{name}' assigned more than once")
                continue

            parsed_value, error = handler(value)
            if error:
                errors.append(f"{name}: {error}")
                continue
            parsed_items[condition] = parsed_value

        return parsed_items, errors

    def _parse_sample_size_value(self, value: str) -> Tuple[object, str]:
        if not value:
            return None, "missing value"
        try:
            return int(value), ""
        except ValueError:
            return None, f"Invalid sample size '{value}' (expected an integer)"

    def _parse_effect_value(self, value: str) -> Tuple[object, str]:
        if not value:
            return None, "missing value"
        try:
            return float(value), ""
        except ValueError:
            return None, f"Invalid effect size '{value}'"


_parser = _AssignmentParser()


def _parse_condition_values(input_string: str, parse_type: str, require_all: bool = True) -> Dict[Condition, object]:
    """Parse an assignment string and raise ``InvalidConfig`` on any problem."""
    from ..errors import InvalidConfig

    parsed, errors = _parser._parse(input_string, parse_type)
    if require_all and not errors:
        missing = [c.key for c in CONDITIONS if c not in parsed]
        if missing:
            errors.append(f"Missing {parse_type.replace('_', ' ')} for: {', '.join(missing)}")
    if errors:
        raise InvalidConfig("Validation failed:\n" + "\n".join(f"• {err}" for err in errors), errors)
    return parsed
