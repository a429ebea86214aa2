"""``{{ NAME }}`` substitution for step parameters."""

from __future__ import annotations

import re

from lib.errors import VariableError
from lib.types import ParamValue, StrDict

PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def render_string(text: str, variables: StrDict) -> str:
    """Replace every placeholder in ``text``; other ``$``/brace text is kept as-is."""
    def replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in variables:
            raise VariableError(name, "referenced by a step but not defined")
        return variables[name]

    return PLACEHOLDER.sub(replace, text)


def render(value: ParamValue, variables: StrDict) -> ParamValue:
    """Render strings inside scalars, lists, tuples and dicts recursively."""
    if isinstance(value, str):
        return render_string(value, variables)
    if isinstance(value, dict):
        return {k: render(v, variables) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(render(v, variables) for v in value)
    return value


def referenced_names(value: ParamValue) -> set[str]:
    """Collect placeholder names used anywhere in ``value``."""
    if isinstance(value, str):
        return set(PLACEHOLDER.findall(value))
    if isinstance(value, dict):
        names: set[str] = set()
        for v in value.values():
            names |= referenced_names(v)
        return names
    if isinstance(value, (list, tuple)):
        names = set()
        for v in value:
            names |= referenced_names(v)
        return names
    return set()
