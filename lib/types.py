"""Common type aliases for the project to reduce repetition and improve readability.

Add new aliases here when you spot repeated typing patterns across modules.
"""
from __future__ import annotations

from typing import Any, Callable, Literal

BYTES_PER_MB = 1024 * 1024

# String-based types
StrList = list[str]
StrDict = dict[str, str]

# Step parameters: scalars, lists and nested mappings, possibly templated
ParamValue = Any
Params = dict[str, ParamValue]

# A capability module: rendered params in, ModuleResult out
ApplyFunc = Callable[[Params], Any]

# Where a variable's value comes from
VariableSource = Literal["env", "file"]

__all__ = [
    "BYTES_PER_MB",
    "StrList",
    "StrDict",
    "ParamValue",
    "Params",
    "ApplyFunc",
    "VariableSource",
]
