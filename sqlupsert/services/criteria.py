"""Binding of caller supplied criteria fragments.

Criteria are boolean SQL fragments such as ``[CustomerId] = @customerId``. Values are
never interpolated: each placeholder is bound as a driver parameter.
"""

from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass
from typing import Any, Mapping

from sqlupsert.exceptions import ConfigurationError

_AT_PLACEHOLDER = re.compile(r"(?<![@\w])@([A-Za-z_][A-Za-z0-9_]*)")


@dataclass(frozen=True)
class Parameter:
    name: str
    value: Any

    @classmethod
    def from_args(cls, args: Any) -> list["Parameter"]:
        if args is None:
            return []
        if isinstance(args, Mapping):
            items = args.items()
        elif dataclasses.is_dataclass(args) and not isinstance(args, type):
            items = ((field.name, getattr(args, field.name)) for field in dataclasses.fields(args))
        elif hasattr(args, "__dict__"):
            items = vars(args).items()
        else:
            raise ConfigurationError(f"Criteria arguments must be a mapping or an object with attributes, got {type(args).__name__}")
        return [cls(str(name), value) for name, value in items]


def bind_criteria(criteria: str | None, args: Any = None) -> tuple[str, dict[str, Any]]:
    """Return the criteria with ``@name`` placeholders rewritten as ``:name`` binds, plus the bind values."""

    if criteria is None:
        raise ConfigurationError("criteria is required")

    params = {parameter.name: parameter.value for parameter in Parameter.from_args(args)}

    def _rewrite(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in params:
            return f":{name}"
        return match.group(0)

    return _AT_PLACEHOLDER.sub(_rewrite, criteria), params
