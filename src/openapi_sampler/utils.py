"""Small helpers shared by the document layer."""

import copy
from typing import Any


def deep_merge(base: Any, override: Any, path: str = "") -> Any:
    """Deeply merge ``override`` into a copy of ``base``.

    Mappings merge key by key; lists are concatenated rather than replaced.
    Otherwise ``override`` wins unless it is None. Neither input is modified.

    Raises:
        ValueError: if a list meets a mapping at the same position.
    """
    if isinstance(base, (dict, list)) and isinstance(override, (dict, list)):
        if isinstance(base, list) and isinstance(override, list):
            return [*copy.deepcopy(base), *copy.deepcopy(override)]
        if isinstance(base, list) or isinstance(override, list):
            raise ValueError(f"Can not deep merge array and object. path: {path or '/'}")

        merged = {}
        for key in [*base, *(k for k in override if k not in base)]:
            merged[key] = deep_merge(base.get(key), override.get(key), f"{path}/{key}")
        return merged

    if override is not None:
        return copy.deepcopy(override)
    return copy.deepcopy(base)


def as_list(value: Any) -> list[Any]:
    """Wrap a single value in a list; lists pass through and None becomes []."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]
