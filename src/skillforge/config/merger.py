"""
Merging of configuration layers.

A layer is the mapping read from one config file. Keys prefixed with ``+``
or ``-`` edit a list inherited from the layers below instead of replacing it,
so a project can write ``+default_targets: [codex]`` to add a target on top
of the global set. A ``null`` value drops the inherited key entirely.
"""

from typing import Any

APPEND_PREFIX = "+"
REMOVE_PREFIX = "-"


def _edit_list(current: Any, op: str, items: list[Any]) -> list[Any] | None:
    """Apply a ``+``/``-`` list edit. Returns None when there is nothing to keep."""
    if not isinstance(current, list):
        # Removing from nothing leaves nothing; appending starts a new list.
        return list(items) if op == APPEND_PREFIX else None
    if op == APPEND_PREFIX:
        return current + [item for item in items if item not in current]
    return [item for item in current if item not in items]


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Merge ``override`` on top of ``base`` and return a new mapping.

    Nested mappings merge key by key. Any other value, lists included,
    replaces what was below it unless the key carries a list-edit prefix.
    Neither argument is modified.

    Example:
        >>> deep_merge({"deploy": {"default_targets": ["claude"]}},
        ...            {"deploy": {"+default_targets": ["codex"]}})
        {'deploy': {'default_targets': ['claude', 'codex']}}
    """
    merged = dict(base)

    for key, value in override.items():
        op = key[:1]
        if op in (APPEND_PREFIX, REMOVE_PREFIX) and isinstance(value, list):
            name = key[1:]
            edited = _edit_list(merged.get(name), op, value)
            if edited is not None:
                merged[name] = edited
            continue

        if value is None:
            merged.pop(key, None)
        elif isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value

    return merged


def set_nested_value(config: dict[str, Any], key_path: str, value: Any) -> dict[str, Any]:
    """Set ``value`` at a dotted path such as ``search.tokenizer``, creating parents."""
    *parents, leaf = key_path.split(".")
    node = config
    for part in parents:
        child = node.get(part)
        if not isinstance(child, dict):
            child = node[part] = {}
        node = child
    node[leaf] = value
    return config
