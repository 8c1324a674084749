"""Decode the admin editor's flat form fields into a nested draft.

Field names are dotted paths where numeric segments are list positions, e.g.
``kpiPeriods.0.kpis.1.label`` or ``initiatives.2.status``. Gaps in the
numbering are closed up, order follows the numbers.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Tuple


def _set_path(target: Dict[str, Any], parts: List[str], value: Any) -> None:
    node = target
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = value


def _listify(node: Any) -> Any:
    if not isinstance(node, dict):
        return node
    items = {key: _listify(value) for key, value in node.items()}
    if items and all(key.isascii() and key.isdigit() for key in items):
        return [items[key] for key in sorted(items, key=int)]
    return items


def unflatten(pairs: Iterable[Tuple[str, Any]]) -> Dict[str, Any]:
    tree: Dict[str, Any] = {}
    for name, value in pairs:
        parts = [p for p in str(name).split(".") if p]
        if not parts:
            continue
        _set_path(tree, parts, value)
    out = _listify(tree)
    return out if isinstance(out, dict) else {}


__all__ = ["unflatten"]
