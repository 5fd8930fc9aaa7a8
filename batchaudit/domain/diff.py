"""
Attribute diffing between a record's current and last persisted values.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional


def diff(
    tracked: Iterable[str],
    new: Mapping[str, Any],
    old: Mapping[str, Any],
    time_field: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Return the tracked attributes whose new value differs from the old one.

    Attributes missing from `new` are ignored; attributes missing from `old`
    count as changed (first population). `time_field` is never compared since
    it is derived from the change itself.
    """
    changed: Dict[str, Any] = {}
    for name in tracked:
        if name == time_field or name not in new:
            continue
        value = new[name]
        if name not in old or old[name] != value:
            changed[name] = value
    return changed


def changed_attribute_names(
    tracked: Iterable[str],
    changes: Mapping[str, Any],
    rewritten: Iterable[str] = (),
) -> List[str]:
    """
    List changed attribute names in tracked order for an audit row.

    `rewritten` names (timestamp and version) are always written alongside a
    change, so they are reported whenever anything else changed.
    """
    if not changes:
        return []
    always = set(rewritten)
    return [name for name in dict.fromkeys(tracked) if name in changes or name in always]


__all__ = ["changed_attribute_names", "diff"]
