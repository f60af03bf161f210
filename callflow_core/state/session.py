"""
Session State

In-memory view of a session's attributes that tracks which keys a turn has
touched so only the changed attributes are persisted.
"""

import copy
from typing import Any, Dict, Iterator, List, Optional

from .codec import encode_value


class SessionState:
    """
    Mutable session attributes with change tracking.

    Writing None removes an attribute. Removing an attribute that was never
    present is ignored, so it never turns into a delete request.
    """

    def __init__(self, session_id: str, values: Optional[Dict[str, Any]] = None):
        self.session_id = session_id
        self._values: Dict[str, Any] = dict(values or {})
        self._original: Dict[str, Any] = copy.deepcopy(self._values)
        self._touched: List[str] = []

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._values))

    def __len__(self) -> int:
        return len(self._values)

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def keys(self) -> List[str]:
        return list(self._values)

    def as_dict(self) -> Dict[str, Any]:
        """Snapshot of the current values, used as template context."""
        return copy.deepcopy(self._values)

    def update(self, key: str, value: Any) -> None:
        """Write an attribute, recording the key for persistence."""
        if value is None and key not in self._values:
            return

        if value is None:
            del self._values[key]
        else:
            self._values[key] = value

        if key not in self._touched:
            self._touched.append(key)

    def delete(self, key: str) -> None:
        self.update(key, None)

    @property
    def touched_keys(self) -> List[str]:
        return list(self._touched)

    def diff(self) -> Dict[str, Any]:
        """
        Compute the attributes to persist.

        Keys whose stored form is unchanged are dropped; removed keys map
        to None.
        """
        changes: Dict[str, Any] = {}
        for key in self._touched:
            new_value = self._values.get(key)
            if encode_value(new_value) == encode_value(self._original.get(key)):
                continue
            changes[key] = new_value
        return changes

    def mark_persisted(self) -> None:
        """Reset change tracking after a successful write."""
        self._original = copy.deepcopy(self._values)
        self._touched = []

    def string_projection(self) -> Dict[str, str]:
        """Attributes whose values are plain strings."""
        return {
            key: value
            for key, value in self._values.items()
            if isinstance(value, str)
        }
