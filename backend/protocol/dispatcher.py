"""
Field path dispatcher - resolves wire paths to FieldCodes.

Tables are sorted once, case-insensitively, when the dispatcher is built;
every lookup after that is a binary search.
"""

from __future__ import annotations

from bisect import bisect_left
from typing import Generic, Iterable, List, Optional, Tuple, TypeVar

from .fields import (
    ARRAY_END_TABLE,
    FIELD_TABLE,
    KEY_TABLE,
    FieldCode,
    KeyCode,
)


C = TypeVar("C")

RESULT_PREFIX = "result"


class SortedTable(Generic[C]):
    """Case-insensitive string → code table with binary search lookup."""

    def __init__(self, entries: Iterable[Tuple[str, C]], missing: C):
        ordered = sorted(entries, key=lambda entry: entry[0].lower())
        self._keys: List[str] = [name.lower() for name, _ in ordered]
        self._codes: List[C] = [code for _, code in ordered]
        self._missing = missing

    def lookup(self, name: str) -> C:
        key = name.lower()
        pos = bisect_left(self._keys, key)
        if pos < len(self._keys) and self._keys[pos] == key:
            return self._codes[pos]
        return self._missing

    def __len__(self) -> int:
        return len(self._keys)


class FieldPathDispatcher:
    """
    Resolves paths for one connection.

    Holds the key of the reply currently being parsed, which decides how
    "result"-prefixed paths are rewritten.
    """

    def __init__(
        self,
        field_table: Iterable[Tuple[str, FieldCode]] = FIELD_TABLE,
        key_table: Iterable[Tuple[str, KeyCode]] = KEY_TABLE,
        array_end_table: Iterable[Tuple[str, FieldCode]] = ARRAY_END_TABLE,
    ):
        self._fields = SortedTable(field_table, FieldCode.UNKNOWN)
        key_table = list(key_table)
        self._keys = SortedTable(key_table, KeyCode.UNKNOWN)
        self._key_names = {code: name for name, code in key_table}
        self._array_ends = SortedTable(array_end_table, FieldCode.UNKNOWN)
        self.current_key: KeyCode = KeyCode.UNKNOWN

    def set_key(self, value: str) -> KeyCode:
        """Parse the `key` field of a keyed response and make it current."""
        self.current_key = self._keys.lookup(value)
        return self.current_key

    def reset_key(self) -> None:
        self.current_key = KeyCode.UNKNOWN

    def canonical_path(self, path: str) -> str:
        """
        Rewrite a "result" path using the current key.

        "result:heaters^:current" answering "heat" → "heat:heaters^:current"
        "result^:number" answering "tools" → "tools^:number"
        "result:seqs:heat" answering the no-key summary → "seqs:heat"
        "result:heat" answering "seqs" → "seqs:heat"
        """
        if not path.startswith(RESULT_PREFIX):
            return path

        rest = path[len(RESULT_PREFIX):]
        if self.current_key is KeyCode.NO_KEY:
            return rest[1:] if rest.startswith(":") else rest

        key = self._key_names.get(self.current_key)
        if key is None:
            return path
        return key + rest

    def dispatch(self, path: str) -> FieldCode:
        """Resolve a value path. Unknown paths give FieldCode.UNKNOWN."""
        return self._fields.lookup(self.canonical_path(path))

    def dispatch_array_end(self, path: str) -> FieldCode:
        return self._array_ends.lookup(self.canonical_path(path))

    def lookup_key(self, value: str) -> KeyCode:
        return self._keys.lookup(value)
