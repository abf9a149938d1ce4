"""
Response tokenizer - turns one JSON line from the controller into field tuples.

Output matches what the field dispatcher expects:
- ValueToken: "heat:heaters^:current", [1], "205.3"
- ArrayEndToken: "heat:heaters^", [4]   (innermost index = array length)
- MessageEndToken at the end of every line
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, List, Union

from .logger import log_warn


@dataclass(frozen=True)
class ValueToken:
    path: str
    indices: List[int] = field(default_factory=list)
    value: str = ""


@dataclass(frozen=True)
class ArrayEndToken:
    path: str
    indices: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class MessageEndToken:
    pass


Token = Union[ValueToken, ArrayEndToken, MessageEndToken]


def scalar_text(value: Any) -> str:
    """Render a JSON scalar the way the firmware's streaming parser does."""
    if value is None:
        return ""
    if value is True:
        return "true"
    if value is False:
        return "false"
    return str(value)


def tokenize(line: str) -> List[Token]:
    """
    Tokenize one response line.

    Lines that are not a JSON object produce no tokens at all, not even a
    message end, so they never touch scheduler bookkeeping.
    """
    try:
        document = json.loads(line)
    except json.JSONDecodeError:
        log_warn("Ignoring non-JSON line", {"line": line[:80]})
        return []

    if not isinstance(document, dict):
        log_warn("Ignoring JSON line that is not an object", {"line": line[:80]})
        return []

    tokens: List[Token] = []
    _walk_object(document, "", [], tokens)
    tokens.append(MessageEndToken())
    return tokens


def _join(prefix: str, name: str) -> str:
    return f"{prefix}:{name}" if prefix else name


def _walk_object(obj: dict, prefix: str, indices: List[int], out: List[Token]) -> None:
    for name, value in obj.items():
        _walk_value(value, _join(prefix, name), indices, out)


def _walk_value(value: Any, path: str, indices: List[int], out: List[Token]) -> None:
    if isinstance(value, dict):
        _walk_object(value, path, indices, out)
    elif isinstance(value, list):
        _walk_array(value, path + "^", indices, out)
    else:
        out.append(ValueToken(path, list(indices), scalar_text(value)))


def _walk_array(items: list, path: str, indices: List[int], out: List[Token]) -> None:
    for i, item in enumerate(items):
        inner = indices + [i]
        if isinstance(item, dict):
            _walk_object(item, path, inner, out)
        elif isinstance(item, list):
            # Nested arrays share the element path, one more index deep
            _walk_array(item, path, inner, out)
        else:
            out.append(ValueToken(path, inner, scalar_text(item)))
    out.append(ArrayEndToken(path, indices + [len(items)]))
