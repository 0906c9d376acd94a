"""Self-describing value encoding used for RPC payloads and snapshots.

Each encoded value is one line of JSON.  Dataclasses, enums, tuples, sets,
bytes and dictionaries with arbitrary hashable keys are tagged so that they
come back as the same Python types.  Like the RPC layer expects, the codec
warns (and counts) when a dataclass has private fields, which are never
transmitted, and when a value is decoded into a target that already holds
non-default data.
"""

from __future__ import annotations

import base64
import dataclasses
import enum
import json
import sys
import threading
from typing import Any, BinaryIO

__all__ = [
    "CodecError",
    "Encoder",
    "Decoder",
    "register",
    "register_name",
    "error_count",
]


class CodecError(Exception):
    """Raised when a value cannot be encoded or decoded."""


_lock = threading.Lock()
_errors = 0
_checked: set[type] = set()
_by_name: dict[str, type] = {}
_by_type: dict[type, str] = {}


def error_count() -> int:
    """Number of warnings issued so far about private fields or dirty targets."""
    with _lock:
        return _errors


def _bump() -> int:
    global _errors
    with _lock:
        before = _errors
        _errors += 1
    return before


def _register_type(cls: type, name: str | None = None) -> str:
    with _lock:
        name = name or _by_type.get(cls) or f"{cls.__module__}.{cls.__qualname__}"
        existing = _by_name.get(name)
        if existing is not None and existing is not cls:
            raise CodecError(f"name {name!r} is already registered for {existing!r}")
        previous = _by_type.get(cls)
        if previous is not None and previous != name:
            raise CodecError(f"{cls!r} is already registered as {previous!r}")
        _by_name[name] = cls
        _by_type[cls] = name
    return name


def _name_of(cls: type) -> str:
    with _lock:
        name = _by_type.get(cls)
    return name if name is not None else _register_type(cls)


def _lookup(name: str) -> type:
    with _lock:
        cls = _by_name.get(name)
    if cls is None:
        raise CodecError(f"type {name!r} is not registered")
    return cls


def register(value: Any) -> None:
    """Make a dataclass or enum type (or the type of an instance) decodable."""
    _check_value(value)
    _register_type(value if isinstance(value, type) else type(value))


def register_name(name: str, value: Any) -> None:
    """Register a type under an explicit wire name."""
    _check_value(value)
    _register_type(value if isinstance(value, type) else type(value), name)


def _check_type(cls: type) -> None:
    with _lock:
        if cls in _checked:
            return
        _checked.add(cls)
    if dataclasses.is_dataclass(cls):
        for field in dataclasses.fields(cls):
            if field.name.startswith("_"):
                print(
                    f"codec error: private field {field.name} of {cls.__name__} "
                    "is not transmitted in RPC or persist/snapshot",
                    file=sys.stderr,
                )
                _bump()


def _check_value(value: Any) -> None:
    if isinstance(value, type):
        _check_type(value)
    elif dataclasses.is_dataclass(value):
        _check_type(type(value))
        for field in dataclasses.fields(value):
            if not field.name.startswith("_"):
                _check_value(getattr(value, field.name))
    elif isinstance(value, (list, tuple, set, frozenset)):
        for item in value:
            _check_value(item)
    elif isinstance(value, dict):
        for key, item in value.items():
            _check_value(key)
            _check_value(item)


def _check_default(value: Any, depth: int = 1, name: str = "") -> None:
    if value is None or depth > 3 or isinstance(value, type):
        return
    if dataclasses.is_dataclass(value):
        for field in dataclasses.fields(value):
            qualified = f"{name}.{field.name}" if name else field.name
            _check_default(getattr(value, field.name), depth + 1, qualified)
        return
    plain = value.value if isinstance(value, enum.Enum) else value
    if isinstance(plain, (bool, int, float, str)) and plain != type(plain)():
        if _bump() < 1:
            what = name or type(value).__name__
            print(
                f"codec warning: decoding into a non-default variable/field {what} may not work",
                file=sys.stderr,
            )


def _to_tree(value: Any) -> Any:
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, enum.Enum):
        return {"e": _name_of(type(value)), "v": _to_tree(value.value)}
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return {"b": base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, list):
        return [_to_tree(item) for item in value]
    if isinstance(value, tuple):
        return {"t": [_to_tree(item) for item in value]}
    if isinstance(value, frozenset):
        return {"fs": [_to_tree(item) for item in value]}
    if isinstance(value, set):
        return {"s": [_to_tree(item) for item in value]}
    if isinstance(value, dict):
        return {"m": [[_to_tree(k), _to_tree(v)] for k, v in value.items()]}
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        fields = {
            f.name: _to_tree(getattr(value, f.name))
            for f in dataclasses.fields(value)
            if not f.name.startswith("_")
        }
        return {"d": _name_of(type(value)), "f": fields}
    raise CodecError(f"cannot encode value of type {type(value).__name__}")


def _from_tree(tree: Any) -> Any:
    if isinstance(tree, list):
        return [_from_tree(item) for item in tree]
    if not isinstance(tree, dict):
        return tree
    if "e" in tree:
        return _lookup(tree["e"])(_from_tree(tree["v"]))
    if "b" in tree:
        return base64.b64decode(tree["b"])
    if "t" in tree:
        return tuple(_from_tree(item) for item in tree["t"])
    if "fs" in tree:
        return frozenset(_from_tree(item) for item in tree["fs"])
    if "s" in tree:
        return {_from_tree(item) for item in tree["s"]}
    if "m" in tree:
        return {_from_tree(k): _from_tree(v) for k, v in tree["m"]}
    if "d" in tree:
        cls = _lookup(tree["d"])
        values = {name: _from_tree(item) for name, item in tree["f"].items()}
        fields = dataclasses.fields(cls)
        init = {f.name: values[f.name] for f in fields if f.init and f.name in values}
        try:
            obj = cls(**init)
        except TypeError as exc:
            raise CodecError(f"cannot rebuild {cls.__name__}: {exc}") from exc
        for f in fields:
            if not f.init and f.name in values:
                object.__setattr__(obj, f.name, values[f.name])
        return obj
    raise CodecError(f"unknown tag in {sorted(tree)}")


class Encoder:
    """Writes values to a binary stream, one per line."""

    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream

    def encode(self, value: Any) -> None:
        _check_value(value)
        line = json.dumps(_to_tree(value), separators=(",", ":")) + "\n"
        self.stream.write(line.encode("ascii"))


class Decoder:
    """Reads values written by :class:`Encoder`."""

    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream

    def decode(self, target: Any = None) -> Any:
        """Return the next value.

        ``target`` is either the expected type or a prototype instance of it;
        a prototype holding non-default data draws a warning.
        """
        if target is not None:
            _check_value(target)
            _check_default(target)
        line = self.stream.readline()
        if not line:
            raise EOFError("no more values in stream")
        try:
            tree = json.loads(line)
        except json.JSONDecodeError as exc:
            raise CodecError(f"malformed input: {exc}") from exc
        value = _from_tree(tree)
        if target is not None:
            expected = target if isinstance(target, type) else type(target)
            if not isinstance(value, expected):
                if expected is float and isinstance(value, int) and not isinstance(value, bool):
                    return float(value)
                raise CodecError(
                    f"expected {expected.__name__}, got {type(value).__name__}"
                )
        return value