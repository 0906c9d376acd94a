"""Sequential specification of a key/value store for linearizability checks.

Histories are partitioned by key; each key is modelled as a single string
value that starts empty.
"""

from __future__ import annotations

from dataclasses import dataclass

__all__ = [
    "GET",
    "PUT",
    "APPEND",
    "APPEND_RETURNING",
    "KvInput",
    "KvOutput",
    "Operation",
    "partition",
    "init",
    "step",
    "describe_operation",
]

GET = 0
PUT = 1
APPEND = 2
APPEND_RETURNING = 3


@dataclass(frozen=True)
class KvInput:
    op: int
    key: str = ""
    value: str = ""


@dataclass(frozen=True)
class KvOutput:
    value: str = ""


@dataclass(frozen=True)
class Operation:
    """One client call with its invocation and response times."""

    input: KvInput
    output: KvOutput
    call: int
    return_time: int
    client_id: int = 0


def partition(history: list[Operation]) -> list[list[Operation]]:
    """Group operations by key, keys in sorted order, history order kept."""
    groups: dict[str, list[Operation]] = {}
    for operation in history:
        groups.setdefault(operation.input.key, []).append(operation)
    return [groups[key] for key in sorted(groups)]


def init() -> str:
    return ""


def step(state: str, inp: KvInput, out: KvOutput) -> tuple[bool, str]:
    """Apply one operation; return whether it was legal and the new state."""
    if inp.op == GET:
        return out.value == state, state
    if inp.op == PUT:
        return True, inp.value
    if inp.op == APPEND:
        return True, state + inp.value
    # Append that reports the previous value.
    return out.value == state, state + inp.value


def describe_operation(inp: KvInput, out: KvOutput) -> str:
    if inp.op == GET:
        return f"get('{inp.key}') -> '{out.value}'"
    if inp.op == PUT:
        return f"put('{inp.key}', '{inp.value}')"
    if inp.op == APPEND:
        return f"append('{inp.key}', '{inp.value}')"
    return "<invalid>"