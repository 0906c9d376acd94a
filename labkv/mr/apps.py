"""MapReduce applications: word count, indexer and fault/timing probes."""

from __future__ import annotations

import itertools
import os
import re
import secrets
import time
from pathlib import Path
from typing import Callable

from labkv.mr.protocol import KeyValue

__all__ = [
    "wc_map",
    "wc_reduce",
    "indexer_map",
    "indexer_reduce",
    "crash_map",
    "crash_reduce",
    "nocrash_map",
    "nocrash_reduce",
    "early_exit_map",
    "early_exit_reduce",
    "jobcount_map",
    "jobcount_reduce",
    "nparallel",
    "mtiming_map",
    "mtiming_reduce",
    "rtiming_map",
    "rtiming_reduce",
    "load_app",
]

MapFunc = Callable[[str, str], list[KeyValue]]
ReduceFunc = Callable[[str, list[str]], str]

_WORD = re.compile(r"[^\W\d_]+")


def _words(text: str) -> list[str]:
    return _WORD.findall(text)


def wc_map(filename: str, contents: str) -> list[KeyValue]:
    """Emit ("word", "1") for every word in the contents."""
    return [KeyValue(w, "1") for w in _words(contents)]


def wc_reduce(key: str, values: list[str]) -> str:
    return str(len(values))


def indexer_map(document: str, value: str) -> list[KeyValue]:
    """Emit (word, document) once for each distinct word."""
    return [KeyValue(w, document) for w in dict.fromkeys(_words(value))]


def indexer_reduce(key: str, values: list[str]) -> str:
    ordered = sorted(values)
    return f"{len(ordered)} {','.join(ordered)}"


def _file_stats(filename: str, contents: str) -> list[KeyValue]:
    return [
        KeyValue("a", filename),
        KeyValue("b", str(len(filename))),
        KeyValue("c", str(len(contents))),
        KeyValue("d", "xyzzy"),
    ]


def _maybe_crash() -> None:
    roll = secrets.randbelow(1000)
    if roll < 330:
        os._exit(1)
    elif roll < 660:
        time.sleep(secrets.randbelow(10 * 1000) / 1000)


def crash_map(filename: str, contents: str) -> list[KeyValue]:
    """Like nocrash_map, but sometimes exits the process or stalls."""
    _maybe_crash()
    return _file_stats(filename, contents)


def crash_reduce(key: str, values: list[str]) -> str:
    _maybe_crash()
    return " ".join(sorted(values))


def nocrash_map(filename: str, contents: str) -> list[KeyValue]:
    return _file_stats(filename, contents)


def nocrash_reduce(key: str, values: list[str]) -> str:
    return " ".join(sorted(values))


def early_exit_map(filename: str, contents: str) -> list[KeyValue]:
    return [KeyValue(filename, "1")]


def early_exit_reduce(key: str, values: list[str]) -> str:
    """Count values; some keys take a long time to finish."""
    if "sherlock" in key or "tom" in key:
        time.sleep(3)
    return str(len(values))


_jobcount = itertools.count()


def jobcount_map(filename: str, contents: str) -> list[KeyValue]:
    """Leave a marker file per invocation so reducers can count map runs."""
    marker = Path(f"mr-worker-jobcount-{os.getpid()}-{next(_jobcount)}")
    marker.write_text("x")
    time.sleep((2000 + secrets.randbelow(3000)) / 1000)
    return [KeyValue("a", "x")]


def jobcount_reduce(key: str, values: list[str]) -> str:
    return str(sum(1 for p in Path(".").iterdir() if p.name.startswith("mr-worker-jobcount")))


def _alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except OSError:
        return False
    return True


def nparallel(phase: str) -> int:
    """Count workers currently running ``phase`` in this directory, self included."""
    mine = Path(f"mr-worker-{phase}-{os.getpid()}")
    mine.write_text("x")
    pattern = re.compile(rf"mr-worker-{re.escape(phase)}-(\d+)")
    running = 0
    for entry in os.listdir("."):
        match = pattern.fullmatch(entry)
        if match and _alive(int(match.group(1))):
            running += 1
    time.sleep(1)
    mine.unlink()
    return running


def mtiming_map(filename: str, contents: str) -> list[KeyValue]:
    started = time.time()
    pid = os.getpid()
    n = nparallel("map")
    return [
        KeyValue(f"times-{pid}", f"{started:.1f}"),
        KeyValue(f"parallel-{pid}", str(n)),
    ]


def mtiming_reduce(key: str, values: list[str]) -> str:
    return " ".join(sorted(values))


def rtiming_map(filename: str, contents: str) -> list[KeyValue]:
    return [KeyValue(letter, "1") for letter in "abcdefghij"]


def rtiming_reduce(key: str, values: list[str]) -> str:
    return str(nparallel("reduce"))


_APPS: dict[str, tuple[MapFunc, ReduceFunc]] = {
    "wc": (wc_map, wc_reduce),
    "indexer": (indexer_map, indexer_reduce),
    "crash": (crash_map, crash_reduce),
    "nocrash": (nocrash_map, nocrash_reduce),
    "early_exit": (early_exit_map, early_exit_reduce),
    "jobcount": (jobcount_map, jobcount_reduce),
    "mtiming": (mtiming_map, mtiming_reduce),
    "rtiming": (rtiming_map, rtiming_reduce),
}


def load_app(name: str) -> tuple[MapFunc, ReduceFunc]:
    """Return the (map, reduce) pair for an application name such as "wc" or "../mrapps/wc.so"."""
    base = Path(name).name
    stem = base.split(".", 1)[0]
    try:
        return _APPS[stem]
    except KeyError:
        raise ValueError(f"cannot load application {name}") from None