import io
from dataclasses import dataclass, field
from typing import Any

import pytest

from labkv.codec import CodecError, Decoder, Encoder, error_count, register


@dataclass
class T1:
    T1int0: int = 0
    T1int1: int = 0
    T1string0: str = ""
    T1string1: str = ""


@dataclass
class T2:
    T2slice: list = field(default_factory=list)
    T2map: dict = field(default_factory=dict)
    T2t3: Any = None


@dataclass
class T3:
    T3int999: int = 0


@dataclass(frozen=True)
class T4:
    Yes: int = 0
    _no: int = 0


@dataclass
class DD:
    X: int = 0


def test_gob_round_trip():
    e0 = error_count()
    register(T3())
    buf = io.BytesIO()
    t1 = T1(T1int1=1, T1string1="6.5840")
    t2 = T2(T2slice=[T1(), t1], T2map={99: T1(1, 2, "x", "y")}, T2t3=T3(999))
    enc = Encoder(buf)
    enc.encode(0)
    enc.encode(1)
    enc.encode(t1)
    enc.encode(t2)

    dec = Decoder(io.BytesIO(buf.getvalue()))
    x0 = dec.decode(int)
    x1 = dec.decode(int)
    r1 = dec.decode(T1)
    r2 = dec.decode(T2)
    assert x0 == 0
    assert x1 == 1
    assert r1.T1int0 == 0
    assert r1.T1int1 == 1
    assert r1.T1string0 == ""
    assert r1.T1string1 == "6.5840"
    assert len(r2.T2slice) == 2
    assert r2.T2slice[1].T1int1 == 1
    assert len(r2.T2map) == 1
    assert r2.T2map[99].T1string1 == "y"
    assert isinstance(r2.T2t3, T3)
    assert r2.T2t3.T3int999 == 999
    assert error_count() == e0


def test_capital_warns_once():
    e0 = error_count()
    buf = io.BytesIO()
    Encoder(buf).encode([{T4(Yes=1, _no=5): 1}])
    decoded = Decoder(io.BytesIO(buf.getvalue())).decode(list)
    assert error_count() == e0 + 1
    key = next(iter(decoded[0]))
    assert key.Yes == 1
    assert key._no == 0


def test_default_warns_on_dirty_target():
    e0 = error_count()
    buf = io.BytesIO()
    Encoder(buf).encode(DD())
    result = Decoder(io.BytesIO(buf.getvalue())).decode(DD(99))
    assert error_count() == e0 + 1
    assert result == DD()


def test_containers_round_trip():
    value = {(1, "a"): {b"\x00\x01", }, "s": frozenset({2}), "n": None, "f": 1.5}
    buf = io.BytesIO()
    Encoder(buf).encode(value)
    assert Decoder(io.BytesIO(buf.getvalue())).decode() == value


def test_eof_raises():
    with pytest.raises(EOFError):
        Decoder(io.BytesIO(b"")).decode()


def test_type_mismatch_raises():
    buf = io.BytesIO()
    Encoder(buf).encode("text")
    with pytest.raises(CodecError):
        Decoder(io.BytesIO(buf.getvalue())).decode(int)


def test_unencodable_raises():
    with pytest.raises(CodecError):
        Encoder(io.BytesIO()).encode(object())