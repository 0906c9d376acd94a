"""Single-server key/value store that executes each client request once.

Each client numbers its requests 0, 1, 2, ... and sends them one at a time.
The server remembers the highest sequence number it has executed for every
client.  A repeated write is acknowledged without being applied again.  A
request that skips ahead of the next expected number is refused so that the
client retries it.
"""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass

from labkv.codec import register

__all__ = ["GetArgs", "GetReply", "PutAppendArgs", "PutAppendReply", "KVServer"]

log = logging.getLogger(__name__)


@dataclass
class PutAppendArgs:
    key: str = ""
    value: str = ""
    client_id: int = 0
    ack_seq: int = 0


@dataclass
class PutAppendReply:
    value: str = ""
    op_result: bool = False


@dataclass
class GetArgs:
    key: str = ""
    client_id: int = 0
    ack_seq: int = 0


@dataclass
class GetReply:
    value: str = ""
    op_result: bool = False


for _cls in (PutAppendArgs, PutAppendReply, GetArgs, GetReply):
    register(_cls)


class _Seq(enum.Enum):
    INVALID = "invalid"
    NEXT = "next"
    OLD = "old"
    AHEAD = "ahead"


class KVServer:
    """In-memory store whose ``get``, ``put`` and ``append`` methods are RPC handlers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._store: dict[str, str] = {}
        self._client_ack: dict[int, int] = {}

    def get(self, args: GetArgs) -> GetReply:
        """Return the value for a key, or "" if it is absent."""
        reply = GetReply()
        with self._lock:
            verdict = self._classify(args.client_id, args.ack_seq)
            if verdict not in (_Seq.NEXT, _Seq.OLD):
                log.debug("refusing get from %s seq %s (%s)", args.client_id, args.ack_seq, verdict)
                return reply
            reply.value = self._store.get(args.key, "")
            self._record(args.client_id, args.ack_seq)
            reply.op_result = True
        return reply

    def put(self, args: PutAppendArgs) -> PutAppendReply:
        """Replace a key's value; the reply carries the previous value."""
        reply = PutAppendReply()
        with self._lock:
            if not self._write_needed(args, reply):
                return reply
            reply.value = self._store.get(args.key, "")
            self._store[args.key] = args.value
            self._record(args.client_id, args.ack_seq)
            reply.op_result = True
        return reply

    def append(self, args: PutAppendArgs) -> PutAppendReply:
        """Append to a key's value; the reply carries the previous value."""
        reply = PutAppendReply()
        with self._lock:
            if not self._write_needed(args, reply):
                return reply
            old = self._store.get(args.key, "")
            reply.value = old
            self._store[args.key] = old + args.value
            self._record(args.client_id, args.ack_seq)
            reply.op_result = True
        return reply

    def _classify(self, client_id: int, seq: int) -> _Seq:
        if seq < 0:
            return _Seq.INVALID
        last = self._client_ack.get(client_id)
        if last is None:
            return _Seq.NEXT if seq == 0 else _Seq.AHEAD
        if last + 1 == seq:
            return _Seq.NEXT
        if seq <= last:
            return _Seq.OLD
        return _Seq.AHEAD

    def _write_needed(self, args: PutAppendArgs, reply: PutAppendReply) -> bool:
        verdict = self._classify(args.client_id, args.ack_seq)
        if verdict is _Seq.NEXT:
            return True
        if verdict is _Seq.OLD:
            # Already applied: acknowledge so the client stops retrying.
            reply.op_result = True
        else:
            log.debug("refusing write from %s seq %s (%s)", args.client_id, args.ack_seq, verdict)
        return False

    def _record(self, client_id: int, seq: int) -> None:
        last = self._client_ack.get(client_id)
        if last is None or last < seq:
            self._client_ack[client_id] = seq
        else:
            log.debug("client %s seq %s not newer than %s", client_id, seq, last)