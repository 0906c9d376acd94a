# labkv

Building blocks for experimenting with distributed systems:

- **`labkv.codec`** – an `Encoder` / `Decoder` pair that writes each value as
  one line of JSON. Dataclasses, enums, tuples, sets, bytes and dictionaries
  with arbitrary hashable keys come back as the same Python types. Dataclass
  and enum types must be made known with `register` or `register_name` before
  they can be decoded. The codec prints a warning when a dataclass has private
  (underscore) fields, which are never sent, and when a value is decoded into
  a prototype that already holds non-default data; `error_count()` reports how
  many such warnings have been issued. Problems raise `CodecError`, and reading
  past the end of the stream raises `EOFError`.
- **`labkv.kvmodel`** – a sequential model of a key/value store for checking
  recorded histories: `partition` groups `Operation` records by key, `init`
  gives the empty starting value, `step` applies a `KvInput` / `KvOutput` pair
  and says whether it was legal, and `describe_operation` renders one
  operation as text.
- **`labkv.mr`** – a MapReduce framework: a `Coordinator` that hands out map
  and reduce tasks over a Unix-domain socket and hands a task out again if it
  is not reported finished within its timeout, a `worker` loop, a set of
  ready-made applications and command-line entry points.
- **`labkv.kvsrv.server`** – `KVServer`, an in-memory key/value store whose
  `get`, `put` and `append` methods execute each client request at most once.

Python 3.10 or later is required; there are no runtime dependencies. The
MapReduce coordinator and worker use Unix-domain sockets and so need a POSIX
system.

## Installation

```
pip install .
```

## MapReduce

### Applications

`labkv.mr.apps` provides map/reduce function pairs:

| name         | what it does                                                     |
|--------------|------------------------------------------------------------------|
| `wc`         | word count                                                       |
| `indexer`    | inverted index: for each word, the documents that contain it     |
| `nocrash`    | per-file statistics, fully deterministic                         |
| `crash`      | like `nocrash`, but sometimes exits the process or stalls        |
| `early_exit` | one count per input file; some reduce keys take three seconds    |
| `jobcount`   | counts how many times map tasks ran, using marker files          |
| `mtiming`    | reports how many map tasks ran in parallel                       |
| `rtiming`    | reports how many reduce tasks ran in parallel                    |

`load_app(name)` returns the `(map, reduce)` pair; it accepts a bare name such
as `"wc"` or a path whose file name starts with it, such as `"../mrapps/wc.so"`,
and raises `ValueError` for anything else.

### Sequentially

```
labkv-mrsequential wc pg-*.txt
```

reads every input file, runs the map function over it, sorts the
intermediate pairs by key and writes one `key value` line per distinct key to
`mr-out-0`. From Python:

```python
from labkv.mr.apps import wc_map, wc_reduce
from labkv.mr.cli import run_sequential

lines = run_sequential(wc_map, wc_reduce, ["pg-one.txt", "pg-two.txt"], "mr-out-0")
```

### Distributed

Start a coordinator with the input files, then any number of workers with the
application to run, all in the same working directory:

```
labkv-mrcoordinator pg-*.txt
labkv-mrworker wc
labkv-mrworker wc
```

The coordinator uses ten reduce tasks and listens on
`/var/tmp/5840-mr-<uid>`. Each map task writes intermediate files
`mr-<map>-<reduce>` (one JSON record per line); each reduce task writes
`mr-out-<reduce>`. Files are written under a temporary name and renamed into
place. Reduce tasks are handed out only after every map task has finished.
The coordinator exits once every reduce task has finished; a worker stops when
it is told there is nothing left to do or when it can no longer reach the
coordinator.

The same pieces can be driven from Python. `Coordinator(files, n_reduce,
task_timeout=10.0)` keeps the task tables; `get_job()` and
`report_job_result(JobFinishArgs(...))` work on them directly, and
`start_server(sockname)` / `stop_server()` serve them on a socket.
`worker(mapf, reducef, sockname, pause=3.0)` runs tasks against that socket,
and `process_job(reply, mapf, reducef)` runs a single `TaskReply` in the
current directory. `ihash(key)` is the 32-bit FNV-1a hash used to choose a
reduce bucket.

## The key/value store

```python
from labkv.kvsrv.server import KVServer, GetArgs, PutAppendArgs

server = KVServer()
server.put(PutAppendArgs(key="k", value="hello", client_id=7, ack_seq=0))
reply = server.append(PutAppendArgs(key="k", value=" world", client_id=7, ack_seq=1))
print(reply.value)                                              # hello
print(server.get(GetArgs(key="k", client_id=7, ack_seq=2)).value)  # hello world
```

Each client numbers its requests 0, 1, 2, … and sends them one at a time.
`put` and `append` return the previous value. A write the server has already
executed is acknowledged (`op_result` is true) without being applied again; a
request that skips ahead of the next expected number, or carries a negative
number, is refused (`op_result` is false) so that the client retries it.

## What the package does not do

- There is no network layer for the key/value store: `KVServer` is called
  in-process, and the package has no client that numbers, sends and retries
  requests for you.
- There is no replicated key/value service; `labkv.kvraft` holds no modules.
- There is no linearizability checker; `labkv.kvmodel` provides only the
  model such a checker would use.

## Running the tests

```
pip install ".[test]"
pytest
```