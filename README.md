# chunkscope

chunkscope measures how much of a contract's bytecode is actually touched
when Ethereum transactions run. It replays `debug_traceBlockByNumber`
traces, marks every bytecode byte that was executed or read as a `PUSH`
immediate, and groups those bytes into 32-byte chunks. For each block and
contract it records how many bytes of each chunk were used, along with how
often the code was inspected as a whole (`CODESIZE`, `EXTCODESIZE`,
`EXTCODEHASH`, `CODECOPY`, `EXTCODECOPY`).

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Usage

Create a `configs/config.env` (or `configs/config`) file in the working
directory, or set the same keys as environment variables, then start the
analysis:

```
chunkscope run
```

A non-empty environment variable takes precedence over the config file,
which takes precedence over the defaults. If the configuration is invalid,
the errors are logged and the command exits with status 1.

Press Ctrl+C (or send SIGTERM) to stop: workers stop before their next
block, and RPC calls that are waiting to retry give up.

### Configuration keys

| Key                   | Default                 | Meaning                                           |
|-----------------------|-------------------------|---------------------------------------------------|
| `RPC_URLS`            | `http://localhost:8545` | Comma-separated HTTP(S) node endpoints, one per worker |
| `START_BLOCKS`        |                         | Comma-separated first block for each worker       |
| `END_BLOCKS`          |                         | Comma-separated last block for each worker        |
| `TRACE_DIR`           |                         | Folder of cached `block_<n>_trace.json` files     |
| `RESULT_DIR`          |                         | Folder the CSV results go to (must be set)        |
| `LOG_LEVEL`           | `info`                  | `debug`, `info`, `warn` or `error`                |
| `LOG_FORMAT`          | `text`                  | `text` or `json`                                  |
| `LOG_FILE`            |                         | Optional log file path                            |
| `RETRY_MAX_ATTEMPTS`  | `100`                   | RPC attempts before giving up (at least 1)        |
| `RETRY_BASE_DELAY_MS` | `1000`                  | First back-off delay; doubles on each retry       |
| `RETRY_MAX_DELAY_MS`  | `20000`                 | Back-off ceiling (not below the base delay)       |
| `RETRY_JITTER`        | `true`                  | Add up to 50% random jitter to each delay         |

`TRACE_DIR` and `LOG_FILE` may use `$VAR`, `${VAR}` and a leading `~/`.
Worker `i` analyses blocks `START_BLOCKS[i]` to `END_BLOCKS[i]` through the
`i`-th endpoint that could be set up, so the block lists need an entry for
each endpoint.

Example `configs/config.env`:

```
RPC_URLS=http://localhost:8545
START_BLOCKS=20000000
END_BLOCKS=20000099
TRACE_DIR=~/traces
RESULT_DIR=results
```

If a trace file for a block already exists in `TRACE_DIR`, it is used and
no trace request is sent to the node. Transaction recipients and contract
code are still fetched over RPC; code is cached per address and block.

### Output

Each worker appends to `RESULT_DIR/analysis-<worker>.csv`. A new file starts
with the header

```
block_number,address,bytecode_size,chunks_data,code_size_hash_count,code_copy_count
```

and an existing file is appended to without a second header. Addresses are
written in checksummed hex. `chunks_data` is the base64 encoding of one
byte per 32-byte chunk, each holding how many bytes of that chunk were
accessed (0–32).

## What it does not do

- `LOG_LEVEL` and `LOG_FORMAT` are validated, and the directory of
  `LOG_FILE` is created, but the `run` command always logs text at `info`
  level to standard output; nothing is written to the log file.
- Only HTTP and HTTPS endpoints are supported.
- Traces are not saved to `TRACE_DIR`; that folder is only read.

## Library use

The chunk bookkeeping is available on its own:

```python
from chunkscope.bitset import BitSet

bits = BitSet(100)
bits.set(0).set(1).set(40)
bits.count()          # 3
bits.chunk_count()    # 2
bits.chunks()         # b'\x02\x01\x00\x00'
bits.encode_chunks()  # 'AgEAAA=='
```

`BitSet` holds at most 24,576 bytes (the maximum contract size).
`BitSet.chunk_efficiency_stats()`, `BitSet.chunk_efficiencies()` and
`BitSet.chunk_details()` give per-chunk figures, and
`chunkscope.writer.ResultWriter` (usable as a context manager) writes the
CSV format described above. `chunkscope.config.load_config()`,
`chunkscope.rpcclient.RpcClient`, `chunkscope.analyzer.Analyzer` and
`chunkscope.engine.Engine` are the pieces the `run` command is built from.