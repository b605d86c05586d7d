# towerlink

`towerlink` helps a standby validator node take over from a primary. It has
three parts:

- `towerlink.checker` watches how far a node has fallen behind a reference
  RPC endpoint and sets a switch flag once the gap is more than 30 slots;
  it also compares the public keys of two keypair files;
- `towerlink.transfer` serves the tower file from the node that holds the
  primary identity, and fetches it on the node that is about to take over;
- `towerlink.cloudflare` reads and writes raw bytes in a Cloudflare Workers
  KV namespace, with a five-minute expiry on every write.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Running

```
towerlink
towerlink --log-level DEBUG
```

The command loads a `.env` file found from the working directory if there is
one, sets the log level (from `--log-level`, else `LOG_LEVEL`, else `ERROR`;
timestamps in UTC), builds an endpoint on `127.0.0.1:$PORT` and runs the
server side and the client side together until both end. It exits with 0, or
130 when interrupted.

- The server accepts TLS connections and reads commands from each peer.
  On `tower-request` it checks the keys and, if this node is the primary,
  sends the contents of `TOWER_FILE_PATH`. On `tower-request-complete` it
  clears the switch flag.
- The client waits until the switch flag is set, connects to
  `QUIC_SERVER_URL` (server name `server`), sends `tower-request`, reads up to
  2319 bytes, writes them to `TOWER_FILE_PATH` and sends
  `tower-request-complete`.

The endpoint uses `cert.pem` and `key.pem` from the working directory for the
server side, and trusts `cert.pem` on the client side.

## Configuration

All settings come from environment variables (or `.env`):

| Variable                  | Used for                                                  |
|---------------------------|-----------------------------------------------------------|
| `PORT`                    | local port the endpoint listens on (0–65535)              |
| `QUIC_SERVER_URL`         | `ip:port` or `[ipv6]:port` of the peer to fetch the tower from |
| `TOWER_FILE_PATH`         | tower file to serve or to write                           |
| `LOG_LEVEL`               | log level when `--log-level` is not given                 |
| `NODE_URL`                | RPC of the watched node, default `http://localhost:8899`  |
| `RPC_URL`                 | reference RPC, default `http://localhost:8899`            |
| `NODE_REFERNCE_KEY_PATH`  | keypair file of the reference identity                    |
| `NODE_PRIMARY_KEY_PATH`   | keypair file of the primary identity                      |
| `ACCOUNT_ID`              | Cloudflare account identifier                             |
| `NAMESPACE_ID`            | Workers KV namespace identifier                           |

A keypair file is a JSON array of 64 bytes; its last 32 bytes are the public
key. `check_keys()` returns `True` when the two files hold the same public
key, which is how a node knows it runs as the primary.

## Library use

Switch state:

```python
from towerlink.checker import request_switch, should_switch, switch_complete

request_switch()
assert should_switch()
switch_complete()
```

`wait_for_switch(poll_interval)` is a coroutine that returns once a switch has
been requested.

Slot watching, run as a task:

```python
import asyncio
from towerlink.checker import check_rpc

asyncio.run(check_rpc("http://localhost:8899", "http://localhost:8899", None))
```

`check_rpc` calls `getSlot` with `confirmed` commitment on both URLs in a loop.
`get_slot` retries a failing call up to five times, 100 ms apart, and then
raises, which ends the watcher.

Key-value store:

```python
import asyncio
from towerlink.cloudflare import CloudflareKV

async def roundtrip(data: bytes) -> bytes:
    async with CloudflareKV("token", "account-id", "namespace-id", None) as kv:
        await kv.write("tower", data)
        return await kv.read("tower")
```

When `account_id` or `namespace_id` is not given, `ACCOUNT_ID` and
`NAMESPACE_ID` are used. HTTP errors are raised as `httpx.HTTPStatusError`.

The tower exchange lives in `towerlink.transfer` (`run_server`, `run_client`,
`handle_stream_server`, `handle_stream_client`, `parse_socket_addr`), and the
endpoint setup in `towerlink.config` (`Endpoint`, `make_endpoint`,
`make_server_config`, `make_client_config`).

## What it does not do

- The `towerlink` command does not start the slot watcher. Nothing in the
  command sets the switch flag, so its client waits until a program using
  the library calls `request_switch()` (for example by running `check_rpc`)
  in the same process.
- The Workers KV client is not used by the tower exchange: when the peer
  cannot be reached, the tower is not stored in or loaded from KV
  automatically.
- The transport is TLS over TCP on localhost; the endpoint always binds to
  `127.0.0.1`.