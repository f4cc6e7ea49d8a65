# lansync

lansync is a file synchronisation server and client for one local network.
The server holds the reference copy of a directory. Clients find the server
through a UDP broadcast and register with it. Client and server then talk over
a small HTTP protocol. It is built on `asyncio` and uses only the standard
library.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Running

```
lansync --mode server
lansync --mode client
```

The command takes `-m` / `--mode` (`server` or `client`, in any letter case)
and `--version`. Any other mode, or no mode at all, prints a hint and exits
with status 1.

**Server mode** does the following:

- It serves the directory `/home/user/sync-server`.
- It listens for HTTP on TCP port 8080 on all IPv4 interfaces.
- It answers discovery broadcasts on UDP port 45454.
- It exits with status 1 if the TCP port cannot be bound.

**Client mode** works as follows:

1. It broadcasts `DISCOVER_REQUEST` to UDP port 45454.
2. For every server that answers with `DISCOVER_RESPONSE`, it sends
   `GET /register` to that server on port 8080.
3. It then starts a `SyncService` for the local directory `/home/user/sync`.
4. The service pings the server at once, and then every 30 seconds. It also
   watches the local directory.

Both directories are fixed in command-line use. When you use the library, you
can give other directories.

## Protocol

The server handles the following requests:

| Request | Answer |
|---|---|
| `GET /register` | Records the caller's IP address and answers `Registered`. |
| `GET /ping` | Refreshes the caller's registration and answers `Pong`. |
| `POST /sync-list` | Takes a JSON array of objects with `path` and `version`, where `version` is a decimal string. It answers `200 All files accepted` if every entry is unknown to the server or newer than the server's copy. Otherwise it answers `409 Some files are outdated`. Elements that are not objects are skipped. A body that is not a JSON array gets `400 Invalid JSON`. The server's file list is not changed. |
| `POST /upload` | Stores the body under `X-File-Path`. `X-File-Version` must be a positive integer and the body must not be empty, or the answer is `400`. `X-File-Type` is optional and defaults to `modified`. A version that is not newer than the server's copy gets `409`. A failed write gets `500`. |
| `GET /download?path=<relative path>` | Returns the file's bytes as `application/octet-stream`. A missing file gets `404 File not found`. |

Any other request is answered with `404 Unknown command`.

Every minute, the server forgets clients it has not heard from for more than
three minutes. When it accepts an upload, it sends `POST /notify` with the body
`{"path": ...}` to every registered client on port 8080.

A file's version is its modification time in whole seconds since the epoch.
Its type is its file-name suffix. Files and directories whose names start with
`.` are ignored.

## Using it as a library

- `lansync.entry.FileEntry` is a dataclass with `path`, `type` and `version`.
  It has `to_json()` and `FileEntry.from_json(obj)`.
- `lansync.monitor.FileMonitor(directory, on_changed, on_removed)` scans a
  directory tree and reports files through callbacks:
  - `start()` and `rescan()` report added, changed and removed files.
  - `current_files()` lists the known entries.
  - `watched_paths()` gives the files and their parent directories.
  - `file_changed(path)` and `directory_changed(path)` handle single events.
  - `await run(interval)` polls modification times until it is cancelled.
- `lansync.discovery` provides `start_responder(host, port)` and
  `start_discovery(on_discovered, port)`. These are built on the
  `DiscoveryResponder` and `DiscoveryClient` datagram protocols.
- `lansync.protocol` has the `Request` dataclass, plus `parse_request`,
  `build_response`, `query_value` and `split_response`.
- `lansync.server.SyncServer(directory)` serves the protocol above.
  - `handle_request(request, peer)` returns the response bytes without needing
    a network.
  - `await listen(host, port)` and `await stop()` start and stop serving.
  - `cleanup_inactive_clients(now)` and `await notify_update(path)` are also
    public.
  - `fetch_from_remote(path, host, port, timeout)` fetches the body of an HTTP
    GET. Nothing in the server calls it.
- `lansync.service.SyncService(server_host, server_port, directory)` is the
  client side. It has these coroutines:
  - `start`
  - `send_ping`
  - `send_sync_list(files)`
  - `upload_file(entry)`
  - `get_file(relative_path)`
  - `handle_notify(body)`

  The request bytes are built by `build_sync_list_request`,
  `build_upload_request` and `build_download_request`.

## What it does not do

- **No automatic file exchange.** The client only logs local changes. It does
  not send sync lists or uploads on its own. Call `send_sync_list` and
  `upload_file` yourself.
- **Notifications are not received.** The client does not listen for HTTP, so
  the server's `POST /notify` messages reach nothing. `handle_notify` exists
  for code that receives them itself.
- **Deletions are not propagated.** No request removes files.
- **Paths are not checked.** Uploaded and downloaded paths are joined to the
  directory as given.
- **No authentication or encryption.**