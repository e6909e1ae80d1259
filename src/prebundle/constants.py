# SPDX-License-Identifier: MIT
"""Fixed values shared by every stage of the prebundle pipeline."""

from __future__ import annotations

# Output directories live under <project>/compiled/<dependency name>
DIST_DIR = "compiled"

# ncc bundles the wrong package.json when a dependency imports its own
# manifest, so those imports are always left external.
DEFAULT_EXTERNALS: dict[str, str] = {
    "./package.json": "./package.json",
    "../package.json": "./package.json",
    "../../package.json": "./package.json",
}

DEFAULT_ESBUILD_EXTERNALS: list[str] = ["electron"]

DEFAULT_TARGET = "es2019"
DEFAULT_PLATFORM = "node"
DEFAULT_FORMAT = "cjs"
FORMATS = ("cjs", "esm")

FALLBACK_DTS = "export = any;\n"

# Fields copied from the source manifest into the output package.json
MANIFEST_FIELDS = ["name", "author", "version", "funding", "license"]

TYPES_FIELDS = ["types", "typing", "typings"]

_BUILTIN_MODULES = [
    "_http_agent",
    "_http_client",
    "_http_common",
    "_http_incoming",
    "_http_outgoing",
    "_http_server",
    "_stream_duplex",
    "_stream_passthrough",
    "_stream_readable",
    "_stream_transform",
    "_stream_wrap",
    "_stream_writable",
    "_tls_common",
    "_tls_wrap",
    "assert",
    "assert/strict",
    "async_hooks",
    "buffer",
    "child_process",
    "cluster",
    "console",
    "constants",
    "crypto",
    "dgram",
    "diagnostics_channel",
    "dns",
    "dns/promises",
    "domain",
    "events",
    "fs",
    "fs/promises",
    "http",
    "http2",
    "https",
    "inspector",
    "inspector/promises",
    "module",
    "net",
    "os",
    "path",
    "path/posix",
    "path/win32",
    "perf_hooks",
    "process",
    "punycode",
    "querystring",
    "readline",
    "readline/promises",
    "repl",
    "stream",
    "stream/consumers",
    "stream/promises",
    "stream/web",
    "string_decoder",
    "sys",
    "timers",
    "timers/promises",
    "tls",
    "trace_events",
    "tty",
    "url",
    "util",
    "util/types",
    "v8",
    "vm",
    "wasi",
    "worker_threads",
    "zlib",
]

# Only resolvable with the node: scheme
_PREFIX_ONLY_MODULES = [
    "node:sea",
    "node:sqlite",
    "node:test",
    "node:test/reporters",
]

NODE_BUILTINS: list[str] = (
    _BUILTIN_MODULES
    + [f"node:{name}" for name in _BUILTIN_MODULES]
    + _PREFIX_ONLY_MODULES
)
