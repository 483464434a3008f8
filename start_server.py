#!/usr/bin/env python3
"""Start uvicorn on the PORT given by the hosting platform."""

import os
import subprocess
import sys

port = os.environ.get("PORT", "8000")
try:
    port_int = int(port)
except ValueError:
    print(f"Warning: Invalid PORT value '{port}', using default 8000", file=sys.stderr)
    port_int = 8000

# One worker: the in-memory lease store only serializes within a process
cmd = [
    sys.executable,
    "-m",
    "uvicorn",
    "buslease.main:app",
    "--host",
    "0.0.0.0",
    "--port",
    str(port_int),
    "--proxy-headers",
    "--forwarded-allow-ips", "*",
]

try:
    import buslease.main  # noqa: F401
except Exception as e:
    print(f"❌ Failed to import buslease.main: {e}", file=sys.stderr)
    import traceback
    traceback.print_exc(file=sys.stderr)
    sys.exit(1)

print(f"🚀 Starting uvicorn on port {port_int}...", file=sys.stderr)
try:
    sys.exit(subprocess.call(cmd))
except KeyboardInterrupt:
    print("⚠️ Server interrupted by user", file=sys.stderr)
    sys.exit(0)
