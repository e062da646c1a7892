#!/usr/bin/env python3
"""Start script that honours the PORT environment variable."""

import os
import sys
import subprocess

port = os.environ.get("PORT", "8000")

try:
    port_int = int(port)
except ValueError:
    print(f"Warning: Invalid PORT value '{port}', using default 8000", file=sys.stderr)
    port_int = 8000

# The app is imported as src.sequencer.main, so the project root must be importable.
project_root = os.path.dirname(os.path.abspath(__file__))
pythonpath = os.environ.get("PYTHONPATH", "")
os.environ["PYTHONPATH"] = f"{project_root}:{pythonpath}" if pythonpath else project_root

cmd = [
    sys.executable,
    "-m",
    "uvicorn",
    "src.sequencer.main:app",
    "--host",
    "0.0.0.0",
    "--port",
    str(port_int),
    "--proxy-headers",
]

print(f"Starting server on port {port_int}", file=sys.stderr)
sys.exit(subprocess.call(cmd, cwd=project_root))
