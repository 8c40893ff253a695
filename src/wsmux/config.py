"""wsmux configuration

Settings are grouped by concern:
- Storage: where session records and locks live (local and remote)
- Marks: how managed windows are tagged
- Polling: bounded waits for windows and lock holders
- SSH: transport options
- Terminal: emulator and multiplexer used to spawn shells
- Logging / metrics
"""

import os
from pathlib import Path

# === Storage ===
BASE_DIR = os.environ.get("WSMUX_BASE_DIR", "/tmp/wsmux")  # session + lock root (same path on every host)
SESSIONS_SUBDIR = "sessions"
LOCKS_SUBDIR = "locks"
SESSION_SUFFIX = ".json"
LOCK_SUFFIX = ".lock"
LOCK_PID_SUFFIX = ".lock.pid"
SESSION_FORMAT_VERSION = 1  # bump when SessionRecord changes incompatibly

STATE_DIR = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")) / "wsmux"
STATE_FILE = STATE_DIR / "state.json"

# === Hosts ===
LOCAL_HOST = "local"  # host string used for local sessions in marks and records

# === Marks ===
MARK_PREFIX = "_wsmux:"  # leading underscore hides the mark from i3 title bars

# === Polling ===
WINDOW_WAIT_MAX_ATTEMPTS = 30
WINDOW_WAIT_INTERVAL_SECONDS = 0.1
WINDOW_WAIT_LOG_EVERY = 10  # progress log every N failed attempts

LOCK_PID_WAIT_ATTEMPTS = 10
LOCK_PID_WAIT_INTERVAL_SECONDS = 0.1
LOCK_HEARTBEAT_SECONDS = 30
LOCK_HOLDER_STOP_TIMEOUT_SECONDS = 2.0
LOCK_RELEASE_WAIT_ATTEMPTS = 50  # polls for a remote holder to exit before its lock files go
LOCK_RELEASE_WAIT_INTERVAL_SECONDS = 0.1

# === SSH ===
SSH_COMMAND = "ssh"
SSH_CONTROL_DIR = os.environ.get("WSMUX_SSH_CONTROL_DIR", "/tmp/wsmux/sockets")
SSH_CONTROL_PERSIST = "10m"
SSH_TIMEOUT_SECONDS = 30.0
SSH_TRANSPORT_FAILURE_CODE = 255  # ssh's own exit status when the channel fails

# === Terminal ===
TERMINAL = os.environ.get("TERMINAL", "i3-sensible-terminal")
MULTIPLEXER = "abduco"
SOCKET_DIR = "/tmp"  # abduco socket directory on the session host
TERM_ENV = "xterm-256color"

# === Logging ===
LOG_LEVEL = os.environ.get("WSMUX_LOG_LEVEL", "INFO")

# === Metrics ===
METRICS_ENABLED = True
