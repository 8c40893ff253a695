"""Filesystem helpers."""

import os
import tempfile
from pathlib import Path


def atomic_write(path: Path, data: str) -> None:
    """Write ``data`` to ``path`` via temp file + rename.

    The temp file lives in the target directory so the rename never crosses
    filesystems; on failure it is removed and the old file stays intact.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
        os.replace(temp_path, path)
    except BaseException:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise
