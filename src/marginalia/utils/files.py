"""Atomic file writes."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from ..errors import SessionIOError


def atomic_write_text(path: Path, content: str) -> Path:
    """Write ``content`` to ``path`` via a temporary sibling and ``os.replace``.

    The target is either fully written or left as it was; the temporary file
    is removed on every failure path.
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    except OSError as e:
        raise SessionIOError(str(e)) from e

    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(content)
        os.replace(tmp_name, path)
    except OSError as e:
        raise SessionIOError(str(e)) from e
    finally:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
    return path
