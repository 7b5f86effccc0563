"""Local filesystem operations used by the user store.

The store only talks to an object with this interface, so tests can swap in
one that simulates read-only storage.
"""

from __future__ import annotations

import errno
import os
import tempfile
from pathlib import Path

READ_ONLY_ERRNOS = frozenset({errno.EROFS, errno.EPERM, errno.EACCES})


def is_read_only_error(error: BaseException) -> bool:
    """True for permission and read-only filesystem failures."""
    return isinstance(error, OSError) and error.errno in READ_ONLY_ERRNOS


class LocalFilesystem:
    """Blocking file access; callers run it off the event loop."""

    def ensure_file(self, path: Path, initial: str = "[]") -> None:
        """Create the parent directory and ``path`` (with ``initial``) if absent."""
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            # "x" fails if the file exists, so a concurrent creator is never clobbered.
            with open(path, "x", encoding="utf-8") as f:
                f.write(initial)
        except FileExistsError:
            pass

    def read_text(self, path: Path) -> str:
        return path.read_text(encoding="utf-8")

    def write_text(self, path: Path, data: str) -> None:
        """Replace ``path`` atomically via a sibling temp file and ``os.replace``."""
        fd, tmp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
