"""JSON-file user store with serialized access and read-only fallback.

The whole collection lives in one JSON array at a configurable path. All
access is funnelled through a per-instance WriteQueue so read-modify-write
cycles never interleave. If the primary path turns out to be unwritable
(read-only filesystem, missing permissions) the store moves to a scratch
path once and stays there for the rest of its life.
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional, Sequence, Tuple, Union

from ..event_log import log_event
from ..write_queue import WriteQueue
from .filesystem import LocalFilesystem, is_read_only_error
from .models import Failure, UserRecord

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "data/users.json"
DEFAULT_SCRATCH_PATH = Path(tempfile.gettempdir()) / "tripmaker-users.json"


class StoreError(Exception):
    """Base class for user store failures."""


class CorruptStore(StoreError):
    """The collection file exists but is not a JSON array of records."""


class StorageUnavailable(StoreError):
    """Neither the primary nor the scratch location can be used."""


class Location(enum.Enum):
    PRIMARY = "primary"
    SCRATCH = "scratch"


AccessFn = Callable[[list], Tuple[Optional[list], Any]]


class UserStore:
    """Serialized access to the JSON user collection.

    Args:
        db_path: Primary location of the collection file. Parent directories
                 are created on first use. Defaults to "data/users.json".
        scratch_path: Writable fallback used once the primary path rejects
                      writes. Defaults to "<tempdir>/tripmaker-users.json".
        filesystem: Object providing ``ensure_file``, ``read_text`` and
                    ``write_text``. Defaults to LocalFilesystem.
    """

    def __init__(
        self,
        db_path: Union[str, Path] = DEFAULT_DB_PATH,
        scratch_path: Union[str, Path] = DEFAULT_SCRATCH_PATH,
        filesystem: Optional[LocalFilesystem] = None,
    ) -> None:
        self._primary_path = Path(db_path).resolve()
        self._scratch_path = Path(scratch_path).resolve()
        self._fs = filesystem or LocalFilesystem()
        self._queue = WriteQueue()
        self._unavailable = False
        self._location = (
            Location.SCRATCH if self._primary_path == self._scratch_path else Location.PRIMARY
        )

    @property
    def location(self) -> Location:
        return self._location

    @property
    def active_path(self) -> Path:
        if self._location is Location.SCRATCH:
            return self._scratch_path
        return self._primary_path

    # --- public operations, all queued ---

    async def load(self) -> list[UserRecord]:
        """Read the full collection, creating an empty one if absent."""
        return await self._queue.submit(self._load)

    async def save(self, users: Sequence[UserRecord]) -> None:
        """Replace the full collection."""
        users = list(users)
        await self._queue.submit(lambda: self._save(users))

    async def with_serialized_access(self, fn: AccessFn) -> Any:
        """Run ``fn`` against the collection with exclusive, in-order access.

        ``fn`` receives the current list of records and returns
        ``(new_users, result)``. ``new_users`` is written back unless it is
        None or ``result`` is a Failure; ``result`` is returned either way.
        """

        async def job() -> Any:
            users = await self._load()
            new_users, result = fn(list(users))
            if new_users is not None and not isinstance(result, Failure):
                await self._save(new_users)
            return result

        return await self._queue.submit(job)

    # --- queued internals; only ever called from inside a queue job ---

    async def _load(self) -> list[UserRecord]:
        self._check_available()
        try:
            raw = await self._read_active()
        except UnicodeDecodeError as e:
            raise CorruptStore(f"Invalid users data file {self.active_path}: {e}") from e
        except OSError as e:
            if not self._relocate(e):
                raise self._unavailable_error(e) from e
            try:
                raw = await self._read_active()
            except OSError as e2:
                self._unavailable = True
                raise self._unavailable_error(e2) from e2
        return self._parse(raw)

    async def _save(self, users: Sequence[UserRecord]) -> None:
        self._check_available()
        payload = json.dumps([u.to_dict() for u in users], indent=2, ensure_ascii=False)
        try:
            await self._write_active(payload)
        except OSError as e:
            if not self._relocate(e):
                raise self._unavailable_error(e) from e
            try:
                await self._write_active(payload)
            except OSError as e2:
                self._unavailable = True
                raise self._unavailable_error(e2) from e2

    async def _read_active(self) -> str:
        path = self.active_path

        def read() -> str:
            self._fs.ensure_file(path)
            return self._fs.read_text(path)

        return await asyncio.to_thread(read)

    async def _write_active(self, payload: str) -> None:
        path = self.active_path

        def write() -> None:
            self._fs.ensure_file(path)
            self._fs.write_text(path, payload)

        await asyncio.to_thread(write)

    def _relocate(self, error: OSError) -> bool:
        """Switch to the scratch path for good. False if that is not allowed."""
        if self._location is Location.SCRATCH or not is_read_only_error(error):
            return False

        self._location = Location.SCRATCH
        logger.warning(
            f"User store at {self._primary_path} is not writable ({error.strerror}); "
            f"falling back to {self._scratch_path}"
        )
        log_event(
            "user_store_relocated",
            component="user-store",
            primary=str(self._primary_path),
            scratch=str(self._scratch_path),
            error=str(error),
        )
        return True

    def _check_available(self) -> None:
        if self._unavailable:
            raise StorageUnavailable(
                f"User store is unavailable (primary {self._primary_path}, "
                f"scratch {self._scratch_path})"
            )

    def _unavailable_error(self, error: OSError) -> StorageUnavailable:
        logger.error(f"User store I/O failed at {self.active_path}: {error}")
        return StorageUnavailable(f"Cannot access user store at {self.active_path}: {error}")

    def _parse(self, raw: str) -> list[UserRecord]:
        if not raw.strip():
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CorruptStore(f"Invalid users data file {self.active_path}: {e}") from e

        if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
            raise CorruptStore(
                f"Invalid users data file {self.active_path}: expected a JSON array of objects"
            )
        return [UserRecord.from_dict(item) for item in data]
