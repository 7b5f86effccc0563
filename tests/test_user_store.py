#!/usr/bin/env python3
"""Unit tests for the JSON user store."""

import asyncio
import errno
import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "tools"))

from tripmaker.auth.filesystem import LocalFilesystem
from tripmaker.auth.models import Failure, FailureKind, Profile, UserRecord
from tripmaker.auth.store import CorruptStore, Location, StorageUnavailable, UserStore


def make_user(n: int, **profile) -> UserRecord:
    return UserRecord(
        id=f"id-{n}",
        email=f"user{n}@x.com",
        credential_hash="aa:bb",
        profile=Profile(**profile),
        created_at="2026-01-20T12:34:56.000Z",
    )


class ReadOnlyFilesystem(LocalFilesystem):
    """Rejects every write or create under ``read_only_dir``."""

    def __init__(self, read_only_dir: Path, err: int = errno.EROFS):
        self.read_only_dir = read_only_dir.resolve()
        self.err = err
        self.calls = []

    def _guard(self, path: Path) -> None:
        self.calls.append(path)
        if self.read_only_dir in path.parents or path == self.read_only_dir:
            raise OSError(self.err, "Read-only file system", str(path))

    def ensure_file(self, path: Path, initial: str = "[]") -> None:
        self._guard(path)
        super().ensure_file(path, initial)

    def write_text(self, path: Path, data: str) -> None:
        self._guard(path)
        super().write_text(path, data)


class WriteProtectedFilesystem(ReadOnlyFilesystem):
    """Existing files under ``read_only_dir`` stay readable; nothing can be written."""

    def ensure_file(self, path: Path, initial: str = "[]") -> None:
        if path.exists():
            return
        super().ensure_file(path, initial)


class TestLoadSave:
    @pytest.mark.asyncio
    async def test_load_creates_empty_collection(self, tmp_path):
        db = tmp_path / "data" / "users.json"
        store = UserStore(db_path=db, scratch_path=tmp_path / "scratch.json")

        assert await store.load() == []
        assert json.loads(db.read_text()) == []

    @pytest.mark.asyncio
    async def test_blank_file_is_empty(self, tmp_path):
        db = tmp_path / "users.json"
        db.write_text("  \n")
        store = UserStore(db_path=db, scratch_path=tmp_path / "scratch.json")
        assert await store.load() == []

    @pytest.mark.asyncio
    async def test_save_then_load(self, tmp_path):
        db = tmp_path / "users.json"
        store = UserStore(db_path=db, scratch_path=tmp_path / "scratch.json")
        users = [make_user(1), make_user(2, language="es")]

        await store.save(users)

        assert await store.load() == users
        on_disk = json.loads(db.read_text())
        assert on_disk[1]["profile"]["language"] == "es"
        assert on_disk[0]["credentialHash"] == "aa:bb"
        assert set(on_disk[0]) == {"id", "email", "credentialHash", "profile", "createdAt"}

    @pytest.mark.asyncio
    async def test_legacy_record_gets_profile_defaults(self, tmp_path):
        db = tmp_path / "users.json"
        db.write_text(
            json.dumps(
                [
                    {
                        "id": "legacy-1",
                        "email": "Old@X.com",
                        "passwordHash": "aa:bb",
                        "profile": {"country": "France"},
                        "createdAt": "2025-01-01T00:00:00.000Z",
                    }
                ]
            )
        )
        store = UserStore(db_path=db, scratch_path=tmp_path / "scratch.json")

        [user] = await store.load()

        assert user.email == "old@x.com"
        assert user.credential_hash == "aa:bb"
        assert user.profile == Profile(country="France")

    @pytest.mark.asyncio
    async def test_invalid_json_is_corrupt(self, tmp_path):
        db = tmp_path / "users.json"
        db.write_text("{not json")
        store = UserStore(db_path=db, scratch_path=tmp_path / "scratch.json")

        with pytest.raises(CorruptStore, match="Invalid users data file"):
            await store.load()

    @pytest.mark.asyncio
    async def test_non_array_is_corrupt(self, tmp_path):
        db = tmp_path / "users.json"
        db.write_text('{"users": []}')
        store = UserStore(db_path=db, scratch_path=tmp_path / "scratch.json")

        with pytest.raises(CorruptStore):
            await store.load()

    @pytest.mark.asyncio
    async def test_corrupt_store_is_not_overwritten(self, tmp_path):
        db = tmp_path / "users.json"
        db.write_text("[{]")
        store = UserStore(db_path=db, scratch_path=tmp_path / "scratch.json")

        with pytest.raises(CorruptStore):
            await store.with_serialized_access(lambda users: (users + [make_user(1)], None))
        assert db.read_text() == "[{]"


class TestFallback:
    @pytest.mark.asyncio
    async def test_unwritable_primary_falls_back_to_scratch(self, tmp_path):
        primary_dir = tmp_path / "readonly"
        scratch = tmp_path / "tmp" / "scratch.json"
        store = UserStore(
            db_path=primary_dir / "users.json",
            scratch_path=scratch,
            filesystem=ReadOnlyFilesystem(primary_dir),
        )

        assert await store.load() == []
        assert store.location is Location.SCRATCH

        await store.save([make_user(1)])
        assert await store.load() == [make_user(1)]
        assert json.loads(scratch.read_text())[0]["id"] == "id-1"
        assert not (primary_dir / "users.json").exists()

    @pytest.mark.asyncio
    async def test_readable_primary_relocates_on_first_save(self, tmp_path):
        primary_dir = tmp_path / "bundle"
        primary_dir.mkdir()
        db = primary_dir / "users.json"
        db.write_text(json.dumps([make_user(1).to_dict()]))
        scratch = tmp_path / "tmp" / "scratch.json"
        store = UserStore(
            db_path=db,
            scratch_path=scratch,
            filesystem=WriteProtectedFilesystem(primary_dir),
        )

        assert await store.load() == [make_user(1)]
        assert store.location is Location.PRIMARY

        await store.save([make_user(1), make_user(2)])
        assert store.location is Location.SCRATCH

        assert await store.load() == [make_user(1), make_user(2)]
        assert [u["id"] for u in json.loads(scratch.read_text())] == ["id-1", "id-2"]
        assert [u["id"] for u in json.loads(db.read_text())] == ["id-1"]

    @pytest.mark.asyncio
    async def test_never_returns_to_primary(self, tmp_path):
        primary_dir = tmp_path / "readonly"
        fs = ReadOnlyFilesystem(primary_dir, err=errno.EACCES)
        store = UserStore(
            db_path=primary_dir / "users.json",
            scratch_path=tmp_path / "scratch.json",
            filesystem=fs,
        )

        await store.save([make_user(1)])
        fs.calls.clear()
        await store.load()
        await store.save([make_user(1), make_user(2)])

        assert all(fs.read_only_dir not in p.parents for p in fs.calls)

    @pytest.mark.asyncio
    async def test_relocation_is_logged_as_event(self, tmp_path, isolated_event_log):
        primary_dir = tmp_path / "readonly"
        store = UserStore(
            db_path=primary_dir / "users.json",
            scratch_path=tmp_path / "scratch.json",
            filesystem=ReadOnlyFilesystem(primary_dir),
        )
        await store.load()

        events = [json.loads(line) for line in isolated_event_log.read_text().splitlines()]
        assert events[-1]["event_type"] == "user_store_relocated"

    @pytest.mark.asyncio
    async def test_scratch_failure_is_fatal(self, tmp_path):
        store = UserStore(
            db_path=tmp_path / "users.json",
            scratch_path=tmp_path / "scratch.json",
            filesystem=ReadOnlyFilesystem(tmp_path),
        )

        with pytest.raises(StorageUnavailable):
            await store.load()
        with pytest.raises(StorageUnavailable):
            await store.load()

    @pytest.mark.asyncio
    async def test_other_io_errors_do_not_relocate(self, tmp_path):
        primary_dir = tmp_path / "full"
        store = UserStore(
            db_path=primary_dir / "users.json",
            scratch_path=tmp_path / "scratch.json",
            filesystem=ReadOnlyFilesystem(primary_dir, err=errno.ENOSPC),
        )

        with pytest.raises(StorageUnavailable):
            await store.load()
        assert store.location is Location.PRIMARY

    def test_primary_equal_to_scratch_starts_on_scratch(self, tmp_path):
        path = tmp_path / "users.json"
        store = UserStore(db_path=path, scratch_path=path)
        assert store.location is Location.SCRATCH


class TestSerializedAccess:
    @pytest.mark.asyncio
    async def test_result_returned_and_collection_written(self, tmp_path):
        store = UserStore(db_path=tmp_path / "users.json", scratch_path=tmp_path / "s.json")

        result = await store.with_serialized_access(lambda users: (users + [make_user(1)], "added"))

        assert result == "added"
        assert await store.load() == [make_user(1)]

    @pytest.mark.asyncio
    async def test_failure_result_skips_write(self, tmp_path):
        store = UserStore(db_path=tmp_path / "users.json", scratch_path=tmp_path / "s.json")
        failure = Failure(FailureKind.DUPLICATE_EMAIL, "taken")

        result = await store.with_serialized_access(lambda users: (users + [make_user(1)], failure))

        assert result is failure
        assert await store.load() == []

    @pytest.mark.asyncio
    async def test_concurrent_appends_are_not_lost(self, tmp_path):
        store = UserStore(db_path=tmp_path / "users.json", scratch_path=tmp_path / "s.json")

        def append(n):
            return lambda users: (users + [make_user(n)], n)

        await asyncio.gather(*(store.with_serialized_access(append(n)) for n in range(20)))

        users = await store.load()
        assert [u.id for u in users] == [f"id-{n}" for n in range(20)]

    @pytest.mark.asyncio
    async def test_exception_in_fn_propagates_without_write(self, tmp_path):
        store = UserStore(db_path=tmp_path / "users.json", scratch_path=tmp_path / "s.json")

        def broken(users):
            raise KeyError("boom")

        with pytest.raises(KeyError):
            await store.with_serialized_access(broken)
        assert await store.load() == []

    @pytest.mark.asyncio
    async def test_later_operation_sees_earlier_write(self, tmp_path):
        store = UserStore(db_path=tmp_path / "users.json", scratch_path=tmp_path / "s.json")

        first = store.with_serialized_access(lambda users: (users + [make_user(1)], None))
        second = store.with_serialized_access(lambda users: (None, len(users)))

        _, seen = await asyncio.gather(first, second)
        assert seen == 1
