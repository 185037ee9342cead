"""Tests for the in-memory and sealed file stores."""

import os
import stat
from concurrent.futures import ThreadPoolExecutor

import pytest

from stellarvault.errors import StoreError
from stellarvault.storage import STORE_KEY_ENV, FileStore, InMemoryStore, split_path


@pytest.fixture
def file_store(tmp_path, monkeypatch):
    monkeypatch.delenv(STORE_KEY_ENV, raising=False)
    return FileStore(tmp_path / "store")


@pytest.fixture(params=["memory", "file"])
def any_store(request, tmp_path, monkeypatch):
    if request.param == "memory":
        return InMemoryStore()
    monkeypatch.delenv(STORE_KEY_ENV, raising=False)
    return FileStore(tmp_path / "store")


class TestKeyValueContract:
    def test_get_missing(self, any_store):
        assert any_store.get("accounts/none") is None

    def test_put_get(self, any_store):
        any_store.put("accounts/acc1", b'{"a": 1}')
        assert any_store.get("accounts/acc1") == b'{"a": 1}'

    def test_overwrite(self, any_store):
        any_store.put("accounts/acc1", b"one")
        any_store.put("accounts/acc1", b"two")
        assert any_store.get("accounts/acc1") == b"two"

    def test_list_direct_children(self, any_store):
        any_store.put("accounts/b", b"1")
        any_store.put("accounts/a", b"1")
        any_store.put("accounts/nested/c", b"1")
        any_store.put("payments", b"1")
        assert any_store.list("accounts/") == ["a", "b", "nested/"]

    def test_list_empty_prefix(self, any_store):
        assert any_store.list("accounts/") == []

    def test_rejects_traversal(self, any_store):
        with pytest.raises(ValueError):
            any_store.put("accounts/../../etc", b"x")

    def test_concurrent_puts_last_writer_wins(self, any_store):
        values = [f"v{i}".encode() for i in range(16)]
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda v: any_store.put("accounts/shared", v), values))
        assert any_store.get("accounts/shared") in values


def test_split_path():
    assert split_path("/accounts/acc1/") == ["accounts", "acc1"]
    with pytest.raises(ValueError):
        split_path("")
    with pytest.raises(ValueError):
        split_path("accounts/.hidden")


class TestFileStoreSealing:
    def test_record_is_not_plaintext(self, file_store, tmp_path):
        file_store.put("accounts/acc1", b"SECRETSEED")
        raw = (tmp_path / "store" / "accounts" / "acc1.sealed").read_bytes()
        assert b"SECRETSEED" not in raw

    def test_files_are_private(self, file_store, tmp_path):
        file_store.put("accounts/acc1", b"x")
        record = tmp_path / "store" / "accounts" / "acc1.sealed"
        assert stat.S_IMODE(os.stat(record).st_mode) == 0o600
        key = tmp_path / ".stellarvault-secrets" / "store.key"
        assert stat.S_IMODE(os.stat(key).st_mode) == 0o600

    def test_temp_file_private_before_rename(self, file_store, monkeypatch):
        modes = []
        real_replace = os.replace

        def recording_replace(src, dst):
            modes.append(stat.S_IMODE(os.stat(src).st_mode))
            real_replace(src, dst)

        monkeypatch.setattr(os, "replace", recording_replace)
        old_umask = os.umask(0)
        try:
            file_store.put("accounts/acc1", b"x")
        finally:
            os.umask(old_umask)
        assert modes == [0o600]

    def test_tampering_detected(self, file_store, tmp_path):
        file_store.put("accounts/acc1", b"payload")
        record = tmp_path / "store" / "accounts" / "acc1.sealed"
        blob = bytearray(record.read_bytes())
        blob[-1] ^= 0x01
        record.write_bytes(bytes(blob))
        with pytest.raises(StoreError, match="integrity"):
            file_store.get("accounts/acc1")

    def test_record_bound_to_its_path(self, file_store, tmp_path):
        file_store.put("accounts/acc1", b"payload")
        base = tmp_path / "store" / "accounts"
        (base / "acc2.sealed").write_bytes((base / "acc1.sealed").read_bytes())
        with pytest.raises(StoreError):
            file_store.get("accounts/acc2")

    def test_key_persists_across_instances(self, file_store, tmp_path):
        file_store.put("accounts/acc1", b"payload")
        reopened = FileStore(tmp_path / "store")
        assert reopened.get("accounts/acc1") == b"payload"

    def test_key_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv(STORE_KEY_ENV, "11" * 32)
        store = FileStore(tmp_path / "store")
        store.put("accounts/acc1", b"payload")
        assert not (tmp_path / ".stellarvault-secrets" / "store.key").exists()
        assert FileStore(tmp_path / "store").get("accounts/acc1") == b"payload"

    def test_bad_environment_key(self, tmp_path, monkeypatch):
        monkeypatch.setenv(STORE_KEY_ENV, "abcd")
        with pytest.raises(ValueError):
            FileStore(tmp_path / "store")
