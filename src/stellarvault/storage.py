"""
Secret store backends.

The engine only ever talks to a ``KeyValueStore``: hierarchical string paths
mapped to opaque byte blobs, with list/get/put semantics and last-writer-wins
on concurrent puts. Any durable backend can implement it.
"""

from __future__ import annotations

import fcntl
import os
import re
import secrets
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Protocol

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import StoreError


_SAFE_ID_RE = re.compile(r"[^a-zA-Z0-9._-]")
_SEGMENT_RE = re.compile(r"^[a-zA-Z0-9_][a-zA-Z0-9._-]*$")

STORE_KEY_ENV = "STELLARVAULT_STORE_KEY"
_NONCE_SIZE = 12


class KeyValueStore(Protocol):
    def get(self, path: str) -> Optional[bytes]: ...

    def put(self, path: str, value: bytes) -> None: ...

    def list(self, prefix: str) -> list[str]: ...


def ensure_private_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)
    os.chmod(path, 0o700)


def ensure_private_file(path: Path) -> None:
    if not path.exists():
        path.touch()
    os.chmod(path, 0o600)


def sanitize_identifier(value: str) -> str:
    """Return a filesystem-safe identifier."""
    return _SAFE_ID_RE.sub("_", value)


def safe_child_path(base_dir: Path, identifier: str, suffix: str) -> Path:
    """Build a canonical child path under base_dir and reject traversal."""
    safe_name = sanitize_identifier(identifier)
    path = (base_dir / f"{safe_name}{suffix}").resolve()
    base = base_dir.resolve()
    if path.parent != base:
        raise ValueError(f"Unsafe path for identifier: {identifier}")
    return path


def split_path(path: str) -> list[str]:
    """Split a store path into validated segments."""
    segments = [s for s in path.strip("/").split("/") if s]
    if not segments:
        raise ValueError("Store path cannot be empty")
    for segment in segments:
        if not _SEGMENT_RE.match(segment):
            raise ValueError(f"Unsafe store path segment: {segment!r}")
    return segments


class InMemoryStore:
    """Dict-backed store for tests and embedding."""

    def __init__(self):
        self._data: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, path: str) -> Optional[bytes]:
        key = "/".join(split_path(path))
        with self._lock:
            return self._data.get(key)

    def put(self, path: str, value: bytes) -> None:
        key = "/".join(split_path(path))
        with self._lock:
            self._data[key] = bytes(value)

    def list(self, prefix: str) -> list[str]:
        """List direct children under prefix, like a directory listing."""
        base = prefix.strip("/")
        base = f"{base}/" if base else ""
        children: set[str] = set()
        with self._lock:
            for key in self._data:
                if not key.startswith(base):
                    continue
                rest = key[len(base):]
                head, sep, _ = rest.partition("/")
                children.add(head + "/" if sep else head)
        return sorted(children)


class FileStore:
    """
    File-backed store sealed at rest with AES-GCM.

    Each path maps to one file under ``base_dir``. Writes go through a
    temporary file and ``os.replace`` under an exclusive ``fcntl`` lock, so a
    reader sees either the previous or the next complete record.
    """

    SUFFIX = ".sealed"

    def __init__(self, base_dir: Path, key_path: Optional[Path] = None):
        self.base_dir = base_dir
        ensure_private_dir(self.base_dir)
        self.key_path = key_path or (self.base_dir.parent / ".stellarvault-secrets" / "store.key")
        self._lock_path = self.base_dir / ".lock"
        ensure_private_file(self._lock_path)
        self._aead = AESGCM(self._load_or_create_key())

    def _load_or_create_key(self) -> bytes:
        env_key = os.getenv(STORE_KEY_ENV)
        if env_key:
            key = bytes.fromhex(env_key.strip())
            if len(key) != 32:
                raise ValueError(f"{STORE_KEY_ENV} must be 32 bytes of hex")
            return key
        ensure_private_dir(self.key_path.parent)
        if self.key_path.exists() and self.key_path.stat().st_size > 0:
            return bytes.fromhex(self.key_path.read_text().strip())
        key = AESGCM.generate_key(bit_length=256)
        self.key_path.write_text(key.hex())
        ensure_private_file(self.key_path)
        return key

    @contextmanager
    def _lock(self):
        with open(self._lock_path, "r+") as lockf:
            fcntl.flock(lockf.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lockf.fileno(), fcntl.LOCK_UN)

    def _file_path(self, path: str) -> Path:
        *parents, leaf = split_path(path)
        directory = self.base_dir.joinpath(*parents)
        return safe_child_path(directory, leaf, self.SUFFIX)

    def _seal(self, path: str, value: bytes) -> bytes:
        nonce = secrets.token_bytes(_NONCE_SIZE)
        return nonce + self._aead.encrypt(nonce, value, path.encode())

    def _unseal(self, path: str, blob: bytes) -> bytes:
        nonce, ciphertext = blob[:_NONCE_SIZE], blob[_NONCE_SIZE:]
        try:
            return self._aead.decrypt(nonce, ciphertext, path.encode())
        except InvalidTag as exc:
            raise StoreError(f"Sealed record failed integrity check: {path}") from exc

    def get(self, path: str) -> Optional[bytes]:
        canonical = "/".join(split_path(path))
        file_path = self._file_path(canonical)
        with self._lock():
            if not file_path.exists():
                return None
            blob = file_path.read_bytes()
        return self._unseal(canonical, blob)

    def put(self, path: str, value: bytes) -> None:
        canonical = "/".join(split_path(path))
        file_path = self._file_path(canonical)
        sealed = self._seal(canonical, value)
        with self._lock():
            ensure_private_dir(file_path.parent)
            tmp_path = file_path.with_suffix(file_path.suffix + f".tmp.{os.getpid()}")
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "wb") as f:
                f.write(sealed)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, file_path)
            ensure_private_file(file_path)

    def list(self, prefix: str) -> list[str]:
        segments = split_path(prefix) if prefix.strip("/") else []
        directory = self.base_dir.joinpath(*segments)
        if not directory.is_dir():
            return []
        names: list[str] = []
        with self._lock():
            for entry in sorted(directory.iterdir()):
                if entry.is_dir():
                    names.append(entry.name + "/")
                elif entry.name.endswith(self.SUFFIX):
                    names.append(entry.name[: -len(self.SUFFIX)])
        return sorted(names)
