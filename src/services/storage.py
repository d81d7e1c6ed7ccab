"""Document storage backends for the record store and notification ledger.

Every collection is stored as one JSON document and always read and
written whole: a mutation reads the full collection, changes it in
memory, and writes the full collection back (last writer wins).

Two interchangeable backends:

* :class:`JsonFileBackend` -- one ``<name>.json`` file per collection in
  a data directory.  Writes go to a temporary file that is atomically
  renamed over the target, so readers only ever see a complete document.
* :class:`InMemoryBackend` -- process-local documents held as serialised
  bytes, the equivalent of browser local storage.  Used for development
  without a data directory and throughout the tests.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from collections import defaultdict
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import orjson
import structlog

from src.services.errors import StorageError

logger = structlog.get_logger(__name__)

_DUMP_OPTIONS = orjson.OPT_INDENT_2 | orjson.OPT_NAIVE_UTC


# ---------------------------------------------------------------------------
# Backend protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class StorageBackend(Protocol):
    """Whole-document storage keyed by collection name."""

    async def load(self, name: str) -> Any | None: ...

    async def save(self, name: str, data: Any) -> None: ...

    async def exists(self, name: str) -> bool: ...


# ---------------------------------------------------------------------------
# JSON file backend
# ---------------------------------------------------------------------------


class JsonFileBackend:
    """Stores each collection as ``<data_dir>/<name>.json``.

    A missing file loads as ``None`` (collection not created yet).  A
    file that exists but cannot be read or parsed raises
    :class:`StorageError` instead of reading as empty, so a corrupt file
    is never silently overwritten by the next mutation.

    Each collection has its own :class:`asyncio.Lock`; file access runs in
    a worker thread so the event loop is not blocked on disk.
    """

    __slots__ = ("_data_dir", "_locks")

    def __init__(self, data_dir: str | Path) -> None:
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _path(self, name: str) -> Path:
        return self._data_dir / f"{name}.json"

    async def load(self, name: str) -> Any | None:
        path = self._path(name)
        async with self._locks[name]:
            return await asyncio.to_thread(self._read, name, path)

    async def save(self, name: str, data: Any) -> None:
        path = self._path(name)
        async with self._locks[name]:
            await asyncio.to_thread(self._write, name, path, data)

    @staticmethod
    def _read(name: str, path: Path) -> Any | None:
        if not path.exists():
            return None
        try:
            return orjson.loads(path.read_bytes())
        except (OSError, orjson.JSONDecodeError) as exc:
            logger.error("storage.read_failed", collection=name, path=str(path), error=str(exc))
            raise StorageError(f"Could not read collection {name!r}") from exc

    def _write(self, name: str, path: Path, data: Any) -> None:
        try:
            payload = orjson.dumps(data, option=_DUMP_OPTIONS)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._data_dir, prefix=f".{name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(payload)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError) as exc:
            logger.error("storage.write_failed", collection=name, path=str(path), error=str(exc))
            raise StorageError(f"Could not write collection {name!r}") from exc

    async def exists(self, name: str) -> bool:
        return self._path(name).exists()


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class InMemoryBackend:
    """Process-local documents, serialised on write like the file backend."""

    __slots__ = ("_documents",)

    def __init__(self) -> None:
        self._documents: dict[str, bytes] = {}

    async def load(self, name: str) -> Any | None:
        raw = self._documents.get(name)
        if raw is None:
            return None
        return orjson.loads(raw)

    async def save(self, name: str, data: Any) -> None:
        try:
            self._documents[name] = orjson.dumps(data, option=_DUMP_OPTIONS)
        except TypeError as exc:
            raise StorageError(f"Could not serialise collection {name!r}") from exc

    async def exists(self, name: str) -> bool:
        return name in self._documents

    def clear(self) -> None:
        self._documents.clear()


def create_backend(kind: str, data_dir: str | Path) -> StorageBackend:
    """Build the backend named by the ``storage_backend`` setting."""
    if kind == "memory":
        return InMemoryBackend()
    if kind == "file":
        return JsonFileBackend(data_dir)
    raise ValueError(f"Unknown storage backend {kind!r}. Supported: file, memory.")
