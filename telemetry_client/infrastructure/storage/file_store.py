"""Single-file JSON key-value store holding the client's durable state.

The whole key space lives in one JSON object that is rewritten on every
``set``. Writes are atomic (temp file + ``os.replace``). Non-durable writes are
handed to a background writer that re-serialises the latest state until it is
clean, so an older snapshot can never overwrite a newer one.
"""

from __future__ import annotations

import asyncio
import json
import os
import threading
from pathlib import Path
from typing import Any

from telemetry_client.core.logger import get_logger
from telemetry_client.metrics import STORE_WRITE_ERRORS
from telemetry_client.utils.concurrency import run_blocking, running_loop

logger = get_logger("telemetry.store")


class FileStore:
    def __init__(self, path: str | os.PathLike[str]):
        self.path = Path(path)
        self._data: dict[str, Any] = self._load()
        self._dirty = False
        self._writer: asyncio.Task | None = None
        self._write_lock = threading.Lock()
        # Monotonic snapshot version; older snapshots never replace newer ones.
        self._version = 0
        self._written_version = -1

    def _load(self) -> dict[str, Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.warning(
                "store_read_failed", extra={"path": str(self.path), "error": str(exc)}
            )
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning(
                "store_corrupt_reset", extra={"path": str(self.path), "error": str(exc)}
            )
            return {}
        if not isinstance(data, dict):
            logger.warning("store_corrupt_reset", extra={"path": str(self.path)})
            return {}
        return data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any, durable: bool = False) -> None:
        """Update ``key`` and persist.

        ``durable`` writes synchronously before returning; otherwise the write is
        scheduled on the running loop (or done inline when there is none).
        """
        self._data[key] = value
        self._version += 1
        if durable:
            self.flush()
            return
        loop = running_loop()
        if loop is None:
            self.flush()
            return
        self._dirty = True
        if self._writer is None or self._writer.done():
            self._writer = loop.create_task(self._write_until_clean())

    def flush(self) -> bool:
        """Synchronously write the full state. Returns False on failure."""
        self._dirty = False
        return self._write_blob(*self._snapshot())

    async def aclose(self) -> None:
        """Wait for pending background writes, then write once more."""
        if self._writer is not None and not self._writer.done():
            await self._writer
        self.flush()

    @property
    def pending_write(self) -> bool:
        return self._writer is not None and not self._writer.done()

    async def _write_until_clean(self) -> None:
        while self._dirty:
            self._dirty = False
            # Serialise on the loop thread; only the file I/O is offloaded.
            version, blob = self._snapshot()
            await run_blocking(self._write_blob, version, blob)

    def _snapshot(self) -> tuple[int, str]:
        return self._version, json.dumps(self._data, separators=(",", ":"), default=str)

    def _write_blob(self, version: int, blob: str) -> bool:
        tmp = self.path.with_name(self.path.name + ".tmp")
        with self._write_lock:
            if version < self._written_version:
                return True
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(tmp, "w", encoding="utf-8") as fh:
                    fh.write(blob)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp, self.path)
            except OSError:
                STORE_WRITE_ERRORS.inc()
                logger.exception("store_write_failed", extra={"path": str(self.path)})
                return False
            self._written_version = version
        return True


__all__ = ["FileStore"]
