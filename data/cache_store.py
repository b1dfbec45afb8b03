"""Single-slot JSON cache of the last good quote per source."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path

from core.errors import CacheReadError, CacheWriteError
from core.models import QuoteRecord

log = logging.getLogger(__name__)


class JsonCacheStore:
    """One JSON file per source, replaced atomically on every write.

    Readers either see the previous file or the new one, never a partial
    write. Only the refresh coordinator should call ``put``.
    """

    def __init__(
        self,
        cache_dir: str | Path,
        paths: dict[str, Path] | None = None,
    ) -> None:
        self._dir = Path(cache_dir)
        self._paths = dict(paths or {})
        self._write_lock = threading.Lock()

    def path_for(self, source_id: str) -> Path:
        return self._paths.get(source_id, self._dir / f"{source_id}.json")

    def put(self, record: QuoteRecord) -> None:
        path = self.path_for(record.source_id)
        payload = json.dumps(record.to_dict(), ensure_ascii=False, indent=2)
        with self._write_lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
                )
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as fh:
                        fh.write(payload)
                        fh.flush()
                        os.fsync(fh.fileno())
                    os.replace(tmp_name, path)
                except BaseException:
                    Path(tmp_name).unlink(missing_ok=True)
                    raise
            except OSError as exc:
                raise CacheWriteError(f"Could not write {path}: {exc}") from exc
        log.debug("Cached %s at %s", record.source_id, path)

    def read(self, source_id: str) -> QuoteRecord:
        """Load the stored record, raising CacheReadError if there is none."""
        path = self.path_for(source_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise CacheReadError(f"No cached data for {source_id}") from exc
        except OSError as exc:
            raise CacheReadError(f"Could not read {path}: {exc}") from exc
        try:
            return QuoteRecord.from_dict(source_id, json.loads(raw))
        except (ValueError, TypeError) as exc:
            raise CacheReadError(f"Corrupt cache slot {path}: {exc}") from exc

    def get(self, source_id: str) -> QuoteRecord | None:
        try:
            return self.read(source_id)
        except CacheReadError as exc:
            if not isinstance(exc.__cause__, FileNotFoundError):
                log.warning("%s", exc)
            return None
