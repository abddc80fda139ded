"""
Local JSON file storage backend.

One file per table under the base directory:
    artifacts/store/runs.json
    artifacts/store/jobs.json
    artifacts/store/artifacts.json
    artifacts/store/credits.json

Tables are re-read on every access so a second process (for example
`reel status` while `reel run` is executing) sees fresh state. Writes hold
a per-table lock file (`credits.json.lock`) across load-modify-save, so
concurrent `reel` processes never overwrite each other's rows and the
`trans_no` uniqueness check stays atomic across processes.
"""

import json
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from filelock import FileLock, Timeout

from core.errors import StoreError
from core.store.memory import InMemoryStore

logger = logging.getLogger(__name__)


class LocalJsonStore(InMemoryStore):
    """File-backed store for development and CLI use"""

    def __init__(self, base_path: str = "artifacts/store", lock_timeout: float = 30.0):
        super().__init__()
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.lock_timeout = lock_timeout
        self._file_locks: Dict[str, FileLock] = {}

    def _table_path(self, table: str) -> Path:
        return self.base_path / f"{table}.json"

    def _get_file_lock(self, table: str) -> FileLock:
        if table not in self._file_locks:
            lock_path = self._table_path(table).with_suffix(".json.lock")
            self._file_locks[table] = FileLock(str(lock_path), timeout=self.lock_timeout)
        return self._file_locks[table]

    @asynccontextmanager
    async def _write_guard(self, table: str):
        async with self._get_lock(table):
            file_lock = self._get_file_lock(table)
            try:
                file_lock.acquire()
            except Timeout as e:
                raise StoreError(
                    f"Timed out after {self.lock_timeout}s waiting for {file_lock.lock_file}"
                ) from e
            try:
                yield
            finally:
                file_lock.release()

    async def _load_table(self, table: str) -> Dict[str, Dict[str, Any]]:
        file_path = self._table_path(table)
        if not file_path.exists():
            return {}
        try:
            with open(file_path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Failed to load {file_path}: {e}") from e
        return {row_key: row for row_key, row in data.get("rows", [])}

    async def _save_table(self, table: str, rows: Dict[str, Dict[str, Any]]):
        file_path = self._table_path(table)
        data = {
            "table": table,
            "updated_at": datetime.now(timezone.utc).isoformat(),
            "row_count": len(rows),
            # list of pairs keeps insertion order explicit in the file
            "rows": [[row_key, row] for row_key, row in rows.items()],
        }
        tmp_path = file_path.with_suffix(f".json.{os.getpid()}.tmp")
        try:
            with open(tmp_path, "w") as f:
                json.dump(data, f, indent=2, default=str)
            os.replace(tmp_path, file_path)
        except OSError as e:
            raise StoreError(f"Failed to save {file_path}: {e}") from e
        logger.debug("[Store] Saved %s (%d rows)", table, len(rows))
