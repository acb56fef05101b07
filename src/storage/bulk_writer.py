"""Chunked, paced bulk writes with per-chunk retry."""

import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from src.retry import with_backoff
from src.storage.document_store import DocumentStore, PersistenceError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 200
DEFAULT_PAUSE_SECONDS = 0.1
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BASE_DELAY = 0.25


class BulkWriter:
    """Queues set/delete operations and commits them in atomic chunks.

    Chunks stay below the store's per-batch ceiling, a short pause follows
    every committed chunk, and a failing chunk is retried with exponential
    backoff. Exhausting the retries raises PersistenceError.

    Usage:
        writer = BulkWriter(store)
        for player in players:
            writer.set(f"players/{player.id}", player.to_dict(), merge=True)
        written = writer.close()
    """

    def __init__(
        self,
        store: DocumentStore,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        pause_seconds: float = DEFAULT_PAUSE_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self.store = store
        self.chunk_size = chunk_size
        self.pause_seconds = pause_seconds
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep or time.sleep
        self._pending: List[Tuple[str, str, Dict[str, Any], bool]] = []
        self.written = 0
        self.deleted = 0

    def set(self, path: str, data: Mapping[str, Any], merge: bool = True) -> None:
        self._pending.append(("set", path, dict(data), merge))
        if len(self._pending) >= self.chunk_size:
            self.flush()

    def update(self, path: str, fields: Mapping[str, Any]) -> None:
        self._pending.append(("update", path, dict(fields), False))
        if len(self._pending) >= self.chunk_size:
            self.flush()

    def delete(self, path: str) -> None:
        self._pending.append(("delete", path, {}, False))
        if len(self._pending) >= self.chunk_size:
            self.flush()

    def flush(self) -> None:
        while self._pending:
            chunk = self._pending[: self.chunk_size]
            self._commit_chunk(chunk)
            self._pending = self._pending[self.chunk_size:]
            for kind, *_ in chunk:
                if kind == "delete":
                    self.deleted += 1
                else:
                    self.written += 1
            if self.pause_seconds:
                self._sleep(self.pause_seconds)

    def close(self) -> int:
        """Flush everything still queued. Returns total operations applied."""
        self.flush()
        return self.written + self.deleted

    def _commit_chunk(self, chunk) -> None:
        def commit() -> int:
            batch = self.store.batch()
            for kind, path, data, merge in chunk:
                if kind == "set":
                    batch.set(path, data, merge=merge)
                elif kind == "update":
                    batch.update(path, data)
                else:
                    batch.delete(path)
            return batch.commit()

        try:
            with_backoff(
                commit,
                max_attempts=self.max_attempts,
                base_delay=self.base_delay,
                retry_on=(PersistenceError, OSError),
                label=f"bulk commit of {len(chunk)} ops",
                sleep=self._sleep,
            )
        except (PersistenceError, OSError) as e:
            logger.error("Batch commit failed permanently: %s", e)
            raise PersistenceError(f"Bulk write failed: {e}") from e
