"""Document store - collections of JSON documents addressed by slash paths.

Paths alternate collection and document ids, so ``leagues/abc`` is a
document and ``leagues/abc/teams`` is a collection of documents under it.
Every mutation (single write, batch or transaction) is applied under one
store-wide lock, which is what makes a draft pick or payout transition a
single indivisible read-modify-write.
"""

import copy
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Raised when a document-store write cannot be applied."""


class _DeleteField:
    def __repr__(self) -> str:
        return "DELETE_FIELD"


# Sentinel for update(): removes the field instead of setting it.
DELETE_FIELD = _DeleteField()

_QUERY_OPS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a is not None and a < b,
    "<=": lambda a, b: a is not None and a <= b,
    ">": lambda a, b: a is not None and a > b,
    ">=": lambda a, b: a is not None and a >= b,
    "in": lambda a, b: a in b,
}


# ----------------------------------------------------------------------
# Path and document helpers
# ----------------------------------------------------------------------
def split_path(path: str) -> List[str]:
    parts = [p for p in str(path).strip("/").split("/") if p]
    if not parts:
        raise ValueError("Empty document path")
    return parts


def check_document_path(path: str) -> str:
    parts = split_path(path)
    if len(parts) % 2 != 0:
        raise ValueError(f"Not a document path: {path!r}")
    return "/".join(parts)


def check_collection_path(path: str) -> str:
    parts = split_path(path)
    if len(parts) % 2 != 1:
        raise ValueError(f"Not a collection path: {path!r}")
    return "/".join(parts)


def parent_collection(doc_path: str) -> str:
    return doc_path.rsplit("/", 1)[0]


def deep_merge(base: Mapping[str, Any], patch: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge *patch* into a copy of *base*; nested maps merge key-by-key."""
    out = copy.deepcopy(dict(base))
    for key, value in patch.items():
        if isinstance(value, Mapping) and isinstance(out.get(key), Mapping):
            out[key] = deep_merge(out[key], value)
        else:
            out[key] = copy.deepcopy(value)
    return out


def apply_field_updates(doc: Mapping[str, Any], fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Apply ``{"a.b.c": value}`` style updates to a copy of *doc*."""
    out = copy.deepcopy(dict(doc))
    for dotted, value in fields.items():
        keys = dotted.split(".")
        node = out
        for key in keys[:-1]:
            child = node.get(key)
            if not isinstance(child, dict):
                child = {}
                node[key] = child
            node = child
        if value is DELETE_FIELD:
            node.pop(keys[-1], None)
        else:
            node[keys[-1]] = copy.deepcopy(value)
    return out


def get_field(doc: Mapping[str, Any], dotted: str) -> Any:
    node: Any = doc
    for key in dotted.split("."):
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
    return node


@dataclass
class _WriteOp:
    kind: str  # "set", "update" or "delete"
    path: str
    data: Dict[str, Any] = field(default_factory=dict)
    merge: bool = False

    def apply(self, current: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if self.kind == "delete":
            return None
        if self.kind == "set":
            if self.merge and current is not None:
                return deep_merge(current, self.data)
            return copy.deepcopy(self.data)
        if current is None:
            raise PersistenceError(f"Cannot update missing document {self.path}")
        return apply_field_updates(current, self.data)


def _resolve(
    ops: List[_WriteOp], read: Callable[[str], Optional[Dict[str, Any]]]
) -> Dict[str, Optional[Dict[str, Any]]]:
    """Fold a list of ops into the final state of every touched document."""
    states: Dict[str, Optional[Dict[str, Any]]] = {}
    for op in ops:
        current = states[op.path] if op.path in states else read(op.path)
        states[op.path] = op.apply(current)
    return states


# ----------------------------------------------------------------------
# Batches and transactions
# ----------------------------------------------------------------------
class WriteBatch:
    """Collects writes and applies them atomically on commit()."""

    def __init__(self, store: "DocumentStore"):
        self._store = store
        self._ops: List[_WriteOp] = []

    def __len__(self) -> int:
        return len(self._ops)

    def set(self, path: str, data: Mapping[str, Any], merge: bool = False) -> "WriteBatch":
        self._ops.append(_WriteOp("set", check_document_path(path), dict(data), merge))
        return self

    def update(self, path: str, fields: Mapping[str, Any]) -> "WriteBatch":
        self._ops.append(_WriteOp("update", check_document_path(path), dict(fields)))
        return self

    def delete(self, path: str) -> "WriteBatch":
        self._ops.append(_WriteOp("delete", check_document_path(path)))
        return self

    def commit(self) -> int:
        count = len(self._ops)
        if count:
            self._store._commit(self._ops)
        self._ops = []
        return count


class Transaction(WriteBatch):
    """A batch that can also read; reads observe the transaction's own writes.

    Only obtained from DocumentStore.transaction(), which holds the store
    lock for the whole read-modify-write.
    """

    def get(self, path: str) -> Optional[Dict[str, Any]]:
        path = check_document_path(path)
        current = self._store._read(path)
        for op in self._ops:
            if op.path == path:
                current = op.apply(current)
        return copy.deepcopy(current)

    def exists(self, path: str) -> bool:
        return self.get(path) is not None

    def list(self, collection: str) -> List[Tuple[str, Dict[str, Any]]]:
        collection = check_collection_path(collection)
        pending = {op.path for op in self._ops if parent_collection(op.path) == collection}
        ids = set(self._store._child_ids(collection))
        ids.update(p.rsplit("/", 1)[1] for p in pending)
        out = []
        for doc_id in sorted(ids):
            data = self.get(f"{collection}/{doc_id}")
            if data is not None:
                out.append((doc_id, data))
        return out


# ----------------------------------------------------------------------
# Store
# ----------------------------------------------------------------------
class DocumentStore(ABC):
    """Opaque document store with batch, transaction and listener support."""

    def __init__(self):
        self._lock = threading.RLock()
        self._listeners: Dict[str, List[Callable[[Any], None]]] = {}

    # -- raw primitives implemented by subclasses -------------------------
    @abstractmethod
    def _read(self, path: str) -> Optional[Dict[str, Any]]:
        """Return the stored document or None."""

    @abstractmethod
    def _write(self, path: str, data: Dict[str, Any]) -> None:
        """Persist a whole document."""

    @abstractmethod
    def _remove(self, path: str) -> None:
        """Remove a document if present."""

    @abstractmethod
    def _child_ids(self, collection: str) -> List[str]:
        """Ids of documents directly inside *collection*."""

    # -- reads --------------------------------------------------------------
    def get(self, path: str) -> Optional[Dict[str, Any]]:
        path = check_document_path(path)
        with self._lock:
            return copy.deepcopy(self._read(path))

    def exists(self, path: str) -> bool:
        return self.get(path) is not None

    def list(self, collection: str) -> List[Tuple[str, Dict[str, Any]]]:
        """Scan a collection. Returns (doc_id, data) pairs sorted by id."""
        collection = check_collection_path(collection)
        with self._lock:
            out = []
            for doc_id in sorted(self._child_ids(collection)):
                data = self._read(f"{collection}/{doc_id}")
                if data is not None:
                    out.append((doc_id, copy.deepcopy(data)))
            return out

    def query(
        self, collection: str, field_path: str, op: str, value: Any
    ) -> List[Tuple[str, Dict[str, Any]]]:
        """Simple single-field equality/range query over a collection."""
        if op not in _QUERY_OPS:
            raise ValueError(f"Unsupported query operator {op!r}")
        test = _QUERY_OPS[op]
        matches = []
        for doc_id, data in self.list(collection):
            try:
                if test(get_field(data, field_path), value):
                    matches.append((doc_id, data))
            except TypeError:
                continue
        return matches

    # -- writes -------------------------------------------------------------
    def set(self, path: str, data: Mapping[str, Any], merge: bool = False) -> None:
        self.batch().set(path, data, merge=merge).commit()

    def update(self, path: str, fields: Mapping[str, Any]) -> None:
        self.batch().update(path, fields).commit()

    def delete(self, path: str) -> None:
        self.batch().delete(path).commit()

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """Atomic read-modify-write. Writes are discarded if the block raises."""
        with self._lock:
            txn = Transaction(self)
            yield txn
            txn.commit()

    def _commit(self, ops: List[_WriteOp]) -> None:
        with self._lock:
            states = _resolve(ops, self._read)
            try:
                for path, data in states.items():
                    if data is None:
                        self._remove(path)
                    else:
                        self._write(path, data)
            except OSError as e:
                raise PersistenceError(f"Write failed: {e}") from e
            self._notify(states)

    # -- listeners ----------------------------------------------------------
    def listen(self, path: str, callback: Callable[[Any], None]) -> Callable[[], None]:
        """Subscribe to a document (callback gets dict|None) or a collection
        (callback gets {doc_id: data}). Fires once immediately.

        Returns:
            A zero-argument function that removes the subscription.
        """
        path = "/".join(split_path(path))
        with self._lock:
            self._listeners.setdefault(path, []).append(callback)
            callback(self._snapshot(path))

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._listeners.get(path, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def _snapshot(self, path: str) -> Any:
        if len(split_path(path)) % 2 == 0:
            return copy.deepcopy(self._read(path))
        return {doc_id: data for doc_id, data in self.list(path)}

    def _notify(self, states: Mapping[str, Optional[Dict[str, Any]]]) -> None:
        if not self._listeners:
            return
        touched = set()
        for path in states:
            touched.add(path)
            touched.add(parent_collection(path))
        for path in touched:
            for callback in list(self._listeners.get(path, [])):
                try:
                    callback(self._snapshot(path))
                except Exception:
                    logger.exception("Listener for %s failed", path)


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store, used by tests and single-process tools."""

    def __init__(self):
        super().__init__()
        self._docs: Dict[str, Dict[str, Any]] = {}

    def _read(self, path: str) -> Optional[Dict[str, Any]]:
        return self._docs.get(path)

    def _write(self, path: str, data: Dict[str, Any]) -> None:
        self._docs[path] = copy.deepcopy(data)

    def _remove(self, path: str) -> None:
        self._docs.pop(path, None)

    def _child_ids(self, collection: str) -> List[str]:
        prefix = collection + "/"
        return [
            p[len(prefix):]
            for p in self._docs
            if p.startswith(prefix) and "/" not in p[len(prefix):]
        ]


class JsonFileDocumentStore(DocumentStore):
    """One JSON file per document: ``<root>/leagues/abc.json``."""

    def __init__(self, root_dir: Path):
        super().__init__()
        self.root_dir = Path(root_dir)
        self.root_dir.mkdir(parents=True, exist_ok=True)

    def _file_for(self, path: str) -> Path:
        return self.root_dir / f"{path}.json"

    def _read(self, path: str) -> Optional[Dict[str, Any]]:
        filepath = self._file_for(path)
        if not filepath.exists():
            return None
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            logger.warning("Corrupt document file %s: %s", filepath, e)
            return None

    def _write(self, path: str, data: Dict[str, Any]) -> None:
        filepath = self._file_for(path)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        tmp = filepath.with_suffix(".json.tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp, filepath)

    def _remove(self, path: str) -> None:
        filepath = self._file_for(path)
        if filepath.exists():
            filepath.unlink()

    def _child_ids(self, collection: str) -> List[str]:
        directory = self.root_dir / collection
        if not directory.is_dir():
            return []
        return [p.name[: -len(".json")] for p in directory.glob("*.json")]
