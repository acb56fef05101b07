from src.storage.bulk_writer import BulkWriter
from src.storage.document_store import (
    DELETE_FIELD,
    DocumentStore,
    InMemoryDocumentStore,
    JsonFileDocumentStore,
    PersistenceError,
    Transaction,
    WriteBatch,
)

__all__ = [
    "BulkWriter",
    "DELETE_FIELD",
    "DocumentStore",
    "InMemoryDocumentStore",
    "JsonFileDocumentStore",
    "PersistenceError",
    "Transaction",
    "WriteBatch",
]
