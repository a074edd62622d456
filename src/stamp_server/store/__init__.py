"""Store package: the persisted stamp-card document.

Public surface
--------------
- :class:`JsonDocumentStore`: owner of the document and its JSON file.
- :class:`Document` and its entity dataclasses.
- :exc:`PersistenceFailure`: raised when a commit cannot be written.
- :exc:`NoChange`: raised by a mutator to skip the write.
"""

from stamp_server.store.document import (
    AccessCredential,
    Customer,
    Document,
    LogEntry,
    Operator,
    Redemption,
    Stamp,
    new_id,
    utc_now,
)
from stamp_server.store.errors import (
    NoChange,
    PersistenceFailure,
    StoreError,
    StoreOperationContext,
)
from stamp_server.store.json_store import JsonDocumentStore

__all__ = [
    "AccessCredential",
    "Customer",
    "Document",
    "JsonDocumentStore",
    "LogEntry",
    "NoChange",
    "Operator",
    "PersistenceFailure",
    "Redemption",
    "Stamp",
    "StoreError",
    "StoreOperationContext",
    "new_id",
    "utc_now",
]
