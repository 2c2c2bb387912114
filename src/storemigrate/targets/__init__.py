"""Target document stores."""

from storemigrate.targets.base import (
    DUPLICATE_KEY_CODE,
    Document,
    DocumentStore,
    InsertOutcome,
    WriteFailure,
    index_name,
)
from storemigrate.targets.memory import InMemoryDocumentStore
from storemigrate.targets.mongo import MongoDocumentStore

__all__ = [
    "DUPLICATE_KEY_CODE",
    "Document",
    "DocumentStore",
    "InMemoryDocumentStore",
    "InsertOutcome",
    "MongoDocumentStore",
    "WriteFailure",
    "index_name",
]
