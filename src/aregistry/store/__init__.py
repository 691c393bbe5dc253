"""Record store and catalog boundaries."""

from aregistry.store.base import Catalog, RecordStore
from aregistry.store.json_store import JsonRecordStore

__all__ = ["Catalog", "JsonRecordStore", "RecordStore"]
