"""Single-table keyed store: key builders and the access layer."""

from inventory_app.store.keyed_store import KeyedStore, Record, Write
from inventory_app.store.keys import FileKeys, InventoryKeys, JobKeys, JobTemplateKeys, Key

__all__ = [
    "FileKeys",
    "InventoryKeys",
    "JobKeys",
    "JobTemplateKeys",
    "Key",
    "KeyedStore",
    "Record",
    "Write",
]
