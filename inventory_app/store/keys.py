"""
Key design for the single keyed table.

Each domain gets its own key builder so partition prefixes can never collide:

    INVENTORY#<item_id>       #META                            item root + running quantity
    INVENTORY#<item_id>       EVENT#<timestamp>#<event_id>     stock / consume / import event
    INVENTORY#<item_id>       REQUEST#<event_id>               movement idempotency marker
    JOB#<job_id>              #META                            job root
    JOB#<job_id>              HISTORY#<timestamp>#<entry_id>   job history entry
    JOBTEMPLATE#<template_id> #META                            template root
    JOBTEMPLATE#<template_id> LINE#<item_id>                   template line
    FILE#<file_id>            #STATUS                          file processing status

Identifiers are single key segments: they may not contain the ``#`` separator.
"""
import hashlib
import re
from typing import NamedTuple

from inventory_app.core.errors import InvalidKey

SEPARATOR = "#"
ROOT = "#META"
STATUS = "#STATUS"
MAX_KEY_LENGTH = 512

_SLUG_STRIP = re.compile(r"[^A-Za-z0-9._-]+")


class Key(NamedTuple):
    partition: str
    sort: str

    def __str__(self):
        return f"({self.partition}, {self.sort})"


def validate_key(partition: str, sort: str) -> Key:
    """Rejects keys the store cannot hold. Raises InvalidKey."""
    for name, value in (("partition", partition), ("sort", sort)):
        if not isinstance(value, str) or not value:
            raise InvalidKey(f"{name} key must be a non-empty string")
        if len(value) > MAX_KEY_LENGTH:
            raise InvalidKey(f"{name} key exceeds {MAX_KEY_LENGTH} characters")
        if any(ord(ch) < 32 for ch in value):
            raise InvalidKey(f"{name} key contains control characters")
    return Key(partition, sort)


def segment(value: str, name: str = "identifier") -> str:
    """Validates a single identifier used inside a key."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidKey(f"{name} must be a non-empty string")
    if SEPARATOR in value:
        raise InvalidKey(f"{name} may not contain '{SEPARATOR}': {value!r}")
    return value.strip()


def slugify(value: str) -> str:
    """Normalizes free text (SKU, template name) into a stable identifier."""
    slug = _SLUG_STRIP.sub("-", value.strip().lower()).strip("-")
    if not slug:
        raise InvalidKey(f"Cannot derive an identifier from {value!r}")
    return slug


def file_id_for(bucket: str, object_key: str) -> str:
    """Stable file identity derived from the object's location."""
    return hashlib.sha256(f"{bucket}/{object_key}".encode("utf-8")).hexdigest()[:32]


class InventoryKeys:
    PREFIX = "INVENTORY#"
    EVENT = "EVENT#"
    REQUEST = "REQUEST#"

    @classmethod
    def partition(cls, item_id: str) -> str:
        return f"{cls.PREFIX}{segment(item_id, 'item_id')}"

    @classmethod
    def root(cls, item_id: str) -> Key:
        return Key(cls.partition(item_id), ROOT)

    @classmethod
    def event(cls, item_id: str, timestamp: str, event_id: str) -> Key:
        return Key(cls.partition(item_id), f"{cls.EVENT}{timestamp}#{segment(event_id, 'event_id')}")

    @classmethod
    def request(cls, item_id: str, event_id: str) -> Key:
        return Key(cls.partition(item_id), f"{cls.REQUEST}{segment(event_id, 'event_id')}")

    @classmethod
    def item_id(cls, partition: str) -> str:
        return partition[len(cls.PREFIX):]


class JobKeys:
    PREFIX = "JOB#"
    HISTORY = "HISTORY#"

    @classmethod
    def partition(cls, job_id: str) -> str:
        return f"{cls.PREFIX}{segment(job_id, 'job_id')}"

    @classmethod
    def root(cls, job_id: str) -> Key:
        return Key(cls.partition(job_id), ROOT)

    @classmethod
    def history(cls, job_id: str, timestamp: str, entry_id: str) -> Key:
        return Key(cls.partition(job_id), f"{cls.HISTORY}{timestamp}#{segment(entry_id, 'entry_id')}")


class JobTemplateKeys:
    PREFIX = "JOBTEMPLATE#"
    LINE = "LINE#"

    @classmethod
    def partition(cls, template_id: str) -> str:
        return f"{cls.PREFIX}{segment(template_id, 'template_id')}"

    @classmethod
    def root(cls, template_id: str) -> Key:
        return Key(cls.partition(template_id), ROOT)

    @classmethod
    def line(cls, template_id: str, item_id: str) -> Key:
        return Key(cls.partition(template_id), f"{cls.LINE}{segment(item_id, 'item_id')}")


class FileKeys:
    PREFIX = "FILE#"

    @classmethod
    def status(cls, file_id: str) -> Key:
        return Key(f"{cls.PREFIX}{segment(file_id, 'file_id')}", STATUS)
