"""
Process-wide collaborators, created on first use and injected into the
routers with FastAPI's ``Depends``. Tests override them through
``app.dependency_overrides`` or reset them with ``reset_dependencies``.
"""
import logging
from typing import Optional

from inventory_app.core.config import (
    AWS_REGION,
    LOCAL_STORAGE_PATH,
    S3_ENDPOINT_URL,
    STORAGE_BACKEND,
    TEMPLATE_BUCKET,
    UPLOAD_BUCKET,
)
from inventory_app.core.errors import ConfigurationError
from inventory_app.integrations.config_provider import ConfigProvider, SsmConfigProvider
from inventory_app.integrations.wfm_client import WfmClient
from inventory_app.pipelines.inventory import InventoryFilePipeline
from inventory_app.pipelines.template import TemplateFilePipeline
from inventory_app.storage import BlobStore, BucketNotifier, LocalBlobStore, S3BlobStore
from inventory_app.store import KeyedStore

log = logging.getLogger(__name__)

_store: Optional[KeyedStore] = None
_blob_store: Optional[BlobStore] = None
_notifier: Optional[BucketNotifier] = None
_config_provider: Optional[ConfigProvider] = None
_wfm_client: Optional[WfmClient] = None


def get_store() -> KeyedStore:
    global _store
    if _store is None:
        _store = KeyedStore()
    return _store


def get_blob_store() -> BlobStore:
    global _blob_store
    if _blob_store is None:
        if STORAGE_BACKEND == "local":
            _blob_store = LocalBlobStore(LOCAL_STORAGE_PATH)
        elif STORAGE_BACKEND == "s3":
            _blob_store = S3BlobStore(region=AWS_REGION, endpoint_url=S3_ENDPOINT_URL)
        else:
            raise ConfigurationError(f"Unknown STORAGE_BACKEND '{STORAGE_BACKEND}'")
        log.info(f"Blob store backend: {STORAGE_BACKEND}")
    return _blob_store


def build_notifier(store: KeyedStore, blobs: BlobStore) -> BucketNotifier:
    """Wires each upload bucket to its one pipeline stage."""
    notifier = BucketNotifier()
    notifier.register(UPLOAD_BUCKET, InventoryFilePipeline(store, blobs))
    notifier.register(TEMPLATE_BUCKET, TemplateFilePipeline(store, blobs))
    if isinstance(blobs, LocalBlobStore):
        # Local uploads notify in-process, like S3 event notifications do
        blobs.notifier = notifier
    return notifier


def get_notifier() -> BucketNotifier:
    global _notifier
    if _notifier is None:
        _notifier = build_notifier(get_store(), get_blob_store())
    return _notifier


def get_config_provider() -> ConfigProvider:
    global _config_provider
    if _config_provider is None:
        _config_provider = SsmConfigProvider()
    return _config_provider


def get_wfm_client() -> WfmClient:
    global _wfm_client
    if _wfm_client is None:
        _wfm_client = WfmClient(get_config_provider())
    return _wfm_client


async def close_dependencies() -> None:
    if _wfm_client is not None:
        await _wfm_client.aclose()
    reset_dependencies()


def reset_dependencies() -> None:
    global _store, _blob_store, _notifier, _config_provider, _wfm_client
    _store = _blob_store = _notifier = _config_provider = _wfm_client = None
