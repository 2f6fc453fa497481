import pytest
import pytest_asyncio
from tortoise import Tortoise

from inventory_app.core.db import MODELS_MODULES
from inventory_app.integrations.config_provider import StaticConfigProvider
from inventory_app.store import KeyedStore


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory keyed table per test."""
    await Tortoise.init(db_url="sqlite://:memory:", modules={"models": MODELS_MODULES})
    await Tortoise.generate_schemas()
    yield
    await Tortoise.close_connections()


@pytest.fixture
def store(db):
    return KeyedStore()


@pytest.fixture
def provider():
    return StaticConfigProvider(
        app_config={"wfm_client_uuid": "client-uuid-1", "template_mappings": {"kitchen-rewire": "wfm-template-9"}},
        token="token-1",
    )
