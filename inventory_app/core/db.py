import logging

from tortoise import Tortoise

from inventory_app.core.config import DB_URL

log = logging.getLogger(__name__)

# Define all models modules for the ORM
MODELS_MODULES = [
    "inventory_app.models.item",
]


async def init_db(db_url: str = DB_URL, generate_schemas: bool = True):
    """Initializes the Tortoise ORM connection and generates schemas."""
    try:
        await Tortoise.init(
            db_url=db_url,
            modules={"models": MODELS_MODULES},
        )
        if generate_schemas:
            # Create the keyed table if it does not exist yet
            await Tortoise.generate_schemas(safe=True)
        log.info("Database connection established and schemas generated.")
    except Exception as e:
        log.critical(f"Could not connect to database. Error: {e}")
        # Re-raise to prevent the application from starting without a database
        raise


async def close_db():
    """Closes all database connections."""
    await Tortoise.close_connections()
    log.info("Database connections closed.")
