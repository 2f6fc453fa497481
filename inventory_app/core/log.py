import logging

from inventory_app.core.config import LOG_LEVEL

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Configures root logging once for the API process and the scripts."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
    # Set logging level for Tortoise ORM
    logging.getLogger('tortoise').setLevel(logging.INFO)
    logging.getLogger('botocore').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
