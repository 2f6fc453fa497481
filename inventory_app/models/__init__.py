# inventory_app/models/__init__.py
from .item import Item

# Export all models
__all__ = [
    "Item",
]
