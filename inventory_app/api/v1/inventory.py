import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from inventory_app.dependencies import get_store
from inventory_app.schemas.inventory import InventoryQuery
from inventory_app.schemas.response import SuccessResponse
from inventory_app.services.inventory_service import list_inventory
from inventory_app.store import KeyedStore

log = logging.getLogger(__name__)

router = APIRouter()


@router.get("/inventory", response_model=SuccessResponse)
async def get_inventory_endpoint(
    item_id: Optional[str] = Query(None, max_length=128),
    category: Optional[str] = Query(None, max_length=128),
    search: Optional[str] = Query(None, max_length=128),
    low_stock: bool = False,
    include_events: bool = False,
    event_limit: int = Query(20, ge=1, le=500),
    store: KeyedStore = Depends(get_store),
):
    """
    Lists inventory items with their running quantity. With ``item_id`` the
    single item is returned (404 if unknown), optionally with recent events.
    """
    query = InventoryQuery(
        item_id=item_id,
        category=category,
        search=search,
        low_stock=low_stock,
        include_events=include_events,
        event_limit=event_limit,
    )
    items = await list_inventory(store, query)
    return SuccessResponse(data={"items": [i.model_dump() for i in items], "count": len(items)})
