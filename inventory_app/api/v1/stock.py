import logging

from fastapi import APIRouter, Depends, status

from inventory_app.dependencies import get_store
from inventory_app.schemas.response import SuccessResponse
from inventory_app.schemas.stock import ConsumeRequest, StockRequest
from inventory_app.services.stock_service import record_consumption, record_stock
from inventory_app.store import KeyedStore

log = logging.getLogger(__name__)

router = APIRouter()


@router.post("/stock", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def add_stock_endpoint(request_data: StockRequest, store: KeyedStore = Depends(get_store)):
    """Records stock received for an item. Replaying a request_id returns the original movement."""
    movement = await record_stock(store, request_data)
    return SuccessResponse(data=movement.model_dump())


@router.post("/consume", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def consume_stock_endpoint(request_data: ConsumeRequest, store: KeyedStore = Depends(get_store)):
    """Records stock used, optionally against a job. Rejected when stock would go below zero."""
    movement = await record_consumption(store, request_data)
    if request_data.job_id:
        log.info(f"Consumed {movement.quantity} x {movement.item_id} for job {request_data.job_id}")
    return SuccessResponse(data=movement.model_dump())
