import logging
from dataclasses import asdict
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from inventory_app.dependencies import get_notifier
from inventory_app.schemas.response import SuccessResponse
from inventory_app.storage.notifier import BucketNotifier, parse_s3_notification

log = logging.getLogger(__name__)

router = APIRouter()


@router.post("/events/object-created", response_model=SuccessResponse)
async def object_created_endpoint(
    payload: Dict[str, Any] = Body(...),
    notifier: BucketNotifier = Depends(get_notifier),
):
    """
    Entry point for S3 event notifications. Each ObjectCreated record is
    handed to the pipeline stage wired to its bucket; records for buckets
    without a stage are dropped.
    """
    events = parse_s3_notification(payload)
    results = []
    for event in events:
        result = await notifier.publish(event)
        if result is not None:
            results.append(asdict(result))
    log.info(f"Processed {len(results)} of {len(events)} object-created events")
    return SuccessResponse(data={"received": len(events), "results": results})
