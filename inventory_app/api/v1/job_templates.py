import logging

from fastapi import APIRouter, Depends, status

from inventory_app.dependencies import get_store
from inventory_app.schemas.job_template import JobTemplateRequest
from inventory_app.schemas.response import SuccessResponse
from inventory_app.services.job_template_service import create_template, get_template, list_templates
from inventory_app.store import KeyedStore

log = logging.getLogger(__name__)

router = APIRouter()


@router.get("/job-templates", response_model=SuccessResponse)
async def list_templates_endpoint(store: KeyedStore = Depends(get_store)):
    templates = await list_templates(store)
    return SuccessResponse(data={
        "templates": [t.model_dump(exclude_none=True) for t in templates],
        "count": len(templates),
    })


@router.post("/job-templates", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_template_endpoint(request_data: JobTemplateRequest, store: KeyedStore = Depends(get_store)):
    """Creates a job template with its material lines. 409 if the name is taken."""
    template = await create_template(store, request_data)
    return SuccessResponse(data=template.model_dump())


@router.get("/job-templates/{template_id}", response_model=SuccessResponse)
async def get_template_endpoint(template_id: str, store: KeyedStore = Depends(get_store)):
    template = await get_template(store, template_id)
    return SuccessResponse(data=template.model_dump())
