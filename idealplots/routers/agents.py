# idealplots/routers/agents.py
from typing import List, Optional

from fastapi import APIRouter, Depends

from idealplots.db.session import Database, get_database
from idealplots.models.enums import EnquiryStatus
from idealplots.routers.deps import get_actor_id, page_params
from idealplots.schemas.common import ApiResponse, Page, PageParams, Pagination
from idealplots.schemas.enquiry import EnquiryNoteCreate, EnquiryNoteOut, EnquiryOut, EnquiryPatch
from idealplots.services.enquiry_services import EnquiryServices

router = APIRouter(prefix="/api/agents", tags=["Agents"])


@router.get("/enquiries", response_model=ApiResponse[Page[EnquiryOut]])
async def list_my_enquiries(
    status: Optional[EnquiryStatus] = None,
    params: PageParams = Depends(page_params),
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    items, total = await db.run(
        EnquiryServices.list_agent_enquiries, actor_id, params.offset, params.limit, status
    )
    page = Page[EnquiryOut](
        items=[EnquiryOut.model_validate(item) for item in items],
        pagination=Pagination.build(params.page, params.limit, total),
    )
    return ApiResponse(data=page)


@router.get("/enquiries/{enquiry_id}/notes", response_model=ApiResponse[List[EnquiryNoteOut]])
async def list_notes(
    enquiry_id: int,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    notes = await db.run(EnquiryServices.list_enquiry_notes, actor_id, enquiry_id)
    return ApiResponse(data=[EnquiryNoteOut.model_validate(note) for note in notes])


@router.post("/enquiries/{enquiry_id}/notes", response_model=ApiResponse[EnquiryNoteOut], status_code=201)
async def add_note(
    enquiry_id: int,
    payload: EnquiryNoteCreate,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    note = await db.run(EnquiryServices.add_enquiry_note, actor_id, enquiry_id, payload)
    return ApiResponse(data=EnquiryNoteOut.model_validate(note), message="Note added successfully")


@router.put("/enquiries/{enquiry_id}", response_model=ApiResponse[EnquiryOut])
async def update_enquiry(
    enquiry_id: int,
    payload: EnquiryPatch,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    enquiry = await db.run(EnquiryServices.update_enquiry, actor_id, enquiry_id, payload)
    return ApiResponse(data=EnquiryOut.model_validate(enquiry), message="Enquiry updated successfully")
