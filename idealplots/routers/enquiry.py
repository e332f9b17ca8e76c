# idealplots/routers/enquiry.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Request
from fastapi.concurrency import run_in_threadpool
from redis.asyncio import Redis

from idealplots.core.config import settings
from idealplots.core.security import hash_credential
from idealplots.db.redis_client import get_redis, hit_rate_limit
from idealplots.db.session import Database, get_database
from idealplots.models.enums import EnquiryStatus
from idealplots.routers.deps import client_ip, get_actor_id, page_params
from idealplots.schemas.common import ApiResponse, Page, PageParams, Pagination
from idealplots.schemas.enquiry import (
    TICKET_NUMBER_PATTERN, EnquiryIntake, EnquiryIntakeResult, EnquiryOut, EnquirySubmission, EnquiryTracking,
)
from idealplots.services.enquiry_services import EnquiryServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/enquiries", tags=["Enquiries"])


@router.post(
    "",
    response_model=ApiResponse[EnquiryIntakeResult],
    status_code=201,
    summary="Submit an enquiry",
    description="Public lead intake. Optionally creates a buyer account and always issues a ticket number.",
)
async def submit_enquiry(
    payload: EnquirySubmission,
    request: Request,
    db: Database = Depends(get_database),
    redis: Redis = Depends(get_redis),
):
    # 1. --- Rate limit per client IP ---
    ip = client_ip(request)
    if await hit_rate_limit(
        redis, f"ratelimit:enquiry:{ip}", settings.enquiry_rate_limit, settings.enquiry_rate_window_seconds
    ):
        logger.warning("Enquiry rate limit hit for %s", ip)
        raise HTTPException(status_code=429, detail="Too many enquiries, please try again later")

    # 2. --- Credential hashing stays in the facade ---
    credential_hash = None
    if payload.create_account and payload.password:
        credential_hash = await run_in_threadpool(hash_credential, payload.password)

    intake = EnquiryIntake(
        **payload.model_dump(exclude={"password"}),
        credential_hash=credential_hash,
        user_agent=request.headers.get("user-agent"),
    )
    result = await db.run(EnquiryServices.handle_enquiry, intake)
    return ApiResponse(
        data=result,
        message=f"Enquiry submitted successfully. Ticket: {result.ticket_number}",
    )


@router.get("/track/{ticket_number}", response_model=ApiResponse[EnquiryTracking], summary="Track an enquiry")
async def track_enquiry(
    ticket_number: str = Path(..., pattern=TICKET_NUMBER_PATTERN),
    db: Database = Depends(get_database),
):
    tracking = await db.run(EnquiryServices.track_enquiry, ticket_number)
    return ApiResponse(data=tracking)


@router.get("/my-enquiries", response_model=ApiResponse[Page[EnquiryOut]])
async def list_my_enquiries(
    status: Optional[EnquiryStatus] = None,
    params: PageParams = Depends(page_params),
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    items, total = await db.run(
        EnquiryServices.list_user_enquiries, actor_id, params.offset, params.limit, status
    )
    page = Page[EnquiryOut](
        items=[EnquiryOut.model_validate(item) for item in items],
        pagination=Pagination.build(params.page, params.limit, total),
    )
    return ApiResponse(data=page)


@router.get("/my-enquiries/{enquiry_id}", response_model=ApiResponse[EnquiryOut])
async def get_my_enquiry(
    enquiry_id: int,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    enquiry = await db.run(EnquiryServices.get_user_enquiry, actor_id, enquiry_id)
    return ApiResponse(data=EnquiryOut.model_validate(enquiry))
