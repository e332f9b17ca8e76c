# idealplots/routers/admin.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool

from idealplots.core.exceptions import DuplicateKeyError
from idealplots.core.security import hash_credential
from idealplots.db.session import Database, get_database
from idealplots.routers.deps import get_actor_id, page_params
from idealplots.schemas.agent import (
    AgentCreateRequest, AgentCreationResult, NotificationOut, NotificationSent, PendingNotificationRow,
)
from idealplots.schemas.approval import PendingApprovalRow
from idealplots.schemas.common import ApiResponse, Page, PageParams
from idealplots.schemas.enquiry import EnquiryAssignRequest, EnquiryOut
from idealplots.schemas.listing import ListingOut, ListingRejection, ListingReview, ReconciliationReport
from idealplots.schemas.user import AgentAssignRequest, AssignmentOut, SettingOut, SettingUpdate
from idealplots.services.agent_services import DUPLICATE_CONTACT, AgentServices, issue_temp_credential
from idealplots.services.dashboard_services import DashboardServices
from idealplots.services.enquiry_services import EnquiryServices
from idealplots.services.listing_services import ListingServices
from idealplots.services.reconciliation import reconcile_favorites_counts
from idealplots.services.settings_services import SettingsServices
from idealplots.services.user_services import UserServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


# --- Listing review ---
@router.post("/listings/{listing_id}/approve", response_model=ApiResponse[ListingOut])
async def approve_listing(
    listing_id: int,
    payload: Optional[ListingReview] = None,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    notes = payload.notes if payload else None
    listing = await db.run(ListingServices.approve_listing, listing_id, actor_id, notes)
    return ApiResponse(data=ListingOut.model_validate(listing), message="Property approved successfully")


@router.post("/listings/{listing_id}/reject", response_model=ApiResponse[ListingOut])
async def reject_listing(
    listing_id: int,
    payload: ListingRejection,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    listing = await db.run(ListingServices.reject_listing, listing_id, actor_id, payload.reason)
    return ApiResponse(data=ListingOut.model_validate(listing), message="Property rejected")


@router.get("/approvals", response_model=ApiResponse[Page[PendingApprovalRow]])
async def pending_approvals(
    params: PageParams = Depends(page_params),
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    page = await db.run(DashboardServices.pending_approvals, actor_id, params)
    return ApiResponse(data=page)


# --- Agents & outbox ---
@router.post("/agents", response_model=ApiResponse[AgentCreationResult])
async def create_agent(
    payload: AgentCreateRequest,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    request, credential_hash = await run_in_threadpool(issue_temp_credential, payload, hash_credential)
    try:
        result = await db.run(AgentServices.admin_create_agent, actor_id, request, credential_hash)
    except DuplicateKeyError:
        # A concurrent request registered the same email or phone first.
        result = AgentCreationResult(success=False, error=DUPLICATE_CONTACT)

    if not result.success:
        logger.warning("Agent creation by %s failed: %s", actor_id, result.error)
    return ApiResponse(
        success=result.success,
        data=result,
        error=result.error,
        message=result.message,
    )


@router.get("/notifications/pending", response_model=ApiResponse[Page[PendingNotificationRow]])
async def pending_notifications(
    params: PageParams = Depends(page_params),
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    page = await db.run(DashboardServices.pending_notifications, actor_id, params)
    return ApiResponse(data=page)


@router.post("/notifications/{notification_id}/sent", response_model=ApiResponse[NotificationOut])
async def mark_notification_sent(
    notification_id: int,
    payload: NotificationSent,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    notification = await db.run(AgentServices.mark_notification_sent, actor_id, notification_id, payload.channel)
    return ApiResponse(data=NotificationOut.model_validate(notification))


# --- Routing ---
@router.post("/enquiries/{enquiry_id}/assign", response_model=ApiResponse[EnquiryOut])
async def assign_enquiry(
    enquiry_id: int,
    payload: EnquiryAssignRequest,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    enquiry = await db.run(EnquiryServices.assign_enquiry, actor_id, enquiry_id, payload.agent_id, payload.reason)
    return ApiResponse(data=EnquiryOut.model_validate(enquiry), message="Enquiry assigned")


@router.post("/enquiries/{enquiry_id}/close", response_model=ApiResponse[EnquiryOut])
async def close_enquiry(
    enquiry_id: int,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    enquiry = await db.run(EnquiryServices.close_enquiry, actor_id, enquiry_id)
    return ApiResponse(data=EnquiryOut.model_validate(enquiry), message="Enquiry closed")


@router.post("/users/{user_id}/agent", response_model=ApiResponse[AssignmentOut], status_code=201)
async def assign_agent(
    user_id: int,
    payload: AgentAssignRequest,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    assignment = await db.run(
        UserServices.assign_agent_to_user, actor_id, user_id, payload.agent_id, payload.reason
    )
    return ApiResponse(data=AssignmentOut.model_validate(assignment), message="Agent assigned")


# --- Settings & maintenance ---
@router.put("/settings/{key}", response_model=ApiResponse[SettingOut])
async def update_setting(
    key: str,
    payload: SettingUpdate,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    setting = await db.run(SettingsServices.set_setting, actor_id, key, payload.value, payload.setting_type)
    return ApiResponse(data=SettingOut.model_validate(setting))


@router.post("/maintenance/reconcile-favorites", response_model=ApiResponse[ReconciliationReport])
async def reconcile_favorites(
    fix: bool = Query(False, description="Overwrite drifting counters with the recomputed value"),
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    report = await db.run(reconcile_favorites_counts, actor_id, fix)
    return ApiResponse(data=report)
