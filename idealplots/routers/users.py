# idealplots/routers/users.py
from typing import List

from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool
from redis.asyncio import Redis

from idealplots.core.security import hash_credential
from idealplots.db.redis_client import cache_delete, get_redis
from idealplots.db.session import Database, get_database
from idealplots.routers.deps import get_actor_id
from idealplots.schemas.common import ApiResponse
from idealplots.schemas.listing import ScoredListing
from idealplots.schemas.user import (
    AssignmentEnd, AssignmentOut, EmailVerification, PhoneVerification, UserDashboard, UserOut,
    UserRegistration, UserUpdate,
)
from idealplots.services.access import require_self_or_admin
from idealplots.services.dashboard_services import DashboardServices, dashboard_cache_key
from idealplots.services.recommendation import RecommendationEngine
from idealplots.services.user_services import UserServices

router = APIRouter(prefix="/api/users", tags=["Users"])


async def _recommendations_for(db, actor_id: int, user_id: int, limit: int) -> List[ScoredListing]:
    await require_self_or_admin(db, actor_id, user_id)
    return await RecommendationEngine.get_recommendations(db, user_id, limit)


@router.post("/register", response_model=ApiResponse[UserOut], status_code=201)
async def register_user(payload: UserRegistration, db: Database = Depends(get_database)):
    credential_hash = await run_in_threadpool(hash_credential, payload.password)
    user = await db.run(UserServices.register_user, payload, credential_hash)
    return ApiResponse(data=UserOut.model_validate(user), message="Registration successful")


@router.put("/{user_id}", response_model=ApiResponse[UserOut])
async def update_user(
    user_id: int,
    payload: UserUpdate,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
    redis: Redis = Depends(get_redis),
):
    user = await db.run(UserServices.update_user, actor_id, user_id, payload)
    await cache_delete(redis, dashboard_cache_key(user_id))
    return ApiResponse(data=UserOut.model_validate(user))


@router.post("/{user_id}/verify-email", response_model=ApiResponse[UserOut])
async def verify_email(user_id: int, payload: EmailVerification, db: Database = Depends(get_database)):
    user = await db.run(UserServices.verify_email, user_id, payload.token)
    return ApiResponse(data=UserOut.model_validate(user), message="Email verified")


@router.post("/{user_id}/verify-phone", response_model=ApiResponse[UserOut])
async def verify_phone(user_id: int, payload: PhoneVerification, db: Database = Depends(get_database)):
    user = await db.run(UserServices.verify_phone, user_id, payload.code)
    return ApiResponse(data=UserOut.model_validate(user), message="Phone verified")


@router.get("/{user_id}/recommendations", response_model=ApiResponse[List[ScoredListing]])
async def get_recommendations(
    user_id: int,
    limit: int = Query(10, ge=1, le=50),
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    items = await db.run(_recommendations_for, actor_id, user_id, limit)
    return ApiResponse(data=items)


@router.get("/{user_id}/dashboard", response_model=ApiResponse[UserDashboard])
async def get_dashboard(
    user_id: int,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
    redis: Redis = Depends(get_redis),
):
    dashboard = await db.run(DashboardServices.get_user_dashboard, actor_id, user_id, redis)
    return ApiResponse(data=dashboard)


@router.post("/assignments/{assignment_id}/end", response_model=ApiResponse[AssignmentOut])
async def end_assignment(
    assignment_id: int,
    payload: AssignmentEnd,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    assignment = await db.run(UserServices.end_assignment, actor_id, assignment_id, payload.status)
    return ApiResponse(data=AssignmentOut.model_validate(assignment))
