# idealplots/routers/auth.py
from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from idealplots.core.exceptions import AuthorizationError
from idealplots.core.security import hash_credential
from idealplots.db.session import Database, get_database
from idealplots.routers.deps import get_actor_id
from idealplots.schemas.agent import FirstLoginResetRequest, FirstLoginResetResult
from idealplots.schemas.common import ApiResponse
from idealplots.services.agent_services import AgentServices

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/first-login-reset", response_model=ApiResponse[FirstLoginResetResult])
async def first_login_reset(
    payload: FirstLoginResetRequest,
    actor_id: int = Depends(get_actor_id),
    db: Database = Depends(get_database),
):
    if actor_id != payload.agent_id:
        raise AuthorizationError("First login reset is only available to the agent themself")

    credential_hash = await run_in_threadpool(hash_credential, payload.new_password)
    result = await db.run(AgentServices.agent_first_login_reset, payload.agent_id, credential_hash)
    return ApiResponse(success=result.success, data=result, message=result.message)
