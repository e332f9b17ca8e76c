# idealplots/crud/assignments.py
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from idealplots.db.base_class import utcnow
from idealplots.models import UserAgentAssignment
from idealplots.models.enums import AssignmentStatus, AssignmentType


# --- Insert Assignment ---
async def create_assignment(
    db: AsyncSession,
    user_id: int,
    agent_id: int,
    assignment_type: AssignmentType,
    reason: Optional[str],
) -> UserAgentAssignment:
    assignment = UserAgentAssignment(
        user_id=user_id,
        agent_id=agent_id,
        assignment_type=assignment_type,
        assignment_reason=reason,
        status=AssignmentStatus.ACTIVE,
    )
    db.add(assignment)
    await db.flush()
    return assignment


async def get_assignment_for_update(db: AsyncSession, assignment_id: int) -> Optional[UserAgentAssignment]:
    result = await db.execute(
        select(UserAgentAssignment)
        .where(UserAgentAssignment.id == assignment_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


# --- Retire earlier assignments before a manual reassignment ---
async def deactivate_user_assignments(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        update(UserAgentAssignment)
        .where(
            UserAgentAssignment.user_id == user_id,
            UserAgentAssignment.status == AssignmentStatus.ACTIVE,
        )
        .values(status=AssignmentStatus.INACTIVE, completed_at=utcnow())
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount or 0
