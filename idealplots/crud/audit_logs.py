# idealplots/crud/audit_logs.py
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from idealplots.models import AuditLog
from idealplots.models.enums import AuditSeverity


def audit_value(value):
    """JSON-safe rendering of a column value for old_values / new_values."""
    if isinstance(value, (set, frozenset)):
        return sorted(getattr(v, "value", v) for v in value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if hasattr(value, "value"):
        return value.value
    if value is None or isinstance(value, (bool, int, str, dict, list)):
        return value
    return str(value)


# --- Insert Audit Entry ---
async def create_audit_log(
    db: AsyncSession,
    *,
    user_id: Optional[int],
    action: str,
    table_name: str,
    record_id: Optional[int],
    description: Optional[str] = None,
    severity: AuditSeverity = AuditSeverity.LOW,
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> AuditLog:
    entry = AuditLog(
        user_id=user_id,
        action=action,
        table_name=table_name,
        record_id=record_id,
        description=description,
        severity=severity,
        old_values=old_values,
        new_values=new_values,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(entry)
    await db.flush()
    return entry

