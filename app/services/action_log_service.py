"""
Admin audit trail.

Rows are added to the caller's session and committed together with the
change they describe.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.core.pagination import paginate
from app.db.models.user_action_log import UserActionLog

logger = logging.getLogger(__name__)


def record_action(
    db: Session,
    user_id: int,
    action_type: str,
    description: str,
    admin_user_id: Optional[int] = None,
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> UserActionLog:
    """Stage an audit row in the current transaction (no commit)."""
    log = UserActionLog(
        user_id=user_id,
        admin_user_id=admin_user_id,
        action_type=action_type,
        action_description=description,
        old_values=old_values,
        new_values=new_values,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(log)
    logger.info(
        f"Admin action staged: type={action_type}, user_id={user_id}, admin_user_id={admin_user_id}"
    )
    return log


def list_action_logs(
    db: Session,
    user_id: Optional[int] = None,
    admin_user_id: Optional[int] = None,
    action_type: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Dict[str, Any]:
    query = db.query(UserActionLog)
    if user_id:
        query = query.filter(UserActionLog.user_id == user_id)
    if admin_user_id:
        query = query.filter(UserActionLog.admin_user_id == admin_user_id)
    if action_type:
        query = query.filter(UserActionLog.action_type == action_type)
    query = query.order_by(UserActionLog.created_at.desc(), UserActionLog.id.desc())
    return paginate(query, page, limit)
