from typing import Any, Dict, List, Optional

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from aetherra.core.logging import db_logger
from aetherra.models.activity import Activity


async def log_activity(
    db: AsyncSession,
    user_id: str,
    action: str,
    category: str,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> None:
    """
    Append an audit entry for a user action.

    The entry is written in its own session on the caller's engine, so a
    failed insert is logged and rolled back without expiring the objects the
    caller is about to return.
    """
    ip_address = None
    user_agent = None
    if request is not None:
        forwarded = request.headers.get("x-forwarded-for")
        ip_address = forwarded.split(",")[0].strip() if forwarded else (request.client.host if request.client else None)
        user_agent = (request.headers.get("user-agent") or "")[:255] or None

    try:
        async with AsyncSession(bind=db.bind, expire_on_commit=False) as audit_db:
            audit_db.add(Activity(
                user_id=user_id,
                action=action,
                category=category,
                details=details or {},
                ip_address=ip_address,
                user_agent=user_agent,
            ))
            await audit_db.commit()
    except SQLAlchemyError as e:
        db_logger.error(f"Failed to log activity '{action}' ({category}) for user {user_id}: {e}")


async def list_activities(
    db: AsyncSession,
    user_id: str,
    category: Optional[str] = None,
    limit: int = 50,
) -> List[Activity]:
    query = select(Activity).where(Activity.user_id == user_id)
    if category:
        query = query.where(Activity.category == category)
    result = await db.execute(query.order_by(Activity.created_at.desc()).limit(limit))
    return list(result.scalars().all())
