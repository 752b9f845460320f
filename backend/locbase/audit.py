from datetime import datetime, timezone
from uuid import UUID
from sqlalchemy.orm import Session
from sqlalchemy import func
from . import models
from .auth import Principal


class ActivityType:
    SET_TRANSLATIONS = "SET_TRANSLATIONS"
    CREATE_KEY = "CREATE_KEY"
    SET_TRANSLATION_STATE = "SET_TRANSLATION_STATE"
    DISMISS_AUTO_TRANSLATED_STATE = "DISMISS_AUTO_TRANSLATED_STATE"
    SET_OUTDATED_FLAG = "SET_OUTDATED_FLAG"
    TRANSLATION_COMMENT_ADD = "TRANSLATION_COMMENT_ADD"
    TRANSLATION_COMMENT_EDIT = "TRANSLATION_COMMENT_EDIT"
    TRANSLATION_COMMENT_SET_STATE = "TRANSLATION_COMMENT_SET_STATE"
    TRANSLATION_COMMENT_DELETE = "TRANSLATION_COMMENT_DELETE"
    CREATE_PROJECT = "CREATE_PROJECT"
    CREATE_LANGUAGE = "CREATE_LANGUAGE"
    SET_PERMISSION = "SET_PERMISSION"
    CREATE_API_KEY = "CREATE_API_KEY"
    CREATE_ORGANIZATION = "CREATE_ORGANIZATION"
    ADD_ORGANIZATION_MEMBER = "ADD_ORGANIZATION_MEMBER"
    EDIT_ORGANIZATION = "EDIT_ORGANIZATION"
    DELETE_ORGANIZATION = "DELETE_ORGANIZATION"
    LEAVE_ORGANIZATION = "LEAVE_ORGANIZATION"
    SET_ORGANIZATION_ROLE = "SET_ORGANIZATION_ROLE"
    REMOVE_ORGANIZATION_MEMBER = "REMOVE_ORGANIZATION_MEMBER"
    SET_ORGANIZATION_BASE_PERMISSION = "SET_ORGANIZATION_BASE_PERMISSION"
    REGISTER = "REGISTER"
    LOGIN = "LOGIN"


def log_action(
    db: Session,
    principal: Principal,
    action: str,
    project_id: UUID | None = None,
    target_type: str | None = None,
    target_id: str | UUID | None = None,
    details: dict | None = None,
) -> models.AuditLog:
    """Record an activity row in the caller's unit of work; the caller commits."""

    log = models.AuditLog(
        user_id=principal.user.id,
        api_key_id=principal.api_key.id if principal.api_key else None,
        project_id=project_id,
        action=action,
        target_type=target_type,
        target_id=UUID(str(target_id)) if target_id else None,
        details=details or {},
        created_at=datetime.now(timezone.utc),
    )
    db.add(log)
    return log


def list_project_activity(db: Session, project_id: UUID, *, page: int = 0, size: int = 20):
    query = db.query(models.AuditLog).filter(models.AuditLog.project_id == project_id)
    total = query.count()
    items = (
        query.order_by(models.AuditLog.created_at.desc())
        .offset(page * size)
        .limit(size)
        .all()
    )
    return items, total


def generate_report(db: Session, project_id: UUID, start: datetime, end: datetime):
    rows = (
        db.query(models.AuditLog.action, func.count(models.AuditLog.id))
        .filter(
            models.AuditLog.project_id == project_id,
            models.AuditLog.created_at >= start,
            models.AuditLog.created_at <= end,
        )
        .group_by(models.AuditLog.action)
        .all()
    )
    return [{"action": r[0], "count": r[1]} for r in rows]
