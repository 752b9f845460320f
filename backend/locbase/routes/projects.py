from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from uuid import UUID

from ..database import get_db
from ..audit import ActivityType
from ..auth import Principal, generate_api_key, get_current_user
from ..errors import CrossProjectReference, ErrorCode, NotFound, PermissionDenied, ValidationError
from ..rbac import PermissionGate, Scope, get_project_gate
from ..services import keys as key_service
from .. import audit, freshness, models, schemas

router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.post("", response_model=schemas.ProjectOut)
def create_project(
    project: schemas.ProjectCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    if project.organization_id is not None:
        org = db.get(models.Organization, project.organization_id)
        if org is None:
            raise NotFound(ErrorCode.ORGANIZATION_NOT_FOUND, params={"organization_id": project.organization_id})
        member = (
            db.query(models.OrganizationMember)
            .filter(
                models.OrganizationMember.organization_id == org.id,
                models.OrganizationMember.user_id == user.id,
            )
            .first()
        )
        if member is None and not user.is_admin:
            raise PermissionDenied(params={"organization_id": org.id})

    db_proj = models.Project(**project.model_dump(), created_by=user.id)
    db.add(db_proj)
    db.flush()
    db.add(models.ProjectPermission(project_id=db_proj.id, user_id=user.id, type="MANAGE"))
    freshness.touch(db, db_proj.id)
    audit.log_action(db, Principal(user=user), ActivityType.CREATE_PROJECT, db_proj.id, "project", db_proj.id)
    db.commit()
    db.refresh(db_proj)
    return db_proj


@router.get("/{project_id}", response_model=schemas.ProjectOut)
def get_project(gate: PermissionGate = Depends(get_project_gate)):
    return gate.project


@router.post("/{project_id}/languages", response_model=schemas.LanguageOut)
def add_language(
    language: schemas.LanguageCreate,
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    gate.require(Scope.LANGUAGES_EDIT)
    project = gate.project
    exists = (
        db.query(models.Language)
        .filter(models.Language.project_id == project.id, models.Language.tag == language.tag)
        .first()
    )
    if exists:
        raise ValidationError(ErrorCode.LANGUAGE_TAG_EXISTS, params={"tag": language.tag})
    db_lang = models.Language(
        project_id=project.id,
        tag=language.tag,
        name=language.name,
        original_name=language.original_name,
    )
    db.add(db_lang)
    db.flush()
    if language.base or project.base_language_id is None:
        project.base_language_id = db_lang.id
    audit.log_action(
        db, gate.principal, ActivityType.CREATE_LANGUAGE, project.id, "language", db_lang.id, {"tag": db_lang.tag}
    )
    db.commit()
    db.refresh(db_lang)
    return db_lang


@router.get("/{project_id}/languages", response_model=list[schemas.LanguageOut])
def list_languages(
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    return (
        db.query(models.Language)
        .filter(models.Language.project_id == gate.project.id)
        .order_by(models.Language.tag)
        .all()
    )


def _project_language_ids(db: Session, project_id: UUID, ids: list[UUID]) -> list[str]:
    if not ids:
        return []
    found = {
        language.id
        for language in db.query(models.Language).filter(models.Language.id.in_(ids)).all()
        if language.project_id == project_id
    }
    foreign = [language_id for language_id in ids if language_id not in found]
    if foreign:
        raise CrossProjectReference(ErrorCode.LANGUAGE_NOT_FROM_PROJECT, params={"language_ids": foreign})
    return [str(language_id) for language_id in dict.fromkeys(ids)]


@router.put("/{project_id}/permissions", response_model=schemas.PermissionOut)
def set_permission(
    permission: schemas.PermissionSet,
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    gate.require(Scope.MEMBERS_EDIT)
    if db.get(models.User, permission.user_id) is None:
        raise NotFound(ErrorCode.USER_NOT_FOUND, params={"user_id": permission.user_id})

    project_id = gate.project.id
    view_ids = _project_language_ids(db, project_id, permission.view_language_ids)
    translate_ids = _project_language_ids(db, project_id, permission.translate_language_ids)
    state_ids = _project_language_ids(db, project_id, permission.state_change_language_ids)

    db_perm = (
        db.query(models.ProjectPermission)
        .filter(
            models.ProjectPermission.project_id == project_id,
            models.ProjectPermission.user_id == permission.user_id,
        )
        .first()
    )
    if db_perm is None:
        db_perm = models.ProjectPermission(project_id=project_id, user_id=permission.user_id)
        db.add(db_perm)
    db_perm.type = permission.type
    db_perm.view_language_ids = view_ids
    db_perm.translate_language_ids = translate_ids
    db_perm.state_change_language_ids = state_ids
    db.flush()
    audit.log_action(
        db, gate.principal, ActivityType.SET_PERMISSION, project_id, "user", permission.user_id, {"type": permission.type}
    )
    db.commit()
    db.refresh(db_perm)
    return db_perm


@router.post("/{project_id}/api-keys", response_model=schemas.ApiKeyOut)
def create_api_key(
    payload: schemas.ApiKeyCreate,
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    if not gate.can_mutate(Scope.MEMBERS_EDIT):
        gate.require(Scope.ADMIN)
    unknown = [value for value in payload.scopes if value not in {scope.value for scope in Scope}]
    if unknown:
        raise ValidationError(ErrorCode.INVALID_SCOPE, params={"scopes": unknown})
    # a key never carries more than its creator holds
    missing = [value for value in payload.scopes if not gate.permission.has(Scope(value))]
    if missing:
        raise PermissionDenied(params={"scopes": missing})

    raw, digest = generate_api_key()
    api_key = models.ApiKey(
        key_hash=digest,
        description=payload.description,
        project_id=gate.project.id,
        user_id=gate.principal.id,
        scopes=list(dict.fromkeys(payload.scopes)),
    )
    db.add(api_key)
    db.flush()
    audit.log_action(
        db, gate.principal, ActivityType.CREATE_API_KEY, gate.project.id, "api_key", api_key.id, {"scopes": api_key.scopes}
    )
    db.commit()
    db.refresh(api_key)
    out = schemas.ApiKeyOut.model_validate(api_key)
    out.key = raw
    return out


@router.post("/{project_id}/keys", response_model=schemas.KeyOut)
def create_key(
    payload: schemas.KeyCreate,
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    key = key_service.create_key(gate, payload.name, payload.namespace)
    audit.log_action(
        db, gate.principal, ActivityType.CREATE_KEY, gate.project.id, "key", key.id,
        {"key": key.name, "namespace": key.namespace},
    )
    db.commit()
    db.refresh(key)
    return key


@router.get("/{project_id}/keys", response_model=list[schemas.KeyOut])
def list_keys(
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    gate.require(Scope.KEYS_VIEW)
    return (
        db.query(models.Key)
        .filter(models.Key.project_id == gate.project.id)
        .order_by(models.Key.namespace, models.Key.name)
        .all()
    )


@router.get("/{project_id}/activity", response_model=schemas.Page[schemas.AuditLogOut])
def list_activity(
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=1000),
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    gate.require(Scope.ACTIVITY_VIEW)
    items, total = audit.list_project_activity(db, gate.project.id, page=page, size=size)
    return schemas.Page[schemas.AuditLogOut](
        items=[schemas.AuditLogOut.model_validate(item) for item in items],
        page=page,
        size=size,
        total=total,
    )


@router.get("/{project_id}/activity/report", response_model=list[schemas.AuditReportItem])
def activity_report(
    start: datetime | None = None,
    end: datetime | None = None,
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    gate.require(Scope.ACTIVITY_VIEW)
    end = end or datetime.now(timezone.utc)
    start = start or end - timedelta(days=30)
    return audit.generate_report(db, gate.project.id, start, end)
