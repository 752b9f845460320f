from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy import or_
from sqlalchemy.orm import Session
from uuid import UUID

from ..database import get_db
from ..audit import ActivityType
from ..auth import Principal, get_current_user
from ..errors import ErrorCode, NotFound, PermissionDenied, ValidationError
from ..rbac import PERMISSION_TYPE_SCOPES
from .. import audit, models, schemas

router = APIRouter(prefix="/api/organizations", tags=["organizations"])


def _membership(db: Session, organization_id: UUID, user_id: UUID):
    return (
        db.query(models.OrganizationMember)
        .filter(
            models.OrganizationMember.organization_id == organization_id,
            models.OrganizationMember.user_id == user_id,
        )
        .first()
    )


def _get_organization(db: Session, organization_id: UUID) -> models.Organization:
    org = db.get(models.Organization, organization_id)
    if org is None:
        raise NotFound(ErrorCode.ORGANIZATION_NOT_FOUND, params={"organization_id": organization_id})
    return org


def _require_member(db: Session, organization_id: UUID, user: models.User) -> None:
    if not user.is_admin and _membership(db, organization_id, user.id) is None:
        raise PermissionDenied(params={"organization_id": organization_id})


def _require_owner(db: Session, organization_id: UUID, user: models.User) -> None:
    own = _membership(db, organization_id, user.id)
    if not user.is_admin and (own is None or own.role != "OWNER"):
        raise PermissionDenied(params={"organization_id": organization_id})


def _has_other_owner(db: Session, organization_id: UUID, user_id: UUID) -> bool:
    return (
        db.query(models.OrganizationMember)
        .filter(
            models.OrganizationMember.organization_id == organization_id,
            models.OrganizationMember.role == "OWNER",
            models.OrganizationMember.user_id != user_id,
        )
        .count()
        > 0
    )


def _remove_membership(db: Session, membership: models.OrganizationMember) -> None:
    """Drop a member together with their direct permissions on the organization's projects."""

    project_ids = [
        project_id
        for (project_id,) in db.query(models.Project.id)
        .filter(models.Project.organization_id == membership.organization_id)
        .all()
    ]
    if project_ids:
        db.query(models.ProjectPermission).filter(
            models.ProjectPermission.user_id == membership.user_id,
            models.ProjectPermission.project_id.in_(project_ids),
        ).delete(synchronize_session=False)
    db.delete(membership)


@router.post("", response_model=schemas.OrganizationOut)
def create_organization(
    org: schemas.OrganizationCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    db_org = models.Organization(**org.model_dump(), created_by=user.id)
    db.add(db_org)
    db.flush()
    db.add(models.OrganizationMember(organization_id=db_org.id, user_id=user.id, role="OWNER"))
    audit.log_action(db, Principal(user=user), ActivityType.CREATE_ORGANIZATION, target_type="organization", target_id=db_org.id)
    db.commit()
    db.refresh(db_org)
    return db_org


@router.get("", response_model=schemas.Page[schemas.OrganizationOut])
def list_organizations(
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=1000),
    search: str | None = Query(None),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    query = db.query(models.Organization)
    if not user.is_admin:
        query = query.join(
            models.OrganizationMember, models.OrganizationMember.organization_id == models.Organization.id
        ).filter(models.OrganizationMember.user_id == user.id)
    if search:
        query = query.filter(models.Organization.name.ilike(f"%{search}%"))
    total = query.count()
    items = query.order_by(models.Organization.name, models.Organization.id).offset(page * size).limit(size).all()
    return schemas.Page[schemas.OrganizationOut](
        items=[schemas.OrganizationOut.model_validate(org) for org in items],
        page=page,
        size=size,
        total=total,
    )


@router.get("/{organization_id}", response_model=schemas.OrganizationOut)
def get_organization(
    organization_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    org = _get_organization(db, organization_id)
    _require_member(db, organization_id, user)
    return org


@router.put("/{organization_id}", response_model=schemas.OrganizationOut)
def update_organization(
    organization_id: UUID,
    payload: schemas.OrganizationCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    org = _get_organization(db, organization_id)
    _require_owner(db, organization_id, user)
    org.name = payload.name
    org.base_permission = payload.base_permission
    audit.log_action(
        db, Principal(user=user), ActivityType.EDIT_ORGANIZATION, target_type="organization", target_id=org.id,
        details=payload.model_dump(),
    )
    db.commit()
    db.refresh(org)
    return org


@router.delete("/{organization_id}", status_code=204)
def delete_organization(
    organization_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    org = _get_organization(db, organization_id)
    _require_owner(db, organization_id, user)
    if db.query(models.Project).filter(models.Project.organization_id == organization_id).count():
        raise ValidationError(ErrorCode.ORGANIZATION_HAS_PROJECTS, params={"organization_id": organization_id})
    db.query(models.OrganizationMember).filter(
        models.OrganizationMember.organization_id == organization_id
    ).delete(synchronize_session=False)
    db.delete(org)
    audit.log_action(
        db, Principal(user=user), ActivityType.DELETE_ORGANIZATION, target_type="organization", target_id=organization_id,
        details={"name": org.name},
    )
    db.commit()
    return Response(status_code=204)


@router.get("/{organization_id}/users", response_model=schemas.Page[schemas.OrganizationMemberOut])
def list_organization_users(
    organization_id: UUID,
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=1000),
    search: str | None = Query(None),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    _get_organization(db, organization_id)
    _require_member(db, organization_id, user)
    query = (
        db.query(models.User, models.OrganizationMember.role)
        .join(models.OrganizationMember, models.OrganizationMember.user_id == models.User.id)
        .filter(models.OrganizationMember.organization_id == organization_id)
    )
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(models.User.email.ilike(pattern), models.User.full_name.ilike(pattern)))
    total = query.count()
    rows = query.order_by(models.User.full_name, models.User.email).offset(page * size).limit(size).all()
    return schemas.Page[schemas.OrganizationMemberOut](
        items=[
            schemas.OrganizationMemberOut(user_id=member.id, email=member.email, full_name=member.full_name, role=role)
            for member, role in rows
        ],
        page=page,
        size=size,
        total=total,
    )


@router.post("/{organization_id}/members", response_model=schemas.OrganizationMemberIn)
def add_member(
    organization_id: UUID,
    member: schemas.OrganizationMemberIn,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    _get_organization(db, organization_id)
    _require_owner(db, organization_id, user)
    if db.get(models.User, member.user_id) is None:
        raise NotFound(ErrorCode.USER_NOT_FOUND, params={"user_id": member.user_id})

    existing = _membership(db, organization_id, member.user_id)
    if existing is None:
        db.add(models.OrganizationMember(organization_id=organization_id, user_id=member.user_id, role=member.role))
    else:
        existing.role = member.role
    audit.log_action(
        db, Principal(user=user), ActivityType.ADD_ORGANIZATION_MEMBER, target_type="user", target_id=member.user_id,
        details={"organization_id": str(organization_id), "role": member.role},
    )
    db.commit()
    return member


@router.put("/{organization_id}/leave", status_code=204)
def leave_organization(
    organization_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    _get_organization(db, organization_id)
    membership = _membership(db, organization_id, user.id)
    if membership is None:
        raise NotFound(ErrorCode.USER_NOT_FOUND, params={"organization_id": organization_id, "user_id": user.id})
    if membership.role == "OWNER" and not _has_other_owner(db, organization_id, user.id):
        raise ValidationError(ErrorCode.ORGANIZATION_HAS_NO_OTHER_OWNER, params={"organization_id": organization_id})
    _remove_membership(db, membership)
    audit.log_action(
        db, Principal(user=user), ActivityType.LEAVE_ORGANIZATION, target_type="organization", target_id=organization_id
    )
    db.commit()
    return Response(status_code=204)


@router.put("/{organization_id}/users/{user_id}/set-role", response_model=schemas.OrganizationMemberIn)
def set_member_role(
    organization_id: UUID,
    user_id: UUID,
    payload: schemas.OrganizationRoleSet,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    if user_id == user.id:
        raise ValidationError(ErrorCode.CANNOT_SET_YOUR_OWN_ROLE, params={"user_id": user_id})
    _get_organization(db, organization_id)
    _require_owner(db, organization_id, user)
    membership = _membership(db, organization_id, user_id)
    if membership is None:
        raise NotFound(ErrorCode.USER_NOT_FOUND, params={"organization_id": organization_id, "user_id": user_id})
    membership.role = payload.role
    audit.log_action(
        db, Principal(user=user), ActivityType.SET_ORGANIZATION_ROLE, target_type="user", target_id=user_id,
        details={"organization_id": str(organization_id), "role": payload.role},
    )
    db.commit()
    return schemas.OrganizationMemberIn(user_id=user_id, role=payload.role)


@router.delete("/{organization_id}/users/{user_id}", status_code=204)
def remove_member(
    organization_id: UUID,
    user_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    _get_organization(db, organization_id)
    _require_owner(db, organization_id, user)
    membership = _membership(db, organization_id, user_id)
    if membership is None:
        raise NotFound(ErrorCode.USER_NOT_FOUND, params={"organization_id": organization_id, "user_id": user_id})
    if membership.role == "OWNER" and not _has_other_owner(db, organization_id, user_id):
        raise ValidationError(ErrorCode.ORGANIZATION_HAS_NO_OTHER_OWNER, params={"organization_id": organization_id})
    _remove_membership(db, membership)
    audit.log_action(
        db, Principal(user=user), ActivityType.REMOVE_ORGANIZATION_MEMBER, target_type="user", target_id=user_id,
        details={"organization_id": str(organization_id)},
    )
    db.commit()
    return Response(status_code=204)


@router.put("/{organization_id}/set-base-permissions/{permission_type}", response_model=schemas.OrganizationOut)
def set_base_permission(
    organization_id: UUID,
    permission_type: str,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    org = _get_organization(db, organization_id)
    _require_owner(db, organization_id, user)
    if permission_type not in PERMISSION_TYPE_SCOPES:
        raise ValidationError(ErrorCode.INVALID_PERMISSION_TYPE, params={"type": permission_type})
    org.base_permission = permission_type
    audit.log_action(
        db, Principal(user=user), ActivityType.SET_ORGANIZATION_BASE_PERMISSION, target_type="organization",
        target_id=org.id, details={"base_permission": permission_type},
    )
    db.commit()
    db.refresh(org)
    return org
