from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session
from uuid import UUID

from ..database import get_db
from ..audit import ActivityType
from ..rbac import PermissionGate, get_project_gate
from ..services import comments as comment_service
from ..services import translations as translation_service
from .. import audit, schemas

router = APIRouter(prefix="/api/projects", tags=["translation-comments"])


@router.get("/{project_id}/translations/{translation_id}/comments", response_model=schemas.Page[schemas.CommentOut])
def list_comments(
    translation_id: UUID,
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=1000),
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    translation = translation_service.get_translation(gate, translation_id)
    items, total = comment_service.list_comments(gate, translation, page=page, size=size)
    return schemas.Page[schemas.CommentOut](
        items=[schemas.CommentOut.model_validate(item) for item in items],
        page=page,
        size=size,
        total=total,
    )


@router.get("/{project_id}/translations/{translation_id}/comments/{comment_id}", response_model=schemas.CommentOut)
def get_comment(
    translation_id: UUID,
    comment_id: UUID,
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    comment = comment_service.get_comment(gate, comment_id, translation_id)
    gate.require_language_view(comment.translation.language_id)
    return comment


@router.post("/{project_id}/translations/create-comment", response_model=schemas.TranslationWithComment, status_code=201)
def create_comment_for_key(
    payload: schemas.CommentWithLangKeyCreate,
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    translation, comment = comment_service.create_for_key_language(
        gate, payload.key_id, payload.language_id, payload.text, payload.state
    )
    audit.log_action(
        db, gate.principal, ActivityType.TRANSLATION_COMMENT_ADD, gate.project.id, "translation_comment", comment.id,
        {"translation_id": str(translation.id)},
    )
    db.commit()
    db.refresh(translation)
    db.refresh(comment)
    return schemas.TranslationWithComment(
        translation=schemas.TranslationOut.model_validate(translation),
        comment=schemas.CommentOut.model_validate(comment),
    )


@router.post("/{project_id}/translations/{translation_id}/comments", response_model=schemas.CommentOut, status_code=201)
def create_comment(
    translation_id: UUID,
    payload: schemas.CommentCreate,
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    translation = translation_service.get_translation(gate, translation_id)
    comment = comment_service.create(gate, translation, payload.text, payload.state)
    audit.log_action(
        db, gate.principal, ActivityType.TRANSLATION_COMMENT_ADD, gate.project.id, "translation_comment", comment.id,
        {"translation_id": str(translation.id)},
    )
    db.commit()
    db.refresh(comment)
    return comment


@router.put("/{project_id}/translations/{translation_id}/comments/{comment_id}", response_model=schemas.CommentOut)
def update_comment(
    translation_id: UUID,
    comment_id: UUID,
    update: schemas.CommentUpdate,
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    comment = comment_service.get_comment(gate, comment_id, translation_id)
    comment_service.update(gate, comment, update.text)
    audit.log_action(db, gate.principal, ActivityType.TRANSLATION_COMMENT_EDIT, gate.project.id, "translation_comment", comment.id)
    db.commit()
    db.refresh(comment)
    return comment


@router.put("/{project_id}/translations/{translation_id}/comments/{comment_id}/set-state/{state}", response_model=schemas.CommentOut)
def set_comment_state(
    translation_id: UUID,
    comment_id: UUID,
    state: str,
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    comment = comment_service.get_comment(gate, comment_id, translation_id)
    comment_service.set_state(gate, comment, state)
    audit.log_action(
        db, gate.principal, ActivityType.TRANSLATION_COMMENT_SET_STATE, gate.project.id, "translation_comment", comment.id,
        {"state": state},
    )
    db.commit()
    db.refresh(comment)
    return comment


@router.delete("/{project_id}/translations/{translation_id}/comments/{comment_id}", status_code=204)
def delete_comment(
    translation_id: UUID,
    comment_id: UUID,
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    comment = comment_service.get_comment(gate, comment_id, translation_id)
    comment_service.delete(gate, comment)
    audit.log_action(db, gate.principal, ActivityType.TRANSLATION_COMMENT_DELETE, gate.project.id, "translation_comment", comment_id)
    db.commit()
    return Response(status_code=204)
