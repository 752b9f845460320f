from __future__ import annotations

from typing import Any
from uuid import UUID

from .. import models
from ..errors import ErrorCode, NotFound, ValidationError
from ..rbac import AuthorizationResult, PermissionGate, Scope
from ..schemas import CommentState
from . import translations as translation_service


def parse_state(value: Any) -> CommentState:
    try:
        return CommentState(value)
    except ValueError:
        raise ValidationError(
            ErrorCode.INVALID_COMMENT_STATE,
            params={"state": value, "allowed": [s.value for s in CommentState]},
        ) from None


def _check_from_project(gate: PermissionGate, comment: models.TranslationComment) -> None:
    gate.check_from_project(
        comment.translation.key.project_id,
        ErrorCode.TRANSLATION_NOT_FROM_PROJECT,
        comment.translation_id,
    )


def get_comment(gate: PermissionGate, comment_id: UUID, translation_id: UUID | None = None) -> models.TranslationComment:
    comment = gate.db.get(models.TranslationComment, comment_id)
    if comment is None:
        raise NotFound(ErrorCode.COMMENT_NOT_FOUND, params={"comment_id": comment_id})
    _check_from_project(gate, comment)
    if translation_id is not None and comment.translation_id != translation_id:
        raise NotFound(ErrorCode.COMMENT_NOT_FOUND, params={"comment_id": comment_id})
    return comment


def list_comments(gate: PermissionGate, translation: models.Translation, *, page: int = 0, size: int = 20):
    gate.check_translation(translation)
    gate.require_language_view(translation.language_id)
    query = gate.db.query(models.TranslationComment).filter(
        models.TranslationComment.translation_id == translation.id
    )
    total = query.count()
    items = (
        query.order_by(models.TranslationComment.created_at.asc())
        .offset(page * size)
        .limit(size)
        .all()
    )
    return items, total


def _insert(gate: PermissionGate, translation: models.Translation, text: str, state: Any) -> models.TranslationComment:
    comment = models.TranslationComment(
        translation=translation,
        author_id=gate.principal.id,
        text=text,
        state=parse_state(state).value,
    )
    gate.db.add(comment)
    gate.db.flush()
    return comment


def create(
    gate: PermissionGate,
    translation: models.Translation,
    text: str,
    state: Any = CommentState.RESOLUTION_NOT_NEEDED,
) -> models.TranslationComment:
    parse_state(state)
    gate.check_translation(translation)
    gate.require(Scope.TRANSLATIONS_COMMENTS_ADD)
    return _insert(gate, translation, text, state)


def create_for_key_language(
    gate: PermissionGate,
    key_id: UUID,
    language_id: UUID,
    text: str,
    state: Any = CommentState.RESOLUTION_NOT_NEEDED,
) -> tuple[models.Translation, models.TranslationComment]:
    """Comment on a (key, language) pair, storing an empty translation first when there is none."""

    parse_state(state)
    gate.require(Scope.TRANSLATIONS_COMMENTS_ADD)
    key = gate.db.get(models.Key, key_id)
    if key is None:
        raise NotFound(ErrorCode.KEY_NOT_FOUND, params={"key_id": key_id})
    language = gate.db.get(models.Language, language_id)
    if language is None:
        raise NotFound(ErrorCode.LANGUAGE_NOT_FOUND, params={"language_id": language_id})
    translation, _ = translation_service.get_or_create_empty(gate, key, language)
    return translation, _insert(gate, translation, text, state)


def authorize_mutation(gate: PermissionGate, comment: models.TranslationComment) -> AuthorizationResult:
    """Authors may always change their comments; others need the comment edit scope."""

    return gate.authorize_owner_or_scope(comment, Scope.TRANSLATIONS_COMMENTS_EDIT)


def update(gate: PermissionGate, comment: models.TranslationComment, text: str) -> models.TranslationComment:
    _check_from_project(gate, comment)
    gate.enforce(authorize_mutation(gate, comment))
    comment.text = text
    gate.db.flush()
    return comment


def set_state(gate: PermissionGate, comment: models.TranslationComment, state: Any) -> models.TranslationComment:
    target = parse_state(state)
    _check_from_project(gate, comment)
    gate.require(Scope.TRANSLATIONS_COMMENTS_SET_STATE)
    comment.state = target.value
    gate.db.flush()
    return comment


def delete(gate: PermissionGate, comment: models.TranslationComment) -> None:
    _check_from_project(gate, comment)
    gate.enforce(authorize_mutation(gate, comment))
    gate.db.delete(comment)
    gate.db.flush()
