from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Union
from uuid import UUID

from fastapi import Depends
from sqlalchemy.orm import Session

from . import models
from .auth import Principal, get_current_principal
from .database import get_db
from .errors import CrossProjectReference, ErrorCode, NotFound, PermissionDenied

# purpose: resolve per-project scopes for users and API keys and gate every mutation on them
# status: active

logger = logging.getLogger(__name__)


class Scope(str, Enum):
    TRANSLATIONS_VIEW = "translations.view"
    TRANSLATIONS_EDIT = "translations.edit"
    TRANSLATIONS_STATE_EDIT = "translations.state-edit"
    TRANSLATIONS_COMMENTS_ADD = "translation-comments.add"
    TRANSLATIONS_COMMENTS_EDIT = "translation-comments.edit"
    TRANSLATIONS_COMMENTS_SET_STATE = "translation-comments.set-state"
    KEYS_VIEW = "keys.view"
    KEYS_CREATE = "keys.create"
    KEYS_EDIT = "keys.edit"
    LANGUAGES_EDIT = "languages.edit"
    MEMBERS_EDIT = "members.edit"
    ACTIVITY_VIEW = "activity.view"
    ADMIN = "admin"


_VIEW_SCOPES = frozenset({Scope.TRANSLATIONS_VIEW, Scope.KEYS_VIEW, Scope.ACTIVITY_VIEW})
_TRANSLATE_SCOPES = _VIEW_SCOPES | {Scope.TRANSLATIONS_EDIT, Scope.TRANSLATIONS_COMMENTS_ADD}
_REVIEW_SCOPES = _TRANSLATE_SCOPES | {Scope.TRANSLATIONS_STATE_EDIT, Scope.TRANSLATIONS_COMMENTS_SET_STATE}
_EDIT_SCOPES = _REVIEW_SCOPES | {Scope.KEYS_CREATE, Scope.KEYS_EDIT, Scope.TRANSLATIONS_COMMENTS_EDIT}

PERMISSION_TYPE_SCOPES: dict[str, frozenset[Scope]] = {
    "NONE": frozenset(),
    "VIEW": _VIEW_SCOPES,
    "TRANSLATE": frozenset(_TRANSLATE_SCOPES),
    "REVIEW": frozenset(_REVIEW_SCOPES),
    "EDIT": frozenset(_EDIT_SCOPES),
    "MANAGE": frozenset(Scope),
}


@dataclass(frozen=True)
class ComputedPermission:
    """Scopes a principal holds in one project, with optional language restrictions.

    A language restriction of ``None`` means every language of the project.
    """

    type: str
    scopes: frozenset[Scope] = frozenset()
    view_language_ids: frozenset[UUID] | None = None
    translate_language_ids: frozenset[UUID] | None = None
    state_change_language_ids: frozenset[UUID] | None = None

    def has(self, scope: Scope) -> bool:
        return scope in self.scopes or Scope.ADMIN in self.scopes

    def can_view_language(self, language_id: UUID) -> bool:
        if not self.has(Scope.TRANSLATIONS_VIEW):
            return False
        if self.view_language_ids is None:
            return True
        # anything one may edit is also visible
        return (
            language_id in self.view_language_ids
            or self.can_translate_language(language_id)
            or self.can_change_state_language(language_id)
        )

    def can_translate_language(self, language_id: UUID) -> bool:
        if not self.has(Scope.TRANSLATIONS_EDIT):
            return False
        return self.translate_language_ids is None or language_id in self.translate_language_ids

    def can_change_state_language(self, language_id: UUID) -> bool:
        if not self.has(Scope.TRANSLATIONS_STATE_EDIT):
            return False
        return self.state_change_language_ids is None or language_id in self.state_change_language_ids


NO_PERMISSION = ComputedPermission(type="NONE")


@dataclass(frozen=True)
class Authorized:
    via: str = "scope"


@dataclass(frozen=True)
class Denied:
    reason: ErrorCode
    required_scope: Scope | None = None
    params: dict = field(default_factory=dict)


AuthorizationResult = Union[Authorized, Denied]


def parse_scopes(values: Iterable[str]) -> frozenset[Scope]:
    parsed = set()
    for value in values or ():
        try:
            parsed.add(Scope(value))
        except ValueError:
            logger.warning("Ignoring unknown scope %r", value)
    return frozenset(parsed)


def _language_restriction(values) -> frozenset[UUID] | None:
    if not values:
        return None
    return frozenset(UUID(str(value)) for value in values)


def _from_type(permission_type: str) -> ComputedPermission:
    return ComputedPermission(type=permission_type, scopes=PERMISSION_TYPE_SCOPES.get(permission_type, frozenset()))


def compute_permission(db: Session, principal: Principal, project: models.Project) -> ComputedPermission:
    """Resolve the scopes ``principal`` holds in ``project``.

    Precedence: platform admin, organization owner, direct project permission,
    organization base permission. API keys are then narrowed to the scopes
    stored on the key and only ever work for the key's own project.
    """

    user = principal.user
    permission = _user_permission(db, user, project)
    if principal.api_key is None:
        return permission
    if principal.api_key.project_id != project.id:
        return NO_PERMISSION
    key_scopes = parse_scopes(principal.api_key.scopes)
    return ComputedPermission(
        type=permission.type,
        scopes=permission.scopes & key_scopes if Scope.ADMIN not in permission.scopes else key_scopes,
        view_language_ids=permission.view_language_ids,
        translate_language_ids=permission.translate_language_ids,
        state_change_language_ids=permission.state_change_language_ids,
    )


def _user_permission(db: Session, user: models.User, project: models.Project) -> ComputedPermission:
    if user.is_admin:
        return _from_type("MANAGE")

    membership = None
    if project.organization_id:
        membership = (
            db.query(models.OrganizationMember)
            .filter(
                models.OrganizationMember.organization_id == project.organization_id,
                models.OrganizationMember.user_id == user.id,
            )
            .first()
        )
        if membership and membership.role == "OWNER":
            return _from_type("MANAGE")

    direct = (
        db.query(models.ProjectPermission)
        .filter(
            models.ProjectPermission.project_id == project.id,
            models.ProjectPermission.user_id == user.id,
        )
        .first()
    )
    if direct is not None:
        if direct.type == "MANAGE":
            return _from_type("MANAGE")
        base = _from_type(direct.type)
        return ComputedPermission(
            type=base.type,
            scopes=base.scopes,
            view_language_ids=_language_restriction(direct.view_language_ids),
            translate_language_ids=_language_restriction(direct.translate_language_ids),
            state_change_language_ids=_language_restriction(direct.state_change_language_ids),
        )

    if membership is not None:
        return _from_type(project.organization.base_permission or "VIEW")
    return NO_PERMISSION


class PermissionGate:
    """Authorization decisions for one principal acting inside one project."""

    def __init__(
        self,
        db: Session,
        principal: Principal,
        project: models.Project,
        permission: ComputedPermission | None = None,
    ):
        self.db = db
        self.principal = principal
        self.project = project
        self._permission = permission

    @property
    def permission(self) -> ComputedPermission:
        if self._permission is None:
            self._permission = compute_permission(self.db, self.principal, self.project)
        return self._permission

    def can_view(self, scope_hint: Scope = Scope.TRANSLATIONS_VIEW) -> bool:
        return self.permission.has(scope_hint)

    def can_mutate(self, required_scope: Scope) -> bool:
        return self.permission.has(required_scope)

    def is_owner(self, resource) -> bool:
        author_id = getattr(resource, "author_id", None)
        return author_id is not None and author_id == self.principal.id

    def authorize(self, required_scope: Scope) -> AuthorizationResult:
        if self.can_mutate(required_scope):
            return Authorized()
        return Denied(ErrorCode.OPERATION_NOT_PERMITTED, required_scope, {"scope": required_scope.value})

    def authorize_owner_or_scope(self, resource, required_scope: Scope) -> AuthorizationResult:
        """Authors pass without the scope; everyone else needs it."""

        if self.is_owner(resource):
            return Authorized(via="owner")
        if self.can_mutate(required_scope):
            return Authorized()
        return Denied(ErrorCode.CAN_EDIT_ONLY_OWN_COMMENT, required_scope, {"scope": required_scope.value})

    def enforce(self, result: AuthorizationResult) -> None:
        if isinstance(result, Authorized):
            return
        logger.warning(
            "Denied %s for principal %s in project %s (missing %s)",
            result.reason.value,
            self.principal.id,
            self.project.id,
            result.required_scope.value if result.required_scope else "-",
        )
        raise PermissionDenied(result.reason, params=result.params)

    def require(self, required_scope: Scope) -> None:
        self.enforce(self.authorize(required_scope))

    def check_from_project(self, project_id: UUID, code: ErrorCode, entity_id: UUID | None = None) -> None:
        if project_id != self.project.id:
            raise CrossProjectReference(code, params={"id": entity_id, "project_id": self.project.id})

    def check_translation(self, translation: models.Translation) -> None:
        self.check_from_project(translation.key.project_id, ErrorCode.TRANSLATION_NOT_FROM_PROJECT, translation.id)

    def require_language_view(self, language_id: UUID) -> None:
        if not self.permission.can_view_language(language_id):
            raise PermissionDenied(ErrorCode.LANGUAGE_NOT_PERMITTED, params={"language_id": language_id})

    def require_state_change(self, language_id: UUID) -> None:
        self.require(Scope.TRANSLATIONS_STATE_EDIT)
        if not self.permission.can_change_state_language(language_id):
            raise PermissionDenied(ErrorCode.LANGUAGE_NOT_PERMITTED, params={"language_id": language_id})

    def require_translate_tags(self, tags: Iterable[str]) -> dict[str, models.Language]:
        """Resolve ``tags`` to project languages and check edit permission for all of them.

        Nothing is written here; callers apply their changes only after this
        returns, so a single forbidden tag leaves every translation untouched.
        """

        self.require(Scope.TRANSLATIONS_EDIT)
        wanted = list(dict.fromkeys(tags))
        languages = {
            language.tag: language
            for language in self.db.query(models.Language)
            .filter(models.Language.project_id == self.project.id, models.Language.tag.in_(wanted))
            .all()
        }
        missing = [tag for tag in wanted if tag not in languages]
        if missing:
            raise NotFound(ErrorCode.LANGUAGE_NOT_FOUND, params={"tags": missing})
        forbidden = [tag for tag in wanted if not self.permission.can_translate_language(languages[tag].id)]
        if forbidden:
            logger.warning("Principal %s may not translate %s in project %s", self.principal.id, forbidden, self.project.id)
            raise PermissionDenied(ErrorCode.LANGUAGE_NOT_PERMITTED, params={"tags": forbidden})
        return languages

    def filter_viewable_tags(self, tags: Iterable[str]) -> list[str]:
        if not self.can_view():
            return []
        wanted = list(dict.fromkeys(tags))
        languages = (
            self.db.query(models.Language)
            .filter(models.Language.project_id == self.project.id, models.Language.tag.in_(wanted))
            .all()
        )
        permitted = {language.tag for language in languages if self.permission.can_view_language(language.id)}
        return [tag for tag in wanted if tag in permitted]


def get_project_gate(
    project_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> PermissionGate:
    project = db.get(models.Project, project_id)
    if project is None:
        raise NotFound(ErrorCode.PROJECT_NOT_FOUND, params={"project_id": project_id})
    gate = PermissionGate(db, principal, project)
    if not gate.permission.scopes:
        raise PermissionDenied(params={"project_id": project_id})
    return gate
