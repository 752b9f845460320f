from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .. import audit, freshness, schemas
from ..audit import ActivityType
from ..database import get_db
from ..rbac import PermissionGate, Scope, get_project_gate
from ..services import keys as key_service
from ..services import translations as translation_service
from ..services.keys import UpsertResult

router = APIRouter(prefix="/api/projects", tags=["translations"])


def _set_response(result: UpsertResult) -> schemas.SetTranslationsResponse:
    return schemas.SetTranslationsResponse(
        key_id=result.key.id,
        key_name=result.key.name,
        key_namespace=result.key.namespace,
        translations={
            tag: schemas.TranslationOut.model_validate(translation)
            for tag, translation in result.translations.items()
        },
    )


def _log_set(db: Session, gate: PermissionGate, result: UpsertResult) -> None:
    audit.log_action(
        db,
        gate.principal,
        result.activity,
        gate.project.id,
        "key",
        result.key.id,
        {"languages": result.modified_tags, "key": result.key.name, "namespace": result.key.namespace},
    )


@router.get("/{project_id}/translations/{translation_id:uuid}", response_model=schemas.TranslationOut)
def get_translation(
    translation_id: UUID,
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    translation = translation_service.get_translation(gate, translation_id)
    gate.require(Scope.TRANSLATIONS_VIEW)
    gate.require_language_view(translation.language_id)
    return translation


@router.get("/{project_id}/translations/{translation_id:uuid}/history", response_model=schemas.Page[schemas.TranslationHistoryOut])
def get_translation_history(
    translation_id: UUID,
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=1000),
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    translation = translation_service.get_translation(gate, translation_id)
    items, total = translation_service.list_history(gate, translation, page=page, size=size)
    return schemas.Page[schemas.TranslationHistoryOut](
        items=[schemas.TranslationHistoryOut.model_validate(item) for item in items],
        page=page,
        size=size,
        total=total,
    )


def _filters(
    languages: list[str] = Query([]),
    search: str | None = Query(None),
    filter_key_name: list[str] = Query([]),
    filter_namespace: list[str] = Query([]),
) -> translation_service.TranslationFilters:
    return translation_service.TranslationFilters(
        languages=tuple(languages),
        search=search or None,
        key_names=tuple(filter_key_name),
        namespaces=tuple(filter_namespace),
    )


@router.get("/{project_id}/translations", response_model=schemas.KeysWithTranslationsPage)
def list_translations(
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=1000),
    cursor: str | None = Query(None),
    filters: translation_service.TranslationFilters = Depends(_filters),
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    view = translation_service.list_keys_with_translations(gate, filters, page=page, size=size, cursor=cursor)
    return schemas.KeysWithTranslationsPage(
        items=[
            schemas.KeyWithTranslationsOut(
                key_id=item.key.id,
                key_name=item.key.name,
                key_namespace=item.key.namespace,
                translations={
                    tag: schemas.TranslationOut.model_validate(translation)
                    for tag, translation in item.translations.items()
                },
            )
            for item in view.items
        ],
        page=page,
        size=size,
        total=view.total,
        selected_languages=[schemas.LanguageOut.model_validate(language) for language in view.languages],
        next_cursor=view.next_cursor,
    )


# registered before the export route, which would take "select-all" as a language list
@router.get("/{project_id}/translations/select-all", response_model=schemas.SelectAllResponse)
def select_all_keys(
    filters: translation_service.TranslationFilters = Depends(_filters),
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    return schemas.SelectAllResponse(ids=translation_service.select_all_key_ids(gate, filters))


@router.get("/{project_id}/translations/{languages}")
def export_translations(
    languages: str,
    request: Request,
    ns: str | None = Query(""),
    structure_delimiter: str | None = Query(None, alias="structureDelimiter"),
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    """Return all translations for comma-separated language tags.

    Tags the caller may not view are dropped. Answers 304 when the client's
    copy is not older than the project's last modification.
    """

    delimiter = translation_service.resolve_delimiter(structure_delimiter)
    watermark = freshness.get(db, gate.project.id)
    db.commit()
    headers = {
        "Last-Modified": freshness.to_http_date(watermark),
        "Cache-Control": "max-age=0",
    }
    if freshness.is_not_modified(watermark, request.headers.get("if-modified-since")):
        return Response(status_code=304, headers=headers)

    tags = [tag.strip() for tag in languages.split(",") if tag.strip()]
    data = translation_service.export_translations(gate, tags, namespace=ns or None, delimiter=delimiter)
    return JSONResponse(content=data, headers=headers)


@router.put("/{project_id}/translations", response_model=schemas.SetTranslationsResponse)
def set_translations(
    payload: schemas.SetTranslationsWithKey,
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    result = key_service.set_translations(
        gate,
        payload.key,
        payload.namespace,
        payload.translations,
        payload.languages_to_return,
    )
    _log_set(db, gate, result)
    db.commit()
    return _set_response(result)


@router.post("/{project_id}/translations", response_model=schemas.SetTranslationsResponse)
def create_or_update_translations(
    payload: schemas.SetTranslationsWithKey,
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    result = key_service.create_or_update(
        gate,
        payload.key,
        payload.namespace,
        payload.translations,
        payload.languages_to_return,
    )
    _log_set(db, gate, result)
    db.commit()
    return _set_response(result)


@router.put("/{project_id}/translations/{translation_id}/set-state/{state}", response_model=schemas.TranslationOut)
def set_translation_state(
    translation_id: UUID,
    state: str,
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    translation = translation_service.get_translation(gate, translation_id)
    translation_service.set_state(gate, translation, state)
    audit.log_action(
        db, gate.principal, ActivityType.SET_TRANSLATION_STATE, gate.project.id, "translation", translation.id, {"state": state}
    )
    db.commit()
    db.refresh(translation)
    return translation


@router.put("/{project_id}/translations/{translation_id}/dismiss-auto-translated-state", response_model=schemas.TranslationOut)
def dismiss_auto_translated_state(
    translation_id: UUID,
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    translation = translation_service.get_translation(gate, translation_id)
    translation_service.dismiss_auto_translated(gate, translation)
    audit.log_action(
        db, gate.principal, ActivityType.DISMISS_AUTO_TRANSLATED_STATE, gate.project.id, "translation", translation.id
    )
    db.commit()
    db.refresh(translation)
    return translation


@router.put("/{project_id}/translations/{translation_id}/set-outdated-flag/{state}", response_model=schemas.TranslationOut)
def set_outdated_flag(
    translation_id: UUID,
    state: bool,
    db: Session = Depends(get_db),
    gate: PermissionGate = Depends(get_project_gate),
):
    translation = translation_service.get_translation(gate, translation_id)
    translation_service.set_outdated(gate, translation, state)
    audit.log_action(
        db, gate.principal, ActivityType.SET_OUTDATED_FLAG, gate.project.id, "translation", translation.id, {"outdated": state}
    )
    db.commit()
    db.refresh(translation)
    return translation
