from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from .. import freshness, models
from ..audit import ActivityType
from ..errors import ErrorCode, NotFound, ValidationError
from ..rbac import PermissionGate, Scope
from ..schemas import AssignableTranslationState, TranslationState

# purpose: translation text/state transitions, their history rows and the export view
# inputs: a PermissionGate bound to (session, principal, project) plus entity references
# outputs: mutated Translation rows; the project watermark is advanced once per operation
# status: active

logger = logging.getLogger(__name__)


def get_translation(gate: PermissionGate, translation_id: UUID) -> models.Translation:
    translation = gate.db.get(models.Translation, translation_id)
    if translation is None:
        raise NotFound(ErrorCode.TRANSLATION_NOT_FOUND, params={"translation_id": translation_id})
    gate.check_translation(translation)
    return translation


def apply_text(
    translation: models.Translation,
    text: str | None,
    *,
    machine: bool = False,
    provider: str | None = None,
) -> bool:
    """Apply a text write to ``translation`` and return whether the text changed.

    Human writes always clear the auto-translated mark; machine writes set it.
    """

    normalized = text if text else None
    changed = translation.text != normalized
    if changed:
        translation.outdated = False
    translation.auto_translated = machine
    translation.mt_provider = provider if machine else None
    translation.text = normalized

    if normalized is None:
        translation.state = TranslationState.UNTRANSLATED.value
    elif translation.state in (None, TranslationState.UNTRANSLATED.value):
        translation.state = TranslationState.TRANSLATED.value
    elif changed and translation.state == TranslationState.REVIEWED.value:
        translation.state = TranslationState.TRANSLATED.value
    return changed


def _find(db: Session, key: models.Key, language: models.Language) -> models.Translation | None:
    return (
        db.query(models.Translation)
        .filter(models.Translation.key_id == key.id, models.Translation.language_id == language.id)
        .first()
    )


def _new_translation(db: Session, key: models.Key, language: models.Language) -> models.Translation:
    translation = models.Translation(
        key=key,
        language=language,
        text=None,
        state=TranslationState.UNTRANSLATED.value,
        outdated=False,
        auto_translated=False,
    )
    db.add(translation)
    return translation


def _record_history(gate: PermissionGate, translation: models.Translation, activity: str) -> None:
    gate.db.add(
        models.TranslationHistory(
            translation=translation,
            project_id=gate.project.id,
            author_id=gate.principal.id,
            activity=activity,
            text=translation.text,
            state=translation.state,
            outdated=bool(translation.outdated),
            auto_translated=bool(translation.auto_translated),
            timestamp=datetime.now(timezone.utc),
        )
    )


def _mark_dependents_outdated(
    gate: PermissionGate,
    key: models.Key,
    written: Iterable[models.Translation],
    changed_language_ids: Iterable[UUID],
) -> list[models.Translation]:
    """Flag other languages of ``key`` outdated when its base-language text changed.

    Translations written in the same batch are skipped; new ones are not
    flushed yet, so they are matched by identity rather than language id.
    """

    base_language_id = gate.project.base_language_id
    if base_language_id is None or base_language_id not in set(changed_language_ids):
        return []
    written = set(written)
    marked = []
    for translation in key.translations:
        if translation in written or translation.text is None or translation.outdated:
            continue
        translation.outdated = True
        _record_history(gate, translation, ActivityType.SET_TRANSLATIONS)
        marked.append(translation)
    return marked


def set_for_key(
    gate: PermissionGate,
    key: models.Key,
    texts: Mapping[str, str | None],
    *,
    machine: bool = False,
    provider: str | None = None,
) -> dict[str, models.Translation]:
    """Set texts for several languages of one key as a single unit.

    Every tag is resolved and permission-checked before the first row is
    touched; the watermark moves once for the whole batch.
    """

    gate.check_from_project(key.project_id, ErrorCode.KEY_NOT_FROM_PROJECT, key.id)
    languages = gate.require_translate_tags(texts.keys())

    result: dict[str, models.Translation] = {}
    changed_language_ids = []
    for tag, text in texts.items():
        language = languages[tag]
        translation = _find(gate.db, key, language) or _new_translation(gate.db, key, language)
        if apply_text(translation, text, machine=machine, provider=provider):
            changed_language_ids.append(language.id)
        _record_history(gate, translation, ActivityType.SET_TRANSLATIONS)
        result[tag] = translation

    _mark_dependents_outdated(gate, key, result.values(), changed_language_ids)
    gate.db.flush()
    logger.debug("Set %d translation(s) of key %s, %d changed", len(result), key.id, len(changed_language_ids))
    freshness.touch(gate.db, gate.project.id)
    return result


def set_text(
    gate: PermissionGate,
    translation: models.Translation,
    text: str | None,
    *,
    machine: bool = False,
    provider: str | None = None,
) -> models.Translation:
    gate.check_translation(translation)
    return set_for_key(
        gate,
        translation.key,
        {translation.language.tag: text},
        machine=machine,
        provider=provider,
    )[translation.language.tag]


def parse_assignable_state(value: Any) -> AssignableTranslationState:
    try:
        return AssignableTranslationState(value)
    except ValueError:
        raise ValidationError(
            ErrorCode.INVALID_TRANSLATION_STATE,
            params={"state": value, "allowed": [s.value for s in AssignableTranslationState]},
        ) from None


def set_state(gate: PermissionGate, translation: models.Translation, state: Any) -> models.Translation:
    """Assign any state of the assignable set; there is no forbidden-transition table."""

    target = parse_assignable_state(state)
    gate.check_translation(translation)
    gate.require_state_change(translation.language_id)
    translation.state = target.translation_state.value
    _record_history(gate, translation, ActivityType.SET_TRANSLATION_STATE)
    gate.db.flush()
    freshness.touch(gate.db, gate.project.id)
    return translation


def dismiss_auto_translated(gate: PermissionGate, translation: models.Translation) -> models.Translation:
    gate.check_translation(translation)
    gate.require_state_change(translation.language_id)
    translation.auto_translated = False
    translation.mt_provider = None
    _record_history(gate, translation, ActivityType.DISMISS_AUTO_TRANSLATED_STATE)
    gate.db.flush()
    freshness.touch(gate.db, gate.project.id)
    return translation


def set_outdated(gate: PermissionGate, translation: models.Translation, flag: bool) -> models.Translation:
    gate.check_translation(translation)
    gate.require(Scope.TRANSLATIONS_STATE_EDIT)
    translation.outdated = bool(flag)
    _record_history(gate, translation, ActivityType.SET_OUTDATED_FLAG)
    gate.db.flush()
    freshness.touch(gate.db, gate.project.id)
    return translation


def get_or_create_empty(
    gate: PermissionGate,
    key: models.Key,
    language: models.Language,
) -> tuple[models.Translation, bool]:
    """Return the (key, language) translation, storing an empty UNTRANSLATED one if absent."""

    gate.check_from_project(key.project_id, ErrorCode.KEY_NOT_FROM_PROJECT, key.id)
    gate.check_from_project(language.project_id, ErrorCode.LANGUAGE_NOT_FROM_PROJECT, language.id)
    existing = _find(gate.db, key, language)
    if existing is not None:
        return existing, False
    translation = _new_translation(gate.db, key, language)
    gate.db.flush()
    freshness.touch(gate.db, gate.project.id)
    return translation, True


def list_history(gate: PermissionGate, translation: models.Translation, *, page: int = 0, size: int = 20):
    gate.check_translation(translation)
    gate.require(Scope.TRANSLATIONS_VIEW)
    gate.require_language_view(translation.language_id)
    query = gate.db.query(models.TranslationHistory).filter(
        models.TranslationHistory.translation_id == translation.id
    )
    total = query.count()
    items = (
        query.order_by(models.TranslationHistory.timestamp.desc())
        .offset(page * size)
        .limit(size)
        .all()
    )
    return items, total


@dataclass(frozen=True)
class TranslationFilters:
    """Key filters shared by the paged translation view and select-all.

    An empty string in ``namespaces`` stands for the default namespace.
    """

    languages: tuple[str, ...] = ()
    search: str | None = None
    key_names: tuple[str, ...] = ()
    namespaces: tuple[str, ...] = ()


@dataclass
class KeyWithTranslations:
    key: models.Key
    translations: dict[str, models.Translation] = field(default_factory=dict)


@dataclass
class TranslationsView:
    items: list[KeyWithTranslations]
    languages: list[models.Language]
    total: int
    next_cursor: str | None = None


def encode_cursor(key_id: UUID) -> str:
    """Cursor token anchored to the last key of a page; keys are ordered by id."""

    return key_id.hex


def decode_cursor(cursor: str) -> UUID:
    try:
        return UUID(hex=cursor)
    except ValueError as exc:
        raise ValidationError(ErrorCode.INVALID_CURSOR, params={"cursor": cursor}) from exc


def view_languages(gate: PermissionGate, tags: Iterable[str]) -> list[models.Language]:
    """Languages shown by the translation view: the requested tags, or every
    project language when none are given, minus those the caller cannot view.

    Without explicit tags the base language comes first.
    """

    languages = (
        gate.db.query(models.Language)
        .filter(models.Language.project_id == gate.project.id)
        .order_by(models.Language.tag)
        .all()
    )
    wanted = list(dict.fromkeys(tags))
    if wanted:
        by_tag = {language.tag: language for language in languages}
        languages = [by_tag[tag] for tag in wanted if tag in by_tag]
    else:
        languages.sort(key=lambda language: language.id != gate.project.base_language_id)
    return [language for language in languages if gate.permission.can_view_language(language.id)]


def _filtered_keys(gate: PermissionGate, filters: TranslationFilters, languages: list[models.Language]):
    query = gate.db.query(models.Key).filter(models.Key.project_id == gate.project.id)
    if filters.key_names:
        query = query.filter(models.Key.name.in_(filters.key_names))
    if filters.namespaces:
        named = [namespace for namespace in filters.namespaces if namespace.strip()]
        clauses = []
        if named:
            clauses.append(models.Key.namespace.in_(named))
        if len(named) < len(filters.namespaces):
            clauses.append(models.Key.namespace.is_(None))
        query = query.filter(or_(*clauses))
    if filters.search:
        pattern = f"%{filters.search}%"
        # text matches only count in languages the caller sees
        matching_text = select(models.Translation.key_id).where(
            models.Translation.language_id.in_([language.id for language in languages]),
            models.Translation.text.ilike(pattern),
        )
        query = query.filter(or_(models.Key.name.ilike(pattern), models.Key.id.in_(matching_text)))
    return query


def list_keys_with_translations(
    gate: PermissionGate,
    filters: TranslationFilters,
    *,
    page: int = 0,
    size: int = 20,
    cursor: str | None = None,
) -> TranslationsView:
    """Page through the project's keys ordered by id, each with its translations
    in the viewable languages.

    A cursor from a previous page continues after its last key and overrides
    ``page``. Every non-empty page hands out the cursor for the next one.
    """

    gate.require(Scope.TRANSLATIONS_VIEW)
    languages = view_languages(gate, filters.languages)
    query = _filtered_keys(gate, filters, languages)
    total = query.count()

    query = query.order_by(models.Key.id)
    if cursor:
        query = query.filter(models.Key.id > decode_cursor(cursor))
    else:
        query = query.offset(page * size)
    keys = query.limit(size).all()

    by_key: dict[UUID, dict[UUID, models.Translation]] = {}
    if keys and languages:
        rows = (
            gate.db.query(models.Translation)
            .filter(
                models.Translation.key_id.in_([key.id for key in keys]),
                models.Translation.language_id.in_([language.id for language in languages]),
            )
            .all()
        )
        for translation in rows:
            by_key.setdefault(translation.key_id, {})[translation.language_id] = translation

    items = []
    for key in keys:
        found = by_key.get(key.id, {})
        items.append(
            KeyWithTranslations(
                key=key,
                translations={language.tag: found[language.id] for language in languages if language.id in found},
            )
        )
    return TranslationsView(
        items=items,
        languages=languages,
        total=total,
        next_cursor=encode_cursor(keys[-1].id) if keys else None,
    )


def select_all_key_ids(gate: PermissionGate, filters: TranslationFilters) -> list[UUID]:
    gate.require(Scope.KEYS_VIEW)
    languages = view_languages(gate, filters.languages)
    query = _filtered_keys(gate, filters, languages).with_entities(models.Key.id)
    return [key_id for (key_id,) in query.order_by(models.Key.id).all()]


def resolve_delimiter(raw: str | None) -> str | None:
    """``None`` means the default ``.``; an empty string asks for a flat export."""

    if raw is None:
        return "."
    if raw == "":
        return None
    if len(raw) != 1:
        raise ValidationError(ErrorCode.INVALID_STRUCTURE_DELIMITER, params={"structureDelimiter": raw})
    return raw


def _put(target: dict, name: str, value: str, delimiter: str | None) -> None:
    if not delimiter or delimiter not in name:
        target[name] = value
        return
    node = target
    parts = name.split(delimiter)
    for part in parts[:-1]:
        child = node.setdefault(part, {})
        if not isinstance(child, dict):
            # a plain value already sits on the path; keep this key flat
            target[name] = value
            return
        node = child
    if isinstance(node.get(parts[-1]), dict):
        target[name] = value
        return
    node[parts[-1]] = value


def export_translations(
    gate: PermissionGate,
    language_tags: Iterable[str],
    *,
    namespace: str | None = None,
    delimiter: str | None = ".",
) -> dict[str, dict]:
    """Return ``{tag: {key: text}}`` for the tags the caller may view.

    Tags the caller cannot view are dropped silently. With a delimiter, key
    names are split into nested objects.
    """

    tags = gate.filter_viewable_tags(language_tags)
    result: dict[str, dict] = {tag: {} for tag in tags}
    if not tags:
        return result

    query = (
        gate.db.query(models.Key.name, models.Language.tag, models.Translation.text)
        .join(models.Translation, models.Translation.key_id == models.Key.id)
        .join(models.Language, models.Translation.language_id == models.Language.id)
        .filter(
            models.Key.project_id == gate.project.id,
            models.Language.tag.in_(tags),
            models.Translation.text.isnot(None),
        )
    )
    if namespace:
        query = query.filter(models.Key.namespace == namespace)
    else:
        query = query.filter(models.Key.namespace.is_(None))

    for name, tag, text in query.order_by(models.Key.name).all():
        _put(result[tag], name, text, delimiter)
    return result

