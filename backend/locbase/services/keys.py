from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Sequence, Union

from .. import models
from ..audit import ActivityType
from ..errors import ErrorCode, NotFound, ValidationError
from ..rbac import PermissionGate, Scope
from . import translations as translation_service

# purpose: resolve "set translations for key" requests into find-or-create plus a per-language batch
# status: active

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FoundKey:
    key: models.Key


@dataclass(frozen=True)
class MissingKey:
    name: str
    namespace: str | None


@dataclass(frozen=True)
class CreatedKey:
    key: models.Key


KeyLookup = Union[FoundKey, MissingKey]


@dataclass
class UpsertResult:
    key: models.Key
    translations: dict[str, models.Translation]
    activity: str
    modified_tags: list[str] = field(default_factory=list)


def normalize_namespace(namespace: str | None) -> str | None:
    if namespace is None:
        return None
    namespace = namespace.strip()
    return namespace or None


def find_key(gate: PermissionGate, name: str, namespace: str | None) -> models.Key | None:
    query = gate.db.query(models.Key).filter(
        models.Key.project_id == gate.project.id,
        models.Key.name == name,
    )
    namespace = normalize_namespace(namespace)
    if namespace is None:
        query = query.filter(models.Key.namespace.is_(None))
    else:
        query = query.filter(models.Key.namespace == namespace)
    return query.first()


def get_key(gate: PermissionGate, name: str, namespace: str | None) -> models.Key:
    key = find_key(gate, name, namespace)
    if key is None:
        raise NotFound(ErrorCode.KEY_NOT_FOUND, params={"key": name, "namespace": namespace})
    return key


def lookup_key(gate: PermissionGate, name: str, namespace: str | None) -> KeyLookup:
    key = find_key(gate, name, namespace)
    if key is None:
        return MissingKey(name=name, namespace=normalize_namespace(namespace))
    return FoundKey(key)


def required_scopes(lookup: KeyLookup) -> tuple[Scope, ...]:
    """Scopes needed to set translations, decided by whether the key exists yet."""

    if isinstance(lookup, MissingKey):
        return (Scope.TRANSLATIONS_EDIT, Scope.KEYS_EDIT)
    return (Scope.TRANSLATIONS_EDIT,)


def _insert_key(gate: PermissionGate, name: str, namespace: str | None) -> CreatedKey:
    key = models.Key(project_id=gate.project.id, name=name, namespace=normalize_namespace(namespace))
    gate.db.add(key)
    gate.db.flush()
    logger.info("Created key %r (namespace %r) in project %s", name, key.namespace, gate.project.id)
    return CreatedKey(key)


def create_key(gate: PermissionGate, name: str, namespace: str | None = None) -> models.Key:
    gate.require(Scope.KEYS_CREATE)
    if find_key(gate, name, namespace) is not None:
        raise ValidationError(ErrorCode.KEY_EXISTS, params={"key": name, "namespace": namespace})
    return _insert_key(gate, name, namespace).key


def shape_translations(
    gate: PermissionGate,
    key: models.Key,
    modified: dict[str, models.Translation],
    languages_to_return: Sequence[str] | None,
) -> dict[str, models.Translation]:
    """Pick the translations to report back.

    Without a filter the modified set is returned as is. With one, the key's
    translations are returned for the listed tags, in the listed order.
    """

    if languages_to_return is None:
        return modified
    by_tag = {translation.language.tag: translation for translation in key.translations}
    visible = gate.filter_viewable_tags(languages_to_return)
    return {tag: by_tag[tag] for tag in visible if tag in by_tag}


def set_translations(
    gate: PermissionGate,
    name: str,
    namespace: str | None,
    texts: Mapping[str, str | None],
    languages_to_return: Sequence[str] | None = None,
) -> UpsertResult:
    """Set translations of an existing key; a missing key is an error."""

    gate.require(Scope.TRANSLATIONS_EDIT)
    key = get_key(gate, name, namespace)
    modified = translation_service.set_for_key(gate, key, texts)
    return UpsertResult(
        key=key,
        translations=shape_translations(gate, key, modified, languages_to_return),
        activity=ActivityType.SET_TRANSLATIONS,
        modified_tags=list(modified),
    )


def create_or_update(
    gate: PermissionGate,
    name: str,
    namespace: str | None,
    texts: Mapping[str, str | None],
    languages_to_return: Sequence[str] | None = None,
) -> UpsertResult:
    """Set translations for a key, creating the key first when it does not exist.

    All permission checks run before the key row or any translation is written.
    """

    lookup = lookup_key(gate, name, namespace)
    for scope in required_scopes(lookup):
        gate.require(scope)
    gate.require_translate_tags(texts.keys())

    if isinstance(lookup, MissingKey):
        outcome: FoundKey | CreatedKey = _insert_key(gate, lookup.name, lookup.namespace)
    else:
        outcome = lookup

    modified = translation_service.set_for_key(gate, outcome.key, texts)
    created = isinstance(outcome, CreatedKey)
    return UpsertResult(
        key=outcome.key,
        translations=shape_translations(gate, outcome.key, modified, languages_to_return),
        activity=ActivityType.CREATE_KEY if created else ActivityType.SET_TRANSLATIONS,
        modified_tags=list(modified),
    )
