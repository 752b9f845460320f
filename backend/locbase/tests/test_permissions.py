import uuid
from types import SimpleNamespace

import pytest

from .conftest import client, owner, project, register, grant, create_project, set_translations
from locbase.auth import Principal
from locbase.errors import ErrorCode, PermissionDenied
from locbase.rbac import (
    Authorized,
    ComputedPermission,
    Denied,
    PERMISSION_TYPE_SCOPES,
    PermissionGate,
    Scope,
)


def _gate(permission_type="VIEW", user_id=None, **restrictions):
    user = SimpleNamespace(id=user_id or uuid.uuid4(), is_admin=False)
    project = SimpleNamespace(id=uuid.uuid4(), organization_id=None)
    permission = ComputedPermission(
        type=permission_type, scopes=PERMISSION_TYPE_SCOPES[permission_type], **restrictions
    )
    return PermissionGate(None, Principal(user=user), project, permission=permission)


def test_permission_types_are_cumulative():
    order = ["NONE", "VIEW", "TRANSLATE", "REVIEW", "EDIT", "MANAGE"]
    for lower, higher in zip(order, order[1:]):
        assert PERMISSION_TYPE_SCOPES[lower] <= PERMISSION_TYPE_SCOPES[higher]
    assert Scope.KEYS_CREATE not in PERMISSION_TYPE_SCOPES["TRANSLATE"]
    assert Scope.TRANSLATIONS_COMMENTS_SET_STATE in PERMISSION_TYPE_SCOPES["REVIEW"]


def test_owner_is_authorized_before_scope():
    author_id = uuid.uuid4()
    gate = _gate("VIEW", user_id=author_id)
    comment = SimpleNamespace(author_id=author_id)
    assert gate.authorize_owner_or_scope(comment, Scope.TRANSLATIONS_COMMENTS_EDIT) == Authorized(via="owner")


def test_non_owner_without_scope_is_denied():
    gate = _gate("TRANSLATE")
    comment = SimpleNamespace(author_id=uuid.uuid4())
    result = gate.authorize_owner_or_scope(comment, Scope.TRANSLATIONS_COMMENTS_EDIT)
    assert isinstance(result, Denied)
    assert result.reason == ErrorCode.CAN_EDIT_ONLY_OWN_COMMENT
    with pytest.raises(PermissionDenied) as exc:
        gate.enforce(result)
    assert exc.value.error_code == ErrorCode.CAN_EDIT_ONLY_OWN_COMMENT


def test_non_owner_with_scope_is_authorized():
    gate = _gate("EDIT")
    comment = SimpleNamespace(author_id=uuid.uuid4())
    assert gate.authorize_owner_or_scope(comment, Scope.TRANSLATIONS_COMMENTS_EDIT) == Authorized()


def test_language_restrictions():
    en, de = uuid.uuid4(), uuid.uuid4()
    gate = _gate(
        "REVIEW",
        view_language_ids=frozenset(),
        translate_language_ids=frozenset({en}),
        state_change_language_ids=frozenset({de}),
    )
    permission = gate.permission
    assert permission.can_translate_language(en)
    assert not permission.can_translate_language(de)
    assert permission.can_change_state_language(de)
    assert not permission.can_change_state_language(en)
    # editable languages are visible as well
    assert permission.can_view_language(en)
    assert permission.can_view_language(de)
    assert not permission.can_view_language(uuid.uuid4())


def test_admin_scope_implies_everything():
    permission = ComputedPermission(type="MANAGE", scopes=frozenset({Scope.ADMIN}))
    assert all(permission.has(scope) for scope in Scope)


def test_unknown_project_is_not_found(client, owner):
    headers, _ = owner
    resp = client.get(f"/api/projects/{uuid.uuid4()}", headers=headers)
    assert resp.status_code == 404
    assert resp.json()["code"] == "PROJECT_NOT_FOUND"
    assert resp.json()["kind"] == "NotFound"


def test_stranger_is_denied(client, project):
    proj, _ = project
    stranger_headers, _ = register(client)
    resp = client.get(f"/api/projects/{proj['id']}", headers=stranger_headers)
    assert resp.status_code == 403
    assert resp.json()["code"] == "OPERATION_NOT_PERMITTED"


def test_unauthenticated_requests_are_rejected(client, project):
    proj, _ = project
    assert client.get(f"/api/projects/{proj['id']}").status_code == 401
    assert client.get(f"/api/projects/{proj['id']}", headers={"X-API-Key": "lb_nope"}).status_code == 401


def test_viewer_cannot_write(client, owner, project):
    headers, _ = owner
    proj, _ = project
    set_translations(client, headers, proj["id"], "ro", {"en": "Read only"})
    viewer_headers, viewer_id = register(client)
    grant(client, headers, proj["id"], viewer_id, "VIEW")

    resp = set_translations(client, viewer_headers, proj["id"], "ro", {"en": "Changed"})
    assert resp.status_code == 403
    assert resp.json()["params"]["scope"] == "translations.edit"
    export = client.get(f"/api/projects/{proj['id']}/translations/en", headers=viewer_headers)
    assert export.json()["en"] == {"ro": "Read only"}


def test_permission_languages_must_belong_to_project(client, owner, project):
    headers, _ = owner
    proj, _ = project
    _, other_langs = create_project(client, headers, languages=(("it", "Italian"),))
    _, user_id = register(client)
    resp = client.put(
        f"/api/projects/{proj['id']}/permissions",
        json={"user_id": user_id, "type": "TRANSLATE", "translate_language_ids": [other_langs["it"]["id"]]},
        headers=headers,
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "LANGUAGE_NOT_FROM_PROJECT"


def test_only_managers_set_permissions(client, owner, project):
    headers, _ = owner
    proj, _ = project
    editor_headers, editor_id = register(client)
    grant(client, headers, proj["id"], editor_id, "EDIT")
    _, other_id = register(client)
    resp = client.put(
        f"/api/projects/{proj['id']}/permissions",
        json={"user_id": other_id, "type": "MANAGE"},
        headers=editor_headers,
    )
    assert resp.status_code == 403
