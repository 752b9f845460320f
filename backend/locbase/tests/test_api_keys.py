from .conftest import client, owner, project, register, grant, create_project, set_translations


def _api_key(client, headers, project_id, scopes):
    resp = client.post(f"/api/projects/{project_id}/api-keys", json={"scopes": scopes}, headers=headers)
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["key"].startswith("lb_")
    return {"X-API-Key": data["key"]}


def test_api_key_is_limited_to_its_scopes(client, owner, project):
    headers, _ = owner
    proj, _ = project
    set_translations(client, headers, proj["id"], "cta", {"en": "Buy"})
    key_headers = _api_key(client, headers, proj["id"], ["translations.view"])

    export = client.get(f"/api/projects/{proj['id']}/translations/en", headers=key_headers)
    assert export.status_code == 200
    assert export.json()["en"] == {"cta": "Buy"}

    write = set_translations(client, key_headers, proj["id"], "cta", {"en": "Buy now"})
    assert write.status_code == 403


def test_api_key_without_key_edit_scope_cannot_create_keys(client, owner, project):
    headers, _ = owner
    proj, _ = project
    set_translations(client, headers, proj["id"], "existing", {"en": "There"})
    key_headers = _api_key(client, headers, proj["id"], ["translations.view", "translations.edit"])

    assert set_translations(client, key_headers, proj["id"], "existing", {"en": "Here"}).status_code == 200
    created = set_translations(client, key_headers, proj["id"], "fresh", {"en": "New"})
    assert created.status_code == 403
    assert created.json()["params"]["scope"] == "keys.edit"

    only_create = _api_key(client, headers, proj["id"], ["translations.edit", "keys.create"])
    assert set_translations(client, only_create, proj["id"], "fresh", {"en": "New"}).status_code == 403

    with_edit = _api_key(client, headers, proj["id"], ["translations.view", "translations.edit", "keys.edit"])
    assert set_translations(client, with_edit, proj["id"], "fresh", {"en": "New"}).status_code == 200


def test_api_key_only_works_for_its_project(client, owner, project):
    headers, _ = owner
    proj, _ = project
    other, _ = create_project(client, headers, languages=(("en", "English"),))
    key_headers = _api_key(client, headers, proj["id"], ["translations.view"])
    resp = client.get(f"/api/projects/{other['id']}/translations/en", headers=key_headers)
    assert resp.status_code == 403


def test_api_key_scopes_are_validated(client, owner, project):
    headers, _ = owner
    proj, _ = project
    resp = client.post(
        f"/api/projects/{proj['id']}/api-keys", json={"scopes": ["translations.fly"]}, headers=headers
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_SCOPE"

    empty = client.post(f"/api/projects/{proj['id']}/api-keys", json={"scopes": []}, headers=headers)
    assert empty.status_code == 422


def test_api_key_narrowed_by_user_permission(client, owner, project):
    headers, _ = owner
    proj, _ = project
    set_translations(client, headers, proj["id"], "narrow", {"en": "Narrow"})
    user_headers, user_id = register(client)
    grant(client, headers, proj["id"], user_id, "MANAGE")
    key_headers = _api_key(client, user_headers, proj["id"], ["translations.view", "translations.edit"])

    # demoting the key's user shrinks what the key can do
    grant(client, headers, proj["id"], user_id, "VIEW")
    assert client.get(f"/api/projects/{proj['id']}/translations/en", headers=key_headers).status_code == 200
    assert set_translations(client, key_headers, proj["id"], "narrow", {"en": "Wide"}).status_code == 403


def test_translator_cannot_mint_keys(client, owner, project):
    headers, _ = owner
    proj, _ = project
    translator_headers, translator_id = register(client)
    grant(client, headers, proj["id"], translator_id, "TRANSLATE")
    resp = client.post(
        f"/api/projects/{proj['id']}/api-keys", json={"scopes": ["translations.view"]}, headers=translator_headers
    )
    assert resp.status_code == 403


def test_api_key_writes_are_attributed(client, owner, project):
    headers, user_id = owner
    proj, _ = project
    key_headers = _api_key(client, headers, proj["id"], ["translations.edit", "keys.edit", "activity.view"])
    set_translations(client, key_headers, proj["id"], "attributed", {"en": "Mine"})
    items = client.get(f"/api/projects/{proj['id']}/activity", headers=headers).json()["items"]
    latest = items[0]
    assert latest["action"] == "CREATE_KEY"
    assert latest["user_id"] == user_id
    assert latest["api_key_id"] is not None
