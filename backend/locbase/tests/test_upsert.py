from .conftest import client, owner, project, register, grant, set_translations


def _keys(client, headers, project_id):
    resp = client.get(f"/api/projects/{project_id}/keys", headers=headers)
    assert resp.status_code == 200
    return [(k["name"], k["namespace"]) for k in resp.json()]


def test_create_or_update_creates_missing_key(client, owner, project):
    headers, _ = owner
    proj, _ = project
    resp = set_translations(client, headers, proj["id"], "nav.home", {"en": "Home", "de": "Start"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["key_name"] == "nav.home"
    assert data["key_namespace"] is None
    assert set(data["translations"]) == {"en", "de"}

    again = set_translations(client, headers, proj["id"], "nav.home", {"fr": "Accueil"})
    assert again.json()["key_id"] == data["key_id"]
    assert list(again.json()["translations"]) == ["fr"]
    assert _keys(client, headers, proj["id"]).count(("nav.home", None)) == 1


def test_wire_fields_are_snake_case(client, owner, project):
    headers, _ = owner
    proj, _ = project
    set_translations(client, headers, proj["id"], "casing", {"en": "Case", "de": "Fall"})
    resp = set_translations(client, headers, proj["id"], "casing", {"en": "Case!"}, languages_to_return=["de"])
    assert set(resp.json()) == {"key_id", "key_name", "key_namespace", "translations"}
    assert list(resp.json()["translations"]) == ["de"]

    camel = set_translations(client, headers, proj["id"], "casing", {"en": "Case"}, languagesToReturn=["de"])
    assert list(camel.json()["translations"]) == ["en"]


def test_namespace_separates_keys(client, owner, project):
    headers, _ = owner
    proj, _ = project
    plain = set_translations(client, headers, proj["id"], "title", {"en": "Title"}).json()
    spaced = set_translations(client, headers, proj["id"], "title", {"en": "Title"}, namespace="admin").json()
    blank = set_translations(client, headers, proj["id"], "title", {"en": "Title"}, namespace="  ").json()
    assert plain["key_id"] != spaced["key_id"]
    assert spaced["key_namespace"] == "admin"
    assert blank["key_id"] == plain["key_id"]


def test_new_key_needs_key_edit_scope(client, owner, project):
    headers, _ = owner
    proj, _ = project
    translator_headers, translator_id = register(client)
    grant(client, headers, proj["id"], translator_id, "TRANSLATE")

    resp = set_translations(client, translator_headers, proj["id"], "brand.new", {"en": "New"})
    assert resp.status_code == 403
    assert resp.json()["code"] == "OPERATION_NOT_PERMITTED"
    assert resp.json()["params"]["scope"] == "keys.edit"
    assert ("brand.new", None) not in _keys(client, headers, proj["id"])

    set_translations(client, headers, proj["id"], "brand.new", {"en": "New"})
    resp = set_translations(client, translator_headers, proj["id"], "brand.new", {"en": "Newer"})
    assert resp.status_code == 200
    assert resp.json()["translations"]["en"]["text"] == "Newer"


def test_editor_may_create_keys(client, owner, project):
    headers, _ = owner
    proj, _ = project
    editor_headers, editor_id = register(client)
    grant(client, headers, proj["id"], editor_id, "EDIT")
    resp = set_translations(client, editor_headers, proj["id"], "editor.key", {"de": "Wert"})
    assert resp.status_code == 200


def test_batch_is_all_or_nothing(client, owner, project):
    headers, _ = owner
    proj, langs = project
    set_translations(client, headers, proj["id"], "greeting", {"en": "Hello", "de": "Hallo"})

    translator_headers, translator_id = register(client)
    grant(client, headers, proj["id"], translator_id, "TRANSLATE", translate_language_ids=[langs["en"]["id"]])

    resp = set_translations(client, translator_headers, proj["id"], "greeting", {"en": "Hi", "de": "Servus"})
    assert resp.status_code == 403
    assert resp.json()["code"] == "LANGUAGE_NOT_PERMITTED"
    assert resp.json()["params"]["tags"] == ["de"]

    current = set_translations(
        client, headers, proj["id"], "greeting", {}, languages_to_return=["en", "de"]
    ).json()["translations"]
    assert current["en"]["text"] == "Hello"
    assert current["de"]["text"] == "Hallo"

    resp = set_translations(client, translator_headers, proj["id"], "greeting", {"en": "Hi"})
    assert resp.status_code == 200


def test_unknown_language_tag_is_not_found(client, owner, project):
    headers, _ = owner
    proj, _ = project
    resp = set_translations(client, headers, proj["id"], "unknown.tag", {"en": "x", "xx": "y"})
    assert resp.status_code == 404
    assert resp.json()["code"] == "LANGUAGE_NOT_FOUND"
    assert ("unknown.tag", None) not in _keys(client, headers, proj["id"])


def test_languages_to_return_keeps_requested_order(client, owner, project):
    headers, _ = owner
    proj, _ = project
    set_translations(client, headers, proj["id"], "order", {"en": "One", "de": "Eins", "fr": "Un"})
    resp = set_translations(
        client, headers, proj["id"], "order", {"en": "One!"}, languages_to_return=["fr", "en", "de"]
    )
    assert list(resp.json()["translations"]) == ["fr", "en", "de"]
    assert resp.json()["translations"]["en"]["text"] == "One!"


def test_languages_to_return_hides_unviewable(client, owner, project):
    headers, _ = owner
    proj, langs = project
    set_translations(client, headers, proj["id"], "secret", {"en": "Public", "de": "Geheim"})
    translator_headers, translator_id = register(client)
    grant(
        client, headers, proj["id"], translator_id, "TRANSLATE",
        view_language_ids=[langs["en"]["id"]],
        translate_language_ids=[langs["en"]["id"]],
    )
    resp = set_translations(
        client, translator_headers, proj["id"], "secret", {"en": "Public!"}, languages_to_return=["de", "en"]
    )
    assert resp.status_code == 200
    assert list(resp.json()["translations"]) == ["en"]


def test_put_requires_existing_key(client, owner, project):
    headers, _ = owner
    proj, _ = project
    resp = client.put(
        f"/api/projects/{proj['id']}/translations",
        json={"key": "missing.key", "translations": {"en": "x"}},
        headers=headers,
    )
    assert resp.status_code == 404
    assert resp.json()["code"] == "KEY_NOT_FOUND"

    client.post(f"/api/projects/{proj['id']}/keys", json={"name": "missing.key"}, headers=headers)
    resp = client.put(
        f"/api/projects/{proj['id']}/translations",
        json={"key": "missing.key", "translations": {"en": "x"}},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["translations"]["en"]["state"] == "TRANSLATED"


def test_duplicate_key_is_rejected(client, owner, project):
    headers, _ = owner
    proj, _ = project
    first = client.post(f"/api/projects/{proj['id']}/keys", json={"name": "dup"}, headers=headers)
    assert first.status_code == 200
    second = client.post(f"/api/projects/{proj['id']}/keys", json={"name": "dup"}, headers=headers)
    assert second.status_code == 400
    assert second.json()["code"] == "KEY_EXISTS"
