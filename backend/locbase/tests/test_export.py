import pytest

from .conftest import client, owner, project, register, grant, set_translations
from locbase.errors import ValidationError
from locbase.services.translations import resolve_delimiter


def _fill(client, headers, project_id):
    set_translations(client, headers, project_id, "menu.file.open", {"en": "Open", "de": "Öffnen"})
    set_translations(client, headers, project_id, "menu.file.close", {"en": "Close"})
    set_translations(client, headers, project_id, "title", {"en": "Editor", "de": None})
    set_translations(client, headers, project_id, "title", {"en": "Admin"}, namespace="admin")


def test_export_nests_by_delimiter(client, owner, project):
    headers, _ = owner
    proj, _ = project
    _fill(client, headers, proj["id"])

    resp = client.get(f"/api/projects/{proj['id']}/translations/en,de", headers=headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["en"] == {"menu": {"file": {"close": "Close", "open": "Open"}}, "title": "Editor"}
    # untranslated values are left out
    assert data["de"] == {"menu": {"file": {"open": "Öffnen"}}}


def test_export_flat_and_custom_delimiter(client, owner, project):
    headers, _ = owner
    proj, _ = project
    _fill(client, headers, proj["id"])
    url = f"/api/projects/{proj['id']}/translations/en"

    flat = client.get(url, params={"structureDelimiter": ""}, headers=headers).json()
    assert flat["en"] == {"menu.file.close": "Close", "menu.file.open": "Open", "title": "Editor"}

    slashed = client.get(url, params={"structureDelimiter": "/"}, headers=headers).json()
    assert slashed["en"]["menu.file.open"] == "Open"


def test_export_rejects_long_delimiter(client, owner, project):
    headers, _ = owner
    proj, _ = project
    resp = client.get(
        f"/api/projects/{proj['id']}/translations/en",
        params={"structureDelimiter": "::"},
        headers=headers,
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_STRUCTURE_DELIMITER"


def test_export_filters_by_namespace(client, owner, project):
    headers, _ = owner
    proj, _ = project
    _fill(client, headers, proj["id"])
    resp = client.get(
        f"/api/projects/{proj['id']}/translations/en",
        params={"ns": "admin"},
        headers=headers,
    )
    assert resp.json() == {"en": {"title": "Admin"}}


def test_export_drops_languages_the_caller_cannot_view(client, owner, project):
    headers, _ = owner
    proj, langs = project
    _fill(client, headers, proj["id"])
    viewer_headers, viewer_id = register(client)
    grant(client, headers, proj["id"], viewer_id, "VIEW", view_language_ids=[langs["en"]["id"]])

    resp = client.get(f"/api/projects/{proj['id']}/translations/en,de", headers=viewer_headers)
    assert resp.status_code == 200
    assert set(resp.json()) == {"en"}


def test_conflicting_key_stays_flat(client, owner, project):
    headers, _ = owner
    proj, _ = project
    set_translations(client, headers, proj["id"], "app", {"en": "App"})
    set_translations(client, headers, proj["id"], "app.name", {"en": "Name"})
    resp = client.get(f"/api/projects/{proj['id']}/translations/en", headers=headers)
    assert resp.json()["en"] == {"app": "App", "app.name": "Name"}


def test_resolve_delimiter():
    assert resolve_delimiter(None) == "."
    assert resolve_delimiter("") is None
    assert resolve_delimiter("_") == "_"
    with pytest.raises(ValidationError):
        resolve_delimiter("--")
