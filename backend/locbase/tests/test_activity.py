from .conftest import client, owner, project, register, grant, set_translations


def test_mutations_are_logged(client, owner, project):
    headers, user_id = owner
    proj, _ = project
    created = set_translations(client, headers, proj["id"], "logged", {"en": "One"}).json()
    set_translations(client, headers, proj["id"], "logged", {"en": "Two"})
    tid = created["translations"]["en"]["id"]
    client.put(f"/api/projects/{proj['id']}/translations/{tid}/set-state/REVIEWED", headers=headers)
    client.post(
        f"/api/projects/{proj['id']}/translations/{tid}/comments", json={"text": "Nice"}, headers=headers
    )

    resp = client.get(f"/api/projects/{proj['id']}/activity", headers=headers)
    assert resp.status_code == 200
    actions = [item["action"] for item in resp.json()["items"]]
    assert actions[:4] == [
        "TRANSLATION_COMMENT_ADD",
        "SET_TRANSLATION_STATE",
        "SET_TRANSLATIONS",
        "CREATE_KEY",
    ]
    assert "CREATE_PROJECT" in actions
    assert all(item["user_id"] == user_id for item in resp.json()["items"])


def test_denied_mutation_is_not_logged(client, owner, project):
    headers, _ = owner
    proj, _ = project
    viewer_headers, viewer_id = register(client)
    grant(client, headers, proj["id"], viewer_id, "VIEW")
    before = client.get(f"/api/projects/{proj['id']}/activity", headers=headers).json()["total"]
    set_translations(client, viewer_headers, proj["id"], "nope", {"en": "No"})
    after = client.get(f"/api/projects/{proj['id']}/activity", headers=headers).json()["total"]
    assert after == before


def test_activity_report_counts_actions(client, owner, project):
    headers, _ = owner
    proj, _ = project
    set_translations(client, headers, proj["id"], "a", {"en": "A"})
    set_translations(client, headers, proj["id"], "b", {"en": "B"})
    resp = client.get(f"/api/projects/{proj['id']}/activity/report", headers=headers)
    assert resp.status_code == 200
    counts = {row["action"]: row["count"] for row in resp.json()}
    assert counts["CREATE_KEY"] == 2
    assert counts["CREATE_LANGUAGE"] == 3
