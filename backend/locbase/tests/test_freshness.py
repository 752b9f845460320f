import uuid

from .conftest import client, db, owner, project, set_translations
from locbase import freshness, models


def _export(client, headers, project_id, languages="en,de", **extra_headers):
    return client.get(
        f"/api/projects/{project_id}/translations/{languages}",
        headers={**headers, **extra_headers},
    )


def test_touch_never_moves_backwards(client, db, owner, project):
    proj, _ = project
    project_id = uuid.UUID(proj["id"])
    t1 = freshness.now_ms() + 60_000
    assert freshness.touch(db, project_id, t1) == t1
    assert freshness.touch(db, project_id, t1 - 5_000) == t1
    db.commit()
    assert freshness.get(db, project_id) == t1

    assert freshness.touch(db, project_id, t1 + 1) == t1 + 1
    db.commit()


def test_get_initializes_missing_watermark(db, project):
    proj, _ = project
    project_id = uuid.UUID(proj["id"])
    db.query(models.ProjectFreshness).filter_by(project_id=project_id).delete()
    db.flush()
    before = freshness.now_ms()
    value = freshness.get(db, project_id)
    assert value >= before
    assert freshness.get(db, project_id) == value
    db.rollback()


def test_http_date_round_trip_is_second_precise():
    instant = 1_700_000_000_123
    header = freshness.to_http_date(instant)
    assert header.endswith("GMT")
    assert freshness.parse_http_date(header) == 1_700_000_000_000
    assert freshness.is_not_modified(instant, header)
    assert not freshness.is_not_modified(instant + 1_000, header)
    assert not freshness.is_not_modified(instant, None)
    assert not freshness.is_not_modified(instant, "not a date")


def test_export_answers_not_modified(client, owner, project):
    headers, _ = owner
    proj, _ = project
    set_translations(client, headers, proj["id"], "hello", {"en": "Hello"})

    first = _export(client, headers, proj["id"])
    assert first.status_code == 200
    assert first.headers["Cache-Control"] == "max-age=0"
    last_modified = first.headers["Last-Modified"]

    cached = _export(client, headers, proj["id"], **{"If-Modified-Since": last_modified})
    assert cached.status_code == 304
    assert cached.headers["Last-Modified"] == last_modified

    stale = _export(client, headers, proj["id"], **{"If-Modified-Since": "Mon, 01 Jan 2001 00:00:00 GMT"})
    assert stale.status_code == 200
    assert stale.json()["en"] == {"hello": "Hello"}


def test_mutation_after_client_copy_invalidates_cache(client, db, owner, project):
    headers, _ = owner
    proj, _ = project
    first = _export(client, headers, proj["id"])
    last_modified = first.headers["Last-Modified"]

    freshness.touch(db, uuid.UUID(proj["id"]), freshness.now_ms() + 10_000)
    db.commit()

    resp = _export(client, headers, proj["id"], **{"If-Modified-Since": last_modified})
    assert resp.status_code == 200
    assert resp.headers["Last-Modified"] != last_modified


def test_batch_touches_watermark_once(client, owner, project, monkeypatch):
    headers, _ = owner
    proj, _ = project
    calls = []
    original = freshness.touch

    def counting_touch(db, project_id, instant=None):
        calls.append(project_id)
        return original(db, project_id, instant)

    monkeypatch.setattr(freshness, "touch", counting_touch)
    resp = set_translations(client, headers, proj["id"], "batch", {"en": "A", "de": "B", "fr": "C"})
    assert resp.status_code == 200
    assert len(calls) == 1


def test_denied_batch_leaves_watermark(client, db, owner, project):
    headers, _ = owner
    proj, _ = project
    project_id = uuid.UUID(proj["id"])
    before = freshness.get(db, project_id)
    db.commit()

    resp = set_translations(client, headers, proj["id"], "bad", {"en": "A", "zz": "B"})
    assert resp.status_code == 404
    db.expire_all()
    assert freshness.get(db, project_id) == before
