from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

import models
from auth import create_access_token
from conftest import item, make_feed
from main import create_app

URL = "https://example.com/feed.xml"


@pytest.fixture
def client(db, redis_conn, parser):
    app = create_app(redis_conn=redis_conn, parser=parser, run_worker=False)
    with TestClient(app) as c:
        yield c


def auth(user_id):
    return {"Authorization": f"Bearer {create_access_token({'user_id': user_id})}"}


def _day(day):
    return datetime(2026, 1, day, 8, 0, tzinfo=timezone.utc)


def test_health(client):
    assert client.get("/healthz").json() == {"ok": True}
    body = client.get("/self-test").json()
    assert body["db_ok"] is True
    assert body["redis_ok"] is True


def test_requires_token(client, world):
    assert client.post("/feeds/1/refresh").status_code == 401
    assert client.post("/feeds/1/refresh", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_create_feed_registers_schedule(client, world):
    resp = client.post("/feeds", headers=auth(world["member"]), json={
        "collection_id": world["collection"],
        "title": "Example",
        "url": URL,
        "update_freq": "hourly",
    })
    assert resp.status_code == 201
    feed = resp.json()
    assert feed["status"] == "ACTIVE"

    trigger = client.get(f"/feeds/{feed['id']}/schedule", headers=auth(world["member"])).json()
    assert trigger["name"] == f"feed:{feed['id']}"
    assert trigger["pattern"] == "0 * * * *"
    assert trigger["actorId"] == world["owner"]


def test_create_feed_validation_and_permissions(client, world):
    payload = {"collection_id": world["collection"], "title": "Example", "url": "ftp://example.com/feed"}
    assert client.post("/feeds", headers=auth(world["owner"]), json=payload).status_code == 422

    payload["url"] = URL
    assert client.post("/feeds", headers=auth(world["reader"]), json=payload).status_code == 403


def test_manual_refresh(client, db, world, parser):
    feed = make_feed(db, world["collection"], URL)
    parser.documents[URL] = [item(link="https://a/1"), item(link="https://a/2"), item(link="https://a/1")]

    resp = client.post(f"/feeds/{feed.id}/refresh", headers=auth(world["reader"]))
    assert resp.status_code == 200
    assert resp.json() == {"added": 2, "totalArticlesForFeed": 2}

    resp = client.post(f"/feeds/{feed.id}/refresh", headers=auth(world["reader"]))
    assert resp.json() == {"added": 0, "totalArticlesForFeed": 2}


def test_manual_refresh_errors(client, db, world, parser):
    feed = make_feed(db, world["collection"], URL)
    inactive = make_feed(db, world["collection"], "https://quiet.example/rss", status=models.FeedStatus.INACTIVE)

    assert client.post("/feeds/9999/refresh", headers=auth(world["owner"])).status_code == 404
    assert client.post(f"/feeds/{feed.id}/refresh", headers=auth(world["outsider"])).status_code == 403

    resp = client.post(f"/feeds/{inactive.id}/refresh", headers=auth(world["owner"]))
    assert resp.status_code == 409
    assert resp.json() == {"detail": "Feed is inactive"}

    # nothing served for this URL: the fetch fails upstream
    assert client.post(f"/feeds/{feed.id}/refresh", headers=auth(world["owner"])).status_code == 502


def test_patch_frequency_and_delete(client, world):
    feed_id = client.post("/feeds", headers=auth(world["owner"]), json={
        "collection_id": world["collection"], "title": "Example", "url": URL,
    }).json()["id"]
    assert client.get(f"/feeds/{feed_id}/schedule", headers=auth(world["owner"])).json()["pattern"] == "0 6 * * *"

    resp = client.patch(f"/feeds/{feed_id}", headers=auth(world["owner"]), json={"update_freq": "6h"})
    assert resp.status_code == 200
    assert resp.json()["update_freq"] == "6h"
    triggers = client.get("/jobs/triggers", headers=auth(world["owner"])).json()
    assert [t["pattern"] for t in triggers] == ["0 */6 * * *"]

    assert client.patch(f"/feeds/{feed_id}", headers=auth(world["owner"]), json={"title": None}).status_code == 400

    assert client.delete(f"/feeds/{feed_id}", headers=auth(world["owner"])).status_code == 204
    assert client.get("/jobs/triggers", headers=auth(world["owner"])).json() == []
    assert client.get(f"/feeds/collection/{world['collection']}", headers=auth(world["owner"])).json() == []


def test_unschedule_and_reschedule_all(client, db, world):
    first = make_feed(db, world["collection"], URL)
    make_feed(db, world["collection"], "https://second.example/rss", update_freq="hourly")

    resp = client.post("/feeds/reschedule-all", headers=auth(world["owner"]))
    assert resp.json() == {"scheduled": 2}

    client.post(f"/feeds/{first.id}/unschedule", headers=auth(world["owner"]))
    assert client.get(f"/feeds/{first.id}/schedule", headers=auth(world["owner"])).json() is None
    assert len(client.get("/jobs/triggers", headers=auth(world["owner"])).json()) == 1


def _seed_articles(client, db, world, parser):
    feed = make_feed(db, world["collection"], URL, category="tech")
    parser.documents[URL] = [
        item(link=f"https://a/{day}", title=f"Post {day}", iso_date=_day(day))
        for day in (1, 2, 3, 4)
    ]
    assert client.post(f"/articles/fetch/{feed.id}", headers=auth(world["member"])).json() == {
        "processed": 4, "created": 4,
    }
    return feed


def test_article_flags_and_filtered_listing(client, db, world, parser):
    feed = _seed_articles(client, db, world, parser)
    headers = auth(world["member"])

    listed = client.get(f"/articles/feed/{feed.id}", headers=headers).json()
    assert [a["title"] for a in listed] == ["Post 4", "Post 3", "Post 2", "Post 1"]
    newest, second = listed[0]["id"], listed[1]["id"]

    resp = client.post("/articles/read", headers=headers, json={"articleId": newest, "isRead": True})
    assert resp.json()["is_read"] is True
    client.post("/articles/favorite", headers=headers, json={"articleId": second, "isFavorite": True})

    params = {"collectionId": world["collection"]}
    unread = client.get("/articles", headers=headers, params={**params, "read": "false"}).json()
    assert [a["title"] for a in unread["items"]] == ["Post 3", "Post 2", "Post 1"]

    favorites = client.get("/articles", headers=headers, params={**params, "favorite": "true"}).json()
    assert [a["title"] for a in favorites["items"]] == ["Post 3"]
    assert favorites["items"][0]["feed"] == {"id": feed.id, "title": "Example", "category": "tech"}

    # flags are per user
    other_view = client.get("/articles", headers=auth(world["owner"]), params={**params, "read": "true"}).json()
    assert other_view["items"] == []

    found = client.get("/articles", headers=headers, params={**params, "q": "post 2"}).json()
    assert [a["title"] for a in found["items"]] == ["Post 2"]


def test_listing_cursor_pages(client, db, world, parser):
    _seed_articles(client, db, world, parser)
    headers = auth(world["reader"])
    params = {"collectionId": world["collection"], "limit": 2}

    page = client.get("/articles", headers=headers, params=params).json()
    assert [a["title"] for a in page["items"]] == ["Post 4", "Post 3"]
    assert page["nextCursor"] == page["items"][-1]["id"]

    page = client.get("/articles", headers=headers, params={**params, "cursor": page["nextCursor"]}).json()
    assert [a["title"] for a in page["items"]] == ["Post 2", "Post 1"]

    page = client.get("/articles", headers=headers, params={**params, "cursor": page["nextCursor"]}).json()
    assert page == {"items": [], "nextCursor": None}


def test_article_endpoints_check_membership(client, db, world, parser):
    feed = _seed_articles(client, db, world, parser)
    headers = auth(world["outsider"])

    assert client.get(f"/articles/feed/{feed.id}", headers=headers).status_code == 403
    assert client.post("/articles/read", headers=headers, json={"articleId": 1, "isRead": True}).status_code == 403
    assert client.post("/articles/read", headers=headers, json={"articleId": 999, "isRead": True}).status_code == 404
    assert client.get("/articles", headers=headers, params={"collectionId": world["collection"]}).status_code == 403


def test_job_stats(client, world):
    stats = client.get("/jobs/stats", headers=auth(world["owner"])).json()
    assert stats["total_runs"] == 0
    assert "system" in stats


def test_schedule_endpoints_require_edit_rights(client, db, world):
    feed = make_feed(db, world["collection"], URL, update_freq="hourly")
    owner = auth(world["owner"])
    before = client.post(f"/feeds/{feed.id}/schedule", headers=owner).json()
    assert before["pattern"] == "0 * * * *"

    for name in ("outsider", "reader"):
        headers = auth(world[name])
        assert client.post(f"/feeds/{feed.id}/unschedule", headers=headers).status_code == 403
        assert client.post(f"/feeds/{feed.id}/schedule", headers=headers).status_code == 403

    assert client.get(f"/feeds/{feed.id}/schedule", headers=owner).json() == before
    assert client.get(f"/feeds/{feed.id}/schedule", headers=auth(world["outsider"])).status_code == 403
    assert client.post("/feeds/9999/unschedule", headers=owner).status_code == 404


def test_reschedule_all_requires_membership(client, db, world):
    make_feed(db, world["collection"], URL)

    assert client.post("/feeds/reschedule-all", headers=auth(world["outsider"])).status_code == 403
    assert client.get("/jobs/triggers", headers=auth(world["owner"])).json() == []

    assert client.post("/feeds/reschedule-all", headers=auth(world["reader"])).json() == {"scheduled": 1}
