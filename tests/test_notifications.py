import models
from helpers import auth_headers, make_admin, make_user, session_scope
from notifications import notify_user
from sanitize import clean_text


def test_clean_text():
    assert clean_text(None) == ""
    assert clean_text("  plain  ") == "plain"
    assert clean_text("<a href='x'>link</a>") == "link"


def test_mark_notification_read(client):
    user = make_user("student")
    with session_scope() as db:
        first = notify_user(db, user, "application_accepted", "You got the job.", "/applied-jobs")
        notify_user(db, user, "new_review", "Someone reviewed you.")
        db.flush()
        first_id = first.id

    assert client.get(f"/users/{user}/notifications").json()["unread_count"] == 2

    response = client.patch(f"/notifications/{first_id}/read")
    assert response.status_code == 200

    listing = client.get(f"/users/{user}/notifications").json()
    assert listing["unread_count"] == 1
    assert {n["id"]: n["is_read"] for n in listing["notifications"]}[first_id] is True
    assert client.patch("/notifications/9999/read").status_code == 404


def test_footer_links_round_trip(client):
    _, headers = make_admin()
    assert client.get("/site-settings/footer-links").json() == {}

    links = {"about": "/about", "privacy": "/privacy"}
    saved = client.put("/admin/site-settings/footer-links", json=links, headers=headers)
    assert saved.status_code == 200
    assert client.get("/site-settings/footer-links").json() == links


def test_footer_links_ignore_malformed_values(client):
    with session_scope() as db:
        db.add(models.SiteSetting(setting_key="footer_links", setting_value="{not json"))
    assert client.get("/site-settings/footer-links").json() == {}


def test_footer_links_update_requires_admin(client):
    student = make_user("student")
    assert client.put("/admin/site-settings/footer-links", json={"a": "/a"}).status_code == 401
    forbidden = client.put("/admin/site-settings/footer-links", json={"a": "/a"}, headers=auth_headers(student))
    assert forbidden.status_code == 403
    assert client.get("/site-settings/footer-links").json() == {}
