from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

import messaging
import models
from helpers import auth_headers, count, make_admin, make_job, make_user, session_scope


def send(client, sender_id, receiver_id, text="Hello there", job_id=None):
    return client.post("/messages/", json={
        "sender_id": sender_id,
        "receiver_id": receiver_id,
        "job_id": job_id,
        "message_text": text,
    })


def test_send_message_creates_conversation(client):
    student = make_user("student")
    publisher = make_user("publisher", company_name="Acme")

    response = send(client, student, publisher)

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Message sent successfully."
    assert count(models.Conversation) == 1
    assert count(models.Message, models.Message.conversation_id == body["conversation_id"]) == 1


def test_conversation_is_shared_in_both_directions(client):
    student = make_user("student")
    publisher = make_user("publisher")

    first = send(client, student, publisher).json()["conversation_id"]
    reply = send(client, publisher, student, "Hi back").json()["conversation_id"]
    again = send(client, student, publisher, "One more").json()["conversation_id"]

    assert first == reply == again
    assert count(models.Conversation) == 1
    assert count(models.Message) == 3


def test_each_job_gets_its_own_conversation(client):
    student = make_user("student")
    publisher = make_user("publisher")
    job_a = make_job(publisher, title="Tutor")
    job_b = make_job(publisher, title="Designer")

    general = send(client, student, publisher).json()["conversation_id"]
    about_a = send(client, student, publisher, job_id=job_a).json()["conversation_id"]
    about_b = send(client, student, publisher, job_id=job_b).json()["conversation_id"]

    assert len({general, about_a, about_b}) == 3
    assert send(client, publisher, student, job_id=job_a).json()["conversation_id"] == about_a


def test_message_text_is_sanitised(client):
    student = make_user("student")
    publisher = make_user("publisher")

    conversation_id = send(client, student, publisher, "  <b>Hi</b> <i>there</i> ").json()["conversation_id"]

    messages = client.get(f"/conversations/{conversation_id}/messages", params={"user_id": student}).json()
    assert messages[0]["message_text"] == "Hi there"


def test_empty_or_markup_only_message_is_rejected(client):
    student = make_user("student")
    publisher = make_user("publisher")

    for text in ("", "   ", "<p></p>"):
        response = send(client, student, publisher, text)
        assert response.status_code == 400
        assert response.json() == {"message": "Message cannot be empty."}
    assert count(models.Conversation) == 0


def test_missing_fields_are_reported(client):
    student = make_user("student")

    response = client.post("/messages/", json={"sender_id": student, "message_text": "Hi"})

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Invalid or incomplete data."
    assert "receiver_id" in body["fields"]
    assert "job_id" in body["fields"]


def test_cannot_message_yourself(client):
    student = make_user("student")
    assert send(client, student, student).status_code == 400


def test_unknown_participant_or_job(client):
    student = make_user("student")
    publisher = make_user("publisher")

    assert send(client, student, 9999).status_code == 404
    assert send(client, student, publisher, job_id=9999).status_code == 404
    assert count(models.Conversation) == 0


def test_only_the_receiver_marks_messages_read(client):
    student = make_user("student")
    publisher = make_user("publisher")
    conversation_id = send(client, student, publisher, "First").json()["conversation_id"]
    send(client, student, publisher, "Second")

    assert client.get(f"/users/{publisher}/unread-count").json() == {"unread_count": 2}

    # The sender reading the thread leaves the receiver's messages unread
    sender_view = client.get(f"/conversations/{conversation_id}/messages", params={"user_id": student})
    assert sender_view.status_code == 200
    assert [m["is_read"] for m in sender_view.json()] == [False, False]
    assert client.get(f"/users/{publisher}/unread-count").json() == {"unread_count": 2}

    receiver_view = client.get(f"/conversations/{conversation_id}/messages", params={"user_id": publisher}).json()
    assert [m["message_text"] for m in receiver_view] == ["First", "Second"]
    assert all(m["is_read"] for m in receiver_view)
    assert client.get(f"/users/{publisher}/unread-count").json() == {"unread_count": 0}


def test_reading_leaves_own_sent_messages_untouched(client):
    student = make_user("student")
    publisher = make_user("publisher")
    conversation_id = send(client, student, publisher, "Question").json()["conversation_id"]
    send(client, publisher, student, "Answer")

    client.get(f"/conversations/{conversation_id}/messages", params={"user_id": student})

    assert client.get(f"/users/{student}/unread-count").json() == {"unread_count": 0}
    assert client.get(f"/users/{publisher}/unread-count").json() == {"unread_count": 1}


def test_get_messages_errors(client):
    student = make_user("student")
    publisher = make_user("publisher")
    outsider = make_user("student")
    conversation_id = send(client, student, publisher).json()["conversation_id"]

    missing = client.get("/conversations/9999/messages", params={"user_id": student})
    assert missing.status_code == 404
    assert missing.json() == {"message": "Conversation not found."}

    forbidden = client.get(f"/conversations/{conversation_id}/messages", params={"user_id": outsider})
    assert forbidden.status_code == 403
    assert count(models.Message, models.Message.is_read.is_(True)) == 0


def test_conversation_list_summaries(client):
    student = make_user("student", first_name="Nimal", last_name="Perera")
    publisher = make_user("publisher", company_name="Acme")
    other_publisher = make_user("publisher", company_name="Globex")
    job = make_job(publisher, title="Tutor")

    with_job = send(client, student, publisher, "About the tutor role", job_id=job).json()["conversation_id"]
    send(client, publisher, student, "Sure, tell me more", job_id=job)
    send(client, student, other_publisher, "Hello Globex")

    summaries = client.get(f"/users/{student}/conversations").json()
    assert len(summaries) == 2

    by_id = {s["conversation_id"]: s for s in summaries}
    tutor = by_id[with_job]
    assert tutor["job_title"] == "Tutor"
    assert tutor["other_user_id"] == publisher
    assert tutor["company_name"] == "Acme"
    assert tutor["last_message"] == "Sure, tell me more"
    assert tutor["unread_count"] == 1

    publisher_view = client.get(f"/users/{publisher}/conversations").json()
    assert publisher_view[0]["first_name"] == "Nimal"
    assert publisher_view[0]["unread_count"] == 1


def test_conversation_list_is_newest_first(client):
    student = make_user("student")
    first_publisher = make_user("publisher")
    second_publisher = make_user("publisher")
    older = send(client, student, first_publisher, "Older").json()["conversation_id"]
    newer = send(client, student, second_publisher, "Newer").json()["conversation_id"]

    with session_scope() as db:
        base = datetime(2025, 1, 1, 12, 0, 0)
        db.query(models.Message).filter(models.Message.conversation_id == older).update(
            {models.Message.created_at: base}, synchronize_session=False)
        db.query(models.Message).filter(models.Message.conversation_id == newer).update(
            {models.Message.created_at: base + timedelta(hours=1)}, synchronize_session=False)

    summaries = client.get(f"/users/{student}/conversations").json()
    assert [s["conversation_id"] for s in summaries] == [newer, older]


def test_unread_count_matches_conversation_totals(client):
    student = make_user("student")
    publishers = [make_user("publisher") for _ in range(3)]
    for index, publisher in enumerate(publishers):
        for _ in range(index + 1):
            send(client, publisher, student, "Ping")

    summaries = client.get(f"/users/{student}/conversations").json()
    total = client.get(f"/users/{student}/unread-count").json()["unread_count"]
    assert total == sum(s["unread_count"] for s in summaries) == 6


def test_admin_conversation_views_are_read_only(client):
    _, headers = make_admin()
    student = make_user("student")
    publisher = make_user("publisher")
    conversation_id = send(client, student, publisher, "Private note").json()["conversation_id"]

    listing = client.get("/admin/conversations", headers=headers)
    assert listing.status_code == 200
    assert listing.json()[0]["last_message"] == "Private note"
    assert {listing.json()[0]["user_one_id"], listing.json()[0]["user_two_id"]} == {student, publisher}

    thread = client.get(f"/admin/conversations/{conversation_id}/messages", headers=headers)
    assert thread.status_code == 200
    assert thread.json()[0]["is_read"] is False
    assert client.get(f"/users/{publisher}/unread-count").json() == {"unread_count": 1}

    assert client.get("/admin/conversations/9999/messages", headers=headers).status_code == 404


def test_admin_conversation_views_require_admin(client):
    student = make_user("student")
    assert client.get("/admin/conversations", headers=auth_headers(student)).status_code == 403
    assert client.get("/admin/conversations").status_code == 401


@pytest.mark.parametrize("about_job", [False, True])
def test_racing_first_message_reuses_existing_conversation(client, monkeypatch, about_job):
    student = make_user("student")
    publisher = make_user("publisher")
    job = make_job(publisher) if about_job else None
    with session_scope() as db:
        # Another request committed the conversation after our lookup ran
        user_one_id, user_two_id = messaging.canonical_pair(student, publisher)
        rival = models.Conversation(user_one_id=user_one_id, user_two_id=user_two_id, job_id=job)
        db.add(rival)
        db.flush()
        rival_id = rival.id

    real_find = messaging.find_conversation
    lookups = []

    def stale_first_lookup(*args, **kwargs):
        lookups.append(args)
        if len(lookups) == 1:
            return None
        return real_find(*args, **kwargs)

    monkeypatch.setattr(messaging, "find_conversation", stale_first_lookup)

    response = send(client, student, publisher, "Are you hiring?", job_id=job)

    assert response.status_code == 201
    assert response.json()["conversation_id"] == rival_id
    assert len(lookups) == 2
    assert count(models.Conversation) == 1
    assert count(models.Message, models.Message.conversation_id == rival_id) == 1


def test_jobless_conversation_pair_is_unique():
    student = make_user("student")
    publisher = make_user("publisher")
    user_one_id, user_two_id = messaging.canonical_pair(student, publisher)

    with pytest.raises(IntegrityError):
        with session_scope() as db:
            db.add(models.Conversation(user_one_id=user_one_id, user_two_id=user_two_id, job_id=None))
            db.flush()
            db.add(models.Conversation(user_one_id=user_one_id, user_two_id=user_two_id, job_id=None))
            db.flush()
    assert count(models.Conversation) == 0
