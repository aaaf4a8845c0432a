"""Factories and shortcuts shared by the test modules.

Every helper opens its own session and closes it before returning, so no
SQLite transaction is left open while the app handles a request.
"""
import itertools
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

import models
from auth import create_access_token, get_password_hash
from database import SessionLocal

PASSWORD = "secret123"
PASSWORD_HASH = get_password_hash(PASSWORD)

_counter = itertools.count(1)


@contextmanager
def session_scope():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    finally:
        db.close()


def make_user(role="student", email=None, status="active", **fields):
    email = email or f"{role}{next(_counter)}@uniwiz.lk"
    with session_scope() as db:
        user = models.User(email=email, hashed_password=PASSWORD_HASH, role=role, status=status, **fields)
        if role == "student":
            user.student_profile = models.StudentProfile()
        elif role == "publisher":
            user.publisher_profile = models.PublisherProfile()
        db.add(user)
        db.flush()
        return user.id


def make_category(name="Design"):
    with session_scope() as db:
        category = models.JobCategory(name=name)
        db.add(category)
        db.flush()
        return category.id


def make_job(publisher_id, title="Campus Ambassador", status="active", deadline=None, **fields):
    with session_scope() as db:
        job = models.Job(publisher_id=publisher_id, title=title, status=status,
                         application_deadline=deadline, **fields)
        db.add(job)
        db.flush()
        return job.id


def make_application(student_id, job_id, status="pending", proposal="I would love to help."):
    with session_scope() as db:
        application = models.JobApplication(student_id=student_id, job_id=job_id, status=status, proposal=proposal)
        db.add(application)
        db.flush()
        return application.id


def days_from_today(days):
    return datetime.now(timezone.utc).date() + timedelta(days=days)


def auth_headers(user_id):
    with session_scope() as db:
        email = db.query(models.User.email).filter(models.User.id == user_id).scalar()
    return {"Authorization": f"Bearer {create_access_token({'sub': email})}"}


def make_admin():
    admin_id = make_user(role="admin", first_name="Site", last_name="Admin")
    return admin_id, auth_headers(admin_id)


def count(model, *criteria):
    with session_scope() as db:
        return db.query(model).filter(*criteria).count()


def get_row(model, row_id):
    with session_scope() as db:
        row = db.get(model, row_id)
        if row is not None:
            db.expunge(row)
        return row
