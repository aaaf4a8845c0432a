from datetime import date

import pytest

import models
from helpers import days_from_today, make_application, make_category, make_job, make_user, session_scope


@pytest.mark.parametrize("status, deadline, expected", [
    ("active", date(2025, 5, 31), "expired"),
    ("active", date(2025, 6, 1), "active"),
    ("active", date(2025, 6, 2), "active"),
    ("active", None, "active"),
    ("draft", date(2025, 5, 1), "draft"),
    ("closed", date(2025, 5, 1), "closed"),
])
def test_derive_display_status(status, deadline, expected):
    assert models.derive_display_status(status, deadline, today=date(2025, 6, 1)) == expected


def test_job_details_report_expired_jobs(client):
    publisher = make_user("publisher", company_name="Acme")
    expired = make_job(publisher, deadline=days_from_today(-3))
    open_job = make_job(publisher, deadline=days_from_today(3))

    expired_body = client.get(f"/jobs/{expired}").json()
    assert expired_body["status"] == "active"
    assert expired_body["display_status"] == "expired"

    open_body = client.get(f"/jobs/{open_job}").json()
    assert open_body["display_status"] == "active"
    assert open_body["company_name"] == "Acme"


def test_job_details_include_accepted_count(client):
    publisher = make_user("publisher")
    job = make_job(publisher, vacancies=2)
    make_application(make_user("student"), job, status="accepted")
    make_application(make_user("student"), job, status="pending")

    body = client.get(f"/jobs/{job}").json()
    assert body["accepted_count"] == 1
    assert body["vacancies"] == 2


def test_unknown_job_is_404(client):
    response = client.get("/jobs/9999")
    assert response.status_code == 404
    assert response.json() == {"message": "Job not found."}


def test_listing_hides_expired_and_unpublished_jobs(client):
    publisher = make_user("publisher")
    open_job = make_job(publisher, title="Open", deadline=days_from_today(5))
    no_deadline = make_job(publisher, title="Rolling")
    expired = make_job(publisher, title="Expired", deadline=days_from_today(-5))
    make_job(publisher, title="Draft", status="draft")
    make_job(publisher, title="Closed", status="closed")

    listed = {job["id"] for job in client.get("/jobs/").json()}
    assert listed == {open_job, no_deadline}

    with_expired = client.get("/jobs/", params={"include_expired": True}).json()
    assert {job["id"] for job in with_expired} == {open_job, no_deadline, expired}
    assert {job["display_status"] for job in with_expired} == {"active", "expired"}


def test_listing_filters(client):
    publisher = make_user("publisher")
    design = make_category("Design")
    writing = make_category("Writing")
    logo = make_job(publisher, title="Logo designer", category_id=design)
    make_job(publisher, title="Blog writer", category_id=writing, description="Write about campus life")

    by_category = client.get("/jobs/", params={"category_id": design}).json()
    assert [job["id"] for job in by_category] == [logo]
    assert by_category[0]["category_name"] == "Design"

    by_search = client.get("/jobs/", params={"search": "campus"}).json()
    assert [job["title"] for job in by_search] == ["Blog writer"]

    assert len(client.get("/jobs/", params={"limit": 1}).json()) == 1


def test_categories_are_sorted_by_name(client):
    make_category("Writing")
    make_category("Design")
    assert [c["name"] for c in client.get("/categories/").json()] == ["Design", "Writing"]


def test_publisher_job_list_counts_applications(client):
    publisher = make_user("publisher")
    other = make_user("publisher")
    job = make_job(publisher, title="Tutor", deadline=days_from_today(-1))
    make_job(other, title="Not mine")
    make_application(make_user("student"), job, status="accepted")
    make_application(make_user("student"), job)

    jobs = client.get(f"/publishers/{publisher}/jobs").json()
    assert len(jobs) == 1
    assert jobs[0]["application_count"] == 2
    assert jobs[0]["accepted_count"] == 1
    assert jobs[0]["display_status"] == "expired"

    assert client.get(f"/publishers/{publisher}/jobs", params={"search": "nothing"}).json() == []


def test_publisher_stats(client):
    publisher = make_user("publisher")
    student = make_user("student", first_name="Kamal")
    active = make_job(publisher, title="Active")
    make_job(publisher, title="Expired", deadline=days_from_today(-2))
    make_job(publisher, title="Draft", status="draft")
    make_application(student, active)
    make_application(make_user("student"), active, status="viewed")

    stats = client.get(f"/publishers/{publisher}/stats").json()
    assert stats["active_jobs"] == 1
    assert stats["total_applicants"] == 2
    assert stats["pending_applicants"] == 1
    assert stats["new_applicants_today"] == 2
    assert {a["first_name"] for a in stats["recent_applicants"]} >= {"Kamal"}
    assert len(stats["job_overview"]) == 3


def test_recommended_jobs_rank_by_category_and_skills(client):
    publisher = make_user("publisher", company_name="Acme")
    student = make_user("student")
    with session_scope() as db:
        profile = db.get(models.StudentProfile, student)
        profile.skills = "Python, SQL"
        profile.preferred_categories = "Design"
    design = make_category("Design")
    writing = make_category("Writing")

    best = make_job(publisher, title="Data designer", category_id=design, skills_required="python")
    category_only = make_job(publisher, title="Poster designer", category_id=design, skills_required="Figma")
    skills_only = make_job(publisher, title="Analyst", skills_required="Python, SQL, Excel")
    make_job(publisher, title="Copywriter", category_id=writing, skills_required="SQL")
    make_job(publisher, title="Java dev", skills_required="Java")
    make_job(publisher, title="Old design gig", category_id=design, skills_required="Python",
             deadline=days_from_today(-2))
    make_job(publisher, title="Draft design gig", category_id=design, status="draft")
    make_application(student, category_only, status="viewed")

    recommended = client.get(f"/students/{student}/recommended-jobs").json()

    assert [job["id"] for job in recommended] == [best, category_only, skills_only]
    assert [job["recommendation_score"] for job in recommended] == [7, 5, 4]
    assert [job["application_status"] for job in recommended] == [None, "viewed", None]
    assert recommended[0]["company_name"] == "Acme"


def test_recommended_jobs_for_empty_profile_or_unknown_student(client):
    student = make_user("student")
    make_job(make_user("publisher"), skills_required="Python")

    assert client.get(f"/students/{student}/recommended-jobs").json() == []
    assert client.get("/students/9999/recommended-jobs").status_code == 404
    assert client.get(f"/students/{make_user('publisher')}/recommended-jobs").status_code == 404


def test_suggestions_list_skills_and_categories(client):
    make_category("Writing")
    make_category("Design")
    with session_scope() as db:
        db.add_all([models.Skill(name="SQL"), models.Skill(name="Figma"), models.Skill(name="Python")])

    assert client.get("/suggestions/").json() == {
        "skills": ["Figma", "Python", "SQL"],
        "categories": ["Design", "Writing"],
    }
