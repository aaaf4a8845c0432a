import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Jobs"])


# --- Helper Functions ---
def utc_today():
    return datetime.now(timezone.utc).date()


def not_expired(today=None):
    """SQL counterpart of ``derive_display_status``: rows that are not past their deadline."""
    today = today or utc_today()
    return or_(models.Job.application_deadline.is_(None), models.Job.application_deadline >= today)


def get_job_or_404(db: Session, job_id: int):
    job = db.query(models.Job).filter(models.Job.id == job_id).first()
    if not job:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found.")
    return job


def application_counts(db: Session, job_ids):
    """Map job id to (total applications, accepted applications)."""
    if not job_ids:
        return {}
    accepted = func.sum(case((models.JobApplication.status == "accepted", 1), else_=0))
    rows = (
        db.query(models.JobApplication.job_id, func.count(models.JobApplication.id), accepted)
        .filter(models.JobApplication.job_id.in_(job_ids))
        .group_by(models.JobApplication.job_id)
        .all()
    )
    return {job_id: (int(total), int(accepted or 0)) for job_id, total, accepted in rows}


# --- API Endpoints ---
@router.get("/categories/", response_model=List[schemas.Category])
def list_categories(db: Session = Depends(get_db)):
    return db.query(models.JobCategory).order_by(models.JobCategory.name.asc()).all()


@router.get("/jobs/", response_model=List[schemas.Job])
def list_jobs(
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    include_expired: bool = False,
    limit: Optional[int] = Query(None, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Lists open job postings, newest first."""
    query = db.query(models.Job).filter(models.Job.status == "active")
    if not include_expired:
        query = query.filter(not_expired())
    if category_id is not None:
        query = query.filter(models.Job.category_id == category_id)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(models.Job.title.ilike(pattern), models.Job.description.ilike(pattern)))
    query = query.order_by(models.Job.created_at.desc(), models.Job.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


@router.get("/jobs/{job_id}", response_model=schemas.JobDetail)
def get_job_details(job_id: int, db: Session = Depends(get_db)):
    job = get_job_or_404(db, job_id)
    _, accepted = application_counts(db, [job.id]).get(job.id, (0, 0))
    return schemas.JobDetail(**schemas.Job.model_validate(job).model_dump(), accepted_count=accepted)


@router.get("/publishers/{publisher_id}/jobs", response_model=List[schemas.PublisherJob])
def list_publisher_jobs(publisher_id: int, search: Optional[str] = None, db: Session = Depends(get_db)):
    query = db.query(models.Job).filter(models.Job.publisher_id == publisher_id)
    if search and search.strip():
        query = query.filter(models.Job.title.ilike(f"%{search.strip()}%"))
    jobs = query.order_by(models.Job.created_at.desc(), models.Job.id.desc()).all()

    counts = application_counts(db, [job.id for job in jobs])
    result = []
    for job in jobs:
        total, accepted = counts.get(job.id, (0, 0))
        result.append(schemas.PublisherJob(
            id=job.id,
            title=job.title,
            status=job.status,
            display_status=job.display_status,
            vacancies=job.vacancies,
            application_deadline=job.application_deadline,
            created_at=job.created_at,
            application_count=total,
            accepted_count=accepted,
        ))
    return result


@router.get("/publishers/{publisher_id}/stats", response_model=schemas.PublisherStats)
def get_publisher_stats(publisher_id: int, db: Session = Depends(get_db)):
    """Dashboard numbers for a publisher."""
    jobs = (
        db.query(models.Job)
        .filter(models.Job.publisher_id == publisher_id)
        .order_by(models.Job.created_at.desc(), models.Job.id.desc())
        .all()
    )
    applications = (
        db.query(models.JobApplication)
        .join(models.Job, models.JobApplication.job_id == models.Job.id)
        .filter(models.Job.publisher_id == publisher_id)
        .order_by(models.JobApplication.applied_at.desc(), models.JobApplication.id.desc())
        .all()
    )

    today = utc_today()
    counts = application_counts(db, [job.id for job in jobs])
    return schemas.PublisherStats(
        active_jobs=sum(1 for job in jobs if job.display_status == "active"),
        total_applicants=len(applications),
        new_applicants_today=sum(1 for a in applications if a.applied_at and a.applied_at.date() == today),
        pending_applicants=sum(1 for a in applications if a.status == "pending"),
        recent_applicants=[
            schemas.RecentApplicant(
                student_id=a.student_id,
                first_name=a.student.first_name,
                last_name=a.student.last_name,
                profile_image_url=a.student.profile_image_url,
                job_title=a.job.title,
                applied_at=a.applied_at,
            )
            for a in applications[:5]
        ],
        job_overview=[
            schemas.JobOverview(
                id=job.id,
                title=job.title,
                status=job.status,
                display_status=job.display_status,
                application_count=counts.get(job.id, (0, 0))[0],
            )
            for job in jobs[:5]
        ],
    )


def split_list(value):
    """Lower-cased, trimmed entries of a comma separated profile field."""
    if not value:
        return set()
    return {item.strip().lower() for item in value.split(",") if item.strip()}


def recommendation_score(job: models.Job, skills, categories):
    # +5 for a preferred category, +2 per shared skill
    score = 5 if job.category_name and job.category_name.lower() in categories else 0
    return score + 2 * len(split_list(job.skills_required) & skills)


@router.get("/students/{student_id}/recommended-jobs", response_model=List[schemas.RecommendedJob])
def get_recommended_jobs(student_id: int, db: Session = Depends(get_db)):
    """Up to three open jobs that best match the student's skills and preferred categories."""
    student = db.query(models.User).filter(models.User.id == student_id, models.User.role == "student").first()
    if not student:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found.")
    profile = student.student_profile
    skills = split_list(profile.skills) if profile else set()
    categories = split_list(profile.preferred_categories) if profile else set()

    jobs = (
        db.query(models.Job)
        .filter(models.Job.status == "active", not_expired())
        .order_by(models.Job.created_at.desc(), models.Job.id.desc())
        .all()
    )
    scored = [(recommendation_score(job, skills, categories), job) for job in jobs]
    scored = [(score, job) for score, job in scored if score > 0]
    scored.sort(key=lambda pair: pair[0], reverse=True)
    top = scored[:3]

    applied = dict(
        db.query(models.JobApplication.job_id, models.JobApplication.status)
        .filter(models.JobApplication.student_id == student_id,
                models.JobApplication.job_id.in_([job.id for _, job in top]))
        .all()
    ) if top else {}
    return [
        schemas.RecommendedJob(
            **schemas.Job.model_validate(job).model_dump(),
            recommendation_score=score,
            application_status=applied.get(job.id),
        )
        for score, job in top
    ]


@router.get("/suggestions/", response_model=schemas.Suggestions)
def get_suggestions(db: Session = Depends(get_db)):
    skills = db.query(models.Skill.name).order_by(models.Skill.name.asc()).all()
    categories = db.query(models.JobCategory.name).order_by(models.JobCategory.name.asc()).all()
    return {"skills": [row.name for row in skills], "categories": [row.name for row in categories]}
