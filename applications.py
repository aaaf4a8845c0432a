import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from jobs import get_job_or_404
from notifications import notify_user
from sanitize import clean_text

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Applications"])


# --- Helper Functions ---
def applicant_row(application: models.JobApplication) -> schemas.Applicant:
    student = application.student
    profile = student.student_profile
    return schemas.Applicant(
        application_id=application.id,
        student_id=student.id,
        first_name=student.first_name,
        last_name=student.last_name,
        email=student.email,
        profile_image_url=student.profile_image_url,
        job_id=application.job_id,
        job_title=application.job.title,
        proposal=application.proposal,
        status=application.status,
        applied_at=application.applied_at,
        university_name=profile.university_name if profile else None,
        field_of_study=profile.field_of_study if profile else None,
        year_of_study=profile.year_of_study if profile else None,
        languages_spoken=profile.languages_spoken if profile else None,
        skills=profile.skills if profile else None,
        cv_url=profile.cv_url if profile else None,
    )


def get_owned_application(db: Session, application_id: int, publisher_id: int):
    application = db.query(models.JobApplication).filter(models.JobApplication.id == application_id).first()
    if not application:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found.")
    if application.job.publisher_id != publisher_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only manage applications for your own jobs.")
    return application


def application_notification(status_value: str, job_title: str) -> str:
    if status_value == "accepted":
        return f'Congratulations! Your application for the job "{job_title}" has been accepted.'
    return f"Your application for the job \"{job_title}\" has been updated to '{status_value}'."


# --- API Endpoints ---
@router.post("/applications/", response_model=schemas.Application, status_code=status.HTTP_201_CREATED)
def submit_application(application_data: schemas.ApplicationCreate, db: Session = Depends(get_db)):
    student = db.query(models.User).filter(models.User.id == application_data.student_id).first()
    if not student:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found.")
    if student.role != "student":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only students can apply for jobs.")

    job = get_job_or_404(db, application_data.job_id)
    if job.display_status != "active":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="This job is not accepting applications.")

    proposal = clean_text(application_data.proposal)
    if not proposal:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Proposal cannot be empty.")

    already_applied = db.query(models.JobApplication.id).filter(
        models.JobApplication.student_id == student.id,
        models.JobApplication.job_id == job.id,
    ).first()
    if already_applied:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You have already applied for this job.")

    db_application = models.JobApplication(student_id=student.id, job_id=job.id, proposal=proposal, status="pending")
    db.add(db_application)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You have already applied for this job.")
    db.refresh(db_application)

    logger.info("Student %s applied to job %s", student.id, job.id)
    return db_application


@router.get("/jobs/{job_id}/applications", response_model=List[schemas.Applicant])
def list_job_applicants(job_id: int, publisher_id: int = Query(...), db: Session = Depends(get_db)):
    """Applicant list for a job's owner. Opening it marks pending applications as viewed."""
    job = get_job_or_404(db, job_id)
    if job.publisher_id != publisher_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only view applicants for your own jobs.")

    viewed = (
        db.query(models.JobApplication)
        .filter(models.JobApplication.job_id == job_id, models.JobApplication.status == "pending")
        .update({models.JobApplication.status: "viewed"}, synchronize_session=False)
    )
    if viewed:
        logger.info("Marked %s application(s) for job %s as viewed", viewed, job_id)

    applications = (
        db.query(models.JobApplication)
        .filter(models.JobApplication.job_id == job_id)
        .order_by(models.JobApplication.applied_at.desc(), models.JobApplication.id.desc())
        .all()
    )
    rows = [applicant_row(a) for a in applications]
    db.commit()
    return rows


@router.get("/applications/{application_id}", response_model=schemas.Applicant)
def get_application(application_id: int, publisher_id: int = Query(...), db: Session = Depends(get_db)):
    application = get_owned_application(db, application_id, publisher_id)
    if application.status == "pending":
        application.status = "viewed"
        db.commit()
        logger.info("Application %s viewed by publisher %s", application_id, publisher_id)
    return applicant_row(application)


@router.get("/publishers/{publisher_id}/applications", response_model=List[schemas.Applicant])
def list_publisher_applications(
    publisher_id: int,
    job_id: Optional[int] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """All applicants across a publisher's jobs. Listing here does not mark anything viewed."""
    query = (
        db.query(models.JobApplication)
        .join(models.Job, models.JobApplication.job_id == models.Job.id)
        .join(models.User, models.JobApplication.student_id == models.User.id)
        .outerjoin(models.StudentProfile, models.StudentProfile.user_id == models.User.id)
        .filter(models.Job.publisher_id == publisher_id)
    )
    if job_id is not None:
        query = query.filter(models.JobApplication.job_id == job_id)
    if status_filter and status_filter != "All":
        query = query.filter(models.JobApplication.status == status_filter)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            models.User.first_name.ilike(pattern),
            models.User.last_name.ilike(pattern),
            models.Job.title.ilike(pattern),
            models.StudentProfile.skills.ilike(pattern),
        ))
    applications = query.order_by(models.JobApplication.applied_at.desc(), models.JobApplication.id.desc()).all()
    return [applicant_row(a) for a in applications]


@router.patch("/applications/{application_id}/status", response_model=schemas.Application)
def update_application_status(application_id: int, update: schemas.ApplicationStatusUpdate, db: Session = Depends(get_db)):
    if update.status not in models.APPLICATION_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid status provided.")

    application = get_owned_application(db, application_id, update.publisher_id)
    current = application.status
    if current in models.TERMINAL_APPLICATION_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"This application has already been {current} and can no longer be changed.",
        )

    if update.status != current:
        application.status = update.status
        if update.status in models.TERMINAL_APPLICATION_STATUSES:
            notify_user(
                db,
                application.student_id,
                f"application_{update.status}",
                application_notification(update.status, application.job.title),
                "/applied-jobs",
            )
        db.commit()
        db.refresh(application)
        logger.info("Application %s moved from %s to %s", application_id, current, update.status)
    return application


@router.get("/students/{student_id}/applications", response_model=List[schemas.StudentApplication])
def list_student_applications(student_id: int, db: Session = Depends(get_db)):
    applications = (
        db.query(models.JobApplication)
        .filter(models.JobApplication.student_id == student_id)
        .order_by(models.JobApplication.applied_at.desc(), models.JobApplication.id.desc())
        .all()
    )
    return [
        schemas.StudentApplication(
            application_id=a.id,
            job_id=a.job_id,
            job_title=a.job.title,
            job_status=a.job.display_status,
            publisher_name=a.job.publisher.display_name,
            applied_at=a.applied_at,
            application_status=a.status,
        )
        for a in applications
    ]


@router.get("/students/{student_id}/applied-job-ids", response_model=List[int])
def list_applied_job_ids(student_id: int, db: Session = Depends(get_db)):
    rows = db.query(models.JobApplication.job_id).filter(models.JobApplication.student_id == student_id).all()
    return [row.job_id for row in rows]


@router.get("/students/{student_id}/stats", response_model=schemas.StudentStats)
def get_student_stats(student_id: int, db: Session = Depends(get_db)):
    statuses = [
        row.status
        for row in db.query(models.JobApplication.status).filter(models.JobApplication.student_id == student_id).all()
    ]
    return schemas.StudentStats(
        applications_sent=len(statuses),
        pending_applications=statuses.count("pending"),
        viewed_applications=statuses.count("viewed"),
        offers_received=statuses.count("accepted"),
    )
