import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

import models
import schemas
from auth import get_current_admin_user
from database import get_db
from jobs import get_job_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])

PROFILE_FIELDS = {
    "student_profile": models.STUDENT_PROFILE_FIELDS,
    "publisher_profile": models.PUBLISHER_PROFILE_FIELDS,
}


def admin_user_row(user: models.User) -> schemas.AdminUser:
    row = schemas.User.model_validate(user).model_dump()
    for relation, fields in PROFILE_FIELDS.items():
        profile = getattr(user, relation)
        for field in fields:
            row[field] = getattr(profile, field) if profile else None
    return schemas.AdminUser(**row)


def get_user_or_404(db: Session, user_id: int):
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")
    return user


# --- Users ---
@router.get("/users", response_model=List[schemas.AdminUser])
def list_users(search: Optional[str] = None, role: Optional[str] = None, db: Session = Depends(get_db),
               admin_user: models.User = Depends(get_current_admin_user)):
    query = db.query(models.User)
    if role and role != "All" and role in models.USER_ROLES:
        query = query.filter(models.User.role == role)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            models.User.first_name.ilike(pattern),
            models.User.last_name.ilike(pattern),
            models.User.email.ilike(pattern),
            models.User.company_name.ilike(pattern),
        ))
    users = query.order_by(models.User.created_at.desc(), models.User.id.desc()).all()
    return [admin_user_row(u) for u in users]


@router.patch("/users/{user_id}", response_model=schemas.User)
def update_user_status(user_id: int, update: schemas.UserStatusUpdate, db: Session = Depends(get_db),
                       admin_user: models.User = Depends(get_current_admin_user)):
    """Block/unblock a user or change their verification flag."""
    if update.status is None and update.is_verified is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid fields provided for update.")
    if update.status is not None and update.status not in models.USER_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid status provided. Must be 'active' or 'blocked'.")

    user = get_user_or_404(db, user_id)
    if user.id == admin_user.id and update.status == "blocked":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot block your own account.")

    if update.status is not None:
        user.status = update.status
    if update.is_verified is not None:
        user.is_verified = update.is_verified
    db.commit()
    db.refresh(user)
    logger.info("Admin %s updated user %s: status=%s is_verified=%s",
                admin_user.id, user_id, user.status, user.is_verified)
    return user


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: int, db: Session = Depends(get_db), admin_user: models.User = Depends(get_current_admin_user)):
    """Remove a user together with their profiles, jobs, applications, conversations and reports."""
    if user_id == admin_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own account.")
    user = get_user_or_404(db, user_id)
    db.delete(user)
    db.commit()
    logger.info("Admin %s deleted user %s", admin_user.id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Jobs ---
@router.get("/jobs", response_model=List[schemas.AdminJob])
def list_all_jobs(status_filter: Optional[str] = Query(None, alias="status"), db: Session = Depends(get_db),
                  admin_user: models.User = Depends(get_current_admin_user)):
    query = db.query(models.Job)
    if status_filter:
        query = query.filter(models.Job.status == status_filter)
    jobs = query.order_by(models.Job.created_at.desc(), models.Job.id.desc()).all()
    return [
        schemas.AdminJob(
            id=job.id,
            title=job.title,
            status=job.status,
            display_status=job.display_status,
            application_deadline=job.application_deadline,
            created_at=job.created_at,
            company_name=job.publisher.company_name,
            first_name=job.publisher.first_name,
            last_name=job.publisher.last_name,
            category_name=job.category_name,
        )
        for job in jobs
    ]


@router.patch("/jobs/{job_id}/status", response_model=schemas.Job)
def update_job_status(job_id: int, update: schemas.JobStatusUpdate, db: Session = Depends(get_db),
                      admin_user: models.User = Depends(get_current_admin_user)):
    """Approve ('active') or reject ('closed') a job posting."""
    if update.status not in ("active", "closed"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid status provided for this action.")
    job = get_job_or_404(db, job_id)
    previous = job.status
    job.status = update.status
    db.commit()
    db.refresh(job)
    logger.info("Admin %s changed job %s from %s to %s", admin_user.id, job_id, previous, update.status)
    return job


# --- Dashboard ---
@router.get("/stats", response_model=schemas.AdminStats)
def get_admin_stats(db: Session = Depends(get_db), admin_user: models.User = Depends(get_current_admin_user)):
    users = db.query(models.User)
    return schemas.AdminStats(
        total_users=users.count(),
        total_jobs=db.query(models.Job).count(),
        jobs_pending_approval=db.query(models.Job).filter(models.Job.status == "draft").count(),
        total_students=users.filter(models.User.role == "student").count(),
        total_publishers=users.filter(models.User.role == "publisher").count(),
        unverified_users=users.filter(models.User.is_verified.is_(False), models.User.role != "admin").count(),
        pending_reports=db.query(models.Report).filter(models.Report.status == "pending").count(),
    )
