import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from jobs import not_expired
from notifications import notify_user
from sanitize import clean_text

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Reviews"])


def review_row(review: models.CompanyReview) -> schemas.Review:
    return schemas.Review(
        id=review.id,
        student_id=review.student_id,
        publisher_id=review.publisher_id,
        rating=review.rating,
        review_text=review.review_text,
        created_at=review.created_at,
        student_first_name=review.student.first_name,
        student_last_name=review.student.last_name,
    )


@router.post("/reviews/", response_model=schemas.Review, status_code=status.HTTP_201_CREATED)
def create_review(review_data: schemas.ReviewCreate, db: Session = Depends(get_db)):
    """A student rates a company once; the publisher is notified."""
    review_text = clean_text(review_data.review_text)
    if not review_text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Review text cannot be empty.")

    student = db.query(models.User).filter(models.User.id == review_data.student_id).first()
    publisher = db.query(models.User).filter(models.User.id == review_data.publisher_id).first()
    if not student or not publisher:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student or publisher not found.")
    if student.role != "student" or publisher.role != "publisher":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only students can review publishers.")

    existing = db.query(models.CompanyReview.id).filter(
        models.CompanyReview.student_id == student.id,
        models.CompanyReview.publisher_id == publisher.id,
    ).first()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You have already submitted a review for this publisher.")

    review = models.CompanyReview(
        student_id=student.id,
        publisher_id=publisher.id,
        rating=review_data.rating,
        review_text=review_text,
    )
    db.add(review)
    notify_user(
        db,
        publisher.id,
        "new_review",
        f"{student.display_name} has left a {review_data.rating}-star review for your company.",
        f"/student-profile/{student.id}",
    )
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You have already submitted a review for this publisher.")
    db.refresh(review)
    logger.info("Student %s reviewed publisher %s (%s stars)", student.id, publisher.id, review.rating)
    return review_row(review)


@router.get("/publishers/{publisher_id}/reviews", response_model=schemas.PublisherReviews)
def list_publisher_reviews(publisher_id: int, db: Session = Depends(get_db)):
    reviews = (
        db.query(models.CompanyReview)
        .filter(models.CompanyReview.publisher_id == publisher_id)
        .order_by(models.CompanyReview.created_at.desc(), models.CompanyReview.id.desc())
        .all()
    )
    average = round(sum(r.rating for r in reviews) / len(reviews), 2) if reviews else None
    return schemas.PublisherReviews(
        average_rating=average,
        review_count=len(reviews),
        reviews=[review_row(r) for r in reviews],
    )


@router.get("/publishers/{publisher_id}/profile", response_model=schemas.CompanyProfile, tags=["Publishers"])
def get_company_profile(publisher_id: int, db: Session = Depends(get_db)):
    """Public company page: details with rating summary, open jobs and the five latest reviews."""
    publisher = db.query(models.User).filter(models.User.id == publisher_id, models.User.role == "publisher").first()
    if not publisher:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Company not found.")

    average, review_count = (
        db.query(func.avg(models.CompanyReview.rating), func.count(models.CompanyReview.id))
        .filter(models.CompanyReview.publisher_id == publisher_id)
        .one()
    )
    profile = publisher.publisher_profile
    details = schemas.CompanyDetails(
        id=publisher.id,
        first_name=publisher.first_name,
        last_name=publisher.last_name,
        email=publisher.email,
        company_name=publisher.company_name,
        profile_image_url=publisher.profile_image_url,
        average_rating=round(float(average), 2) if average is not None else None,
        review_count=review_count,
        **{field: getattr(profile, field) if profile else None for field in models.PUBLISHER_PROFILE_FIELDS},
    )

    jobs = (
        db.query(models.Job)
        .filter(models.Job.publisher_id == publisher_id, models.Job.status == "active", not_expired())
        .order_by(models.Job.created_at.desc(), models.Job.id.desc())
        .all()
    )
    latest_reviews = (
        db.query(models.CompanyReview)
        .filter(models.CompanyReview.publisher_id == publisher_id)
        .order_by(models.CompanyReview.created_at.desc(), models.CompanyReview.id.desc())
        .limit(5)
        .all()
    )
    return schemas.CompanyProfile(
        details=details,
        jobs=[
            schemas.CompanyJob(
                id=job.id,
                title=job.title,
                category=job.category_name,
                job_type=job.job_type,
                payment_range=job.payment_range,
                created_at=job.created_at,
            )
            for job in jobs
        ],
        reviews=[review_row(r) for r in latest_reviews],
    )
