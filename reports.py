import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

import models
import schemas
from auth import get_current_admin_user
from database import get_db
from notifications import notify_admins
from sanitize import clean_text

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Reports"])


def _newest_reports(db: Session, *types):
    return (
        db.query(models.Report)
        .filter(models.Report.type.in_(types))
        .order_by(models.Report.created_at.desc(), models.Report.id.desc())
        .all()
    )


@router.post("/reports/", response_model=schemas.Report, status_code=status.HTTP_201_CREATED)
def create_report(report_data: schemas.ReportCreate, db: Session = Depends(get_db)):
    if report_data.type not in models.REPORT_TYPES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid report type.")
    reason = clean_text(report_data.reason)
    if not reason:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please describe the problem.")
    if report_data.type != "app_problem" and report_data.reported_user_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A reported user is required for this report type.")

    reporter = db.query(models.User).filter(models.User.id == report_data.reporter_id).first()
    if not reporter:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reporter not found.")
    if report_data.reported_user_id is not None:
        if not db.query(models.User.id).filter(models.User.id == report_data.reported_user_id).first():
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reported user not found.")
    if report_data.conversation_id is not None:
        conversation = db.query(models.Conversation).filter(models.Conversation.id == report_data.conversation_id).first()
        if not conversation:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found.")
        if not conversation.has_participant(reporter.id):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only report conversations you are part of.")
        if report_data.reported_user_id != conversation.other_participant(reporter.id).id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                detail="The reported user must be the other person in the conversation.")

    report = models.Report(
        reporter_id=reporter.id,
        reported_user_id=report_data.reported_user_id,
        conversation_id=report_data.conversation_id,
        type=report_data.type,
        reason=reason,
    )
    db.add(report)
    notify_admins(db, "new_report", f"New {report_data.type.replace('_', ' ')} report from {reporter.display_name}.", "/report-management")
    db.commit()
    db.refresh(report)
    logger.info("Report %s (%s) filed by user %s", report.id, report.type, reporter.id)
    return report


# --- Admin ---
@router.get("/admin/reports", response_model=schemas.ReportsOverview, tags=["Admin"])
def list_reports(db: Session = Depends(get_db), admin_user: models.User = Depends(get_current_admin_user)):
    user_reports = []
    for report in _newest_reports(db, "user", "conversation"):
        reporter, reported = report.reporter, report.reported_user
        if reported is None:
            continue
        user_reports.append(schemas.UserReport(
            id=report.id,
            type=report.type,
            reason=report.reason,
            status=report.status,
            created_at=report.created_at,
            conversation_id=report.conversation_id,
            reporter_id=reporter.id,
            reporter_first_name=reporter.first_name,
            reporter_last_name=reporter.last_name,
            reporter_role=reporter.role,
            reported_id=reported.id,
            reported_first_name=reported.first_name,
            reported_last_name=reported.last_name,
            reported_role=reported.role,
        ))

    app_problem_reports = [
        schemas.AppProblemReport(
            id=report.id,
            type=report.type,
            reason=report.reason,
            status=report.status,
            created_at=report.created_at,
            reporter_id=report.reporter.id,
            reporter_first_name=report.reporter.first_name,
            reporter_last_name=report.reporter.last_name,
            reporter_role=report.reporter.role,
        )
        for report in _newest_reports(db, "app_problem")
    ]
    return schemas.ReportsOverview(user_reports=user_reports, app_problem_reports=app_problem_reports)


@router.get("/admin/reports/pending-count", response_model=schemas.PendingCount, tags=["Admin"])
def get_pending_report_count(db: Session = Depends(get_db), admin_user: models.User = Depends(get_current_admin_user)):
    count = db.query(models.Report).filter(models.Report.status == "pending").count()
    return {"pending_count": count}


@router.patch("/admin/reports/{report_id}", response_model=schemas.Report, tags=["Admin"])
def update_report_status(report_id: int, update: schemas.ReportStatusUpdate, db: Session = Depends(get_db),
                         admin_user: models.User = Depends(get_current_admin_user)):
    if update.status not in models.REPORT_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid status provided.")
    report = db.query(models.Report).filter(models.Report.id == report_id).first()
    if not report:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found.")

    report.status = update.status
    db.commit()
    db.refresh(report)
    logger.info("Admin %s set report %s to %s", admin_user.id, report_id, update.status)
    return report
