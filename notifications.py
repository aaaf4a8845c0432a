import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Notifications"])


# --- Helper Functions ---
def notify_user(db: Session, user_id: int, type: str, message: str, link: Optional[str] = None):
    """Queue a notification on the caller's session; the caller commits."""
    notification = models.Notification(user_id=user_id, type=type, message=message, link=link)
    db.add(notification)
    return notification


def notify_admins(db: Session, type: str, message: str, link: Optional[str] = None):
    admin_ids = [row.id for row in db.query(models.User.id).filter(models.User.role == "admin").all()]
    for admin_id in admin_ids:
        notify_user(db, admin_id, type, message, link)
    return len(admin_ids)


# --- API Endpoints ---
@router.get("/users/{user_id}/notifications", response_model=schemas.NotificationList)
def list_notifications(user_id: int, db: Session = Depends(get_db)):
    notifications = (
        db.query(models.Notification)
        .filter(models.Notification.user_id == user_id)
        .order_by(models.Notification.created_at.desc(), models.Notification.id.desc())
        .all()
    )
    unread = sum(1 for n in notifications if not n.is_read)
    return {"unread_count": unread, "notifications": notifications}


@router.patch("/notifications/{notification_id}/read", response_model=schemas.MessageResponse)
def mark_notification_read(notification_id: int, db: Session = Depends(get_db)):
    notification = db.query(models.Notification).filter(models.Notification.id == notification_id).first()
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found.")
    notification.is_read = True
    db.commit()
    return {"message": "Notification marked as read."}
