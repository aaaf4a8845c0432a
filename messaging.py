"""Direct messaging between users.

A conversation belongs to an unordered pair of users and, optionally, a job.
The pair is stored smallest id first, so "find or create" is a plain lookup on
``(user_one_id, user_two_id, job_id)`` backed by a unique index that treats a
missing job as job 0.

Messages start unread and flip to read only when their receiver loads the
conversation. The admin views below never touch the read flag.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

import models
import schemas
from auth import get_current_admin_user
from database import get_db
from sanitize import clean_text

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Messaging"])


# --- Helper Functions ---
def canonical_pair(user_a: int, user_b: int):
    """Order two participant ids the way conversations store them."""
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


def find_conversation(db: Session, user_a: int, user_b: int, job_id=None):
    user_one_id, user_two_id = canonical_pair(user_a, user_b)
    query = db.query(models.Conversation).filter(
        models.Conversation.user_one_id == user_one_id,
        models.Conversation.user_two_id == user_two_id,
    )
    if job_id is None:
        query = query.filter(models.Conversation.job_id.is_(None))
    else:
        query = query.filter(models.Conversation.job_id == job_id)
    return query.first()


def resolve_conversation(db: Session, user_a: int, user_b: int, job_id=None):
    """Return the conversation for the pair and job, creating it if needed.

    The insert runs in a SAVEPOINT. If a concurrent request created the same
    conversation first, the unique index rejects ours and the existing row
    is returned instead.
    """
    conversation = find_conversation(db, user_a, user_b, job_id)
    if conversation:
        return conversation

    user_one_id, user_two_id = canonical_pair(user_a, user_b)
    try:
        with db.begin_nested():
            conversation = models.Conversation(user_one_id=user_one_id, user_two_id=user_two_id, job_id=job_id)
            db.add(conversation)
            db.flush()
    except IntegrityError:
        logger.info("Conversation for users %s/%s job %s created concurrently, reusing it",
                    user_one_id, user_two_id, job_id)
        conversation = find_conversation(db, user_a, user_b, job_id)
        if conversation is None:
            raise
        return conversation

    logger.info("Created conversation %s for users %s/%s job %s",
                conversation.id, user_one_id, user_two_id, job_id)
    return conversation


def get_conversation_or_404(db: Session, conversation_id: int):
    conversation = db.query(models.Conversation).filter(models.Conversation.id == conversation_id).first()
    if not conversation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found.")
    return conversation


def ordered_messages(db: Session, conversation_id: int):
    return (
        db.query(models.Message)
        .filter(models.Message.conversation_id == conversation_id)
        .order_by(models.Message.created_at.asc(), models.Message.id.asc())
        .all()
    )


def mark_conversation_read(db: Session, conversation_id: int, user_id: int):
    """Flip every unread message addressed to ``user_id`` in the conversation."""
    updated = (
        db.query(models.Message)
        .filter(
            models.Message.conversation_id == conversation_id,
            models.Message.receiver_id == user_id,
            models.Message.is_read.is_(False),
        )
        .update({models.Message.is_read: True}, synchronize_session=False)
    )
    if updated:
        logger.info("Marked %s message(s) read in conversation %s for user %s", updated, conversation_id, user_id)
    return updated


def last_message_subqueries(db: Session):
    """Correlated subqueries giving the newest message text and time per conversation."""
    newest_first = (models.Message.created_at.desc(), models.Message.id.desc())
    last_message = (
        db.query(models.Message.message_text)
        .filter(models.Message.conversation_id == models.Conversation.id)
        .order_by(*newest_first)
        .limit(1)
        .correlate(models.Conversation)
        .scalar_subquery()
    )
    last_message_time = (
        db.query(models.Message.created_at)
        .filter(models.Message.conversation_id == models.Conversation.id)
        .order_by(*newest_first)
        .limit(1)
        .correlate(models.Conversation)
        .scalar_subquery()
    )
    return last_message, last_message_time


def _newest_first(rows, time_key):
    # Conversations without messages sort last
    with_time = [r for r in rows if time_key(r) is not None]
    without_time = [r for r in rows if time_key(r) is None]
    with_time.sort(key=time_key, reverse=True)
    return with_time + without_time


# --- API Endpoints ---
@router.post("/messages/", response_model=schemas.MessageSent, status_code=status.HTTP_201_CREATED)
def send_message(payload: schemas.MessageCreate, db: Session = Depends(get_db)):
    """Append a message, creating the conversation on first contact."""
    message_text = clean_text(payload.message_text)
    if not message_text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message cannot be empty.")
    if payload.sender_id == payload.receiver_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot send a message to yourself.")

    participants = db.query(models.User.id).filter(
        models.User.id.in_([payload.sender_id, payload.receiver_id])
    ).count()
    if participants != 2:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sender or receiver not found.")
    if payload.job_id is not None:
        if not db.query(models.Job.id).filter(models.Job.id == payload.job_id).first():
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found.")

    try:
        conversation = resolve_conversation(db, payload.sender_id, payload.receiver_id, payload.job_id)
        db.add(models.Message(
            conversation_id=conversation.id,
            sender_id=payload.sender_id,
            receiver_id=payload.receiver_id,
            message_text=message_text,
        ))
        conversation_id = conversation.id
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to send message from %s to %s", payload.sender_id, payload.receiver_id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to send message.")

    return {"message": "Message sent successfully.", "conversation_id": conversation_id}


@router.get("/conversations/{conversation_id}/messages", response_model=List[schemas.Message])
def get_messages(conversation_id: int, user_id: int = Query(...), db: Session = Depends(get_db)):
    """Mark the caller's unread messages as read, then return the whole thread."""
    conversation = get_conversation_or_404(db, conversation_id)
    if not conversation.has_participant(user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not part of this conversation.")

    try:
        mark_conversation_read(db, conversation_id, user_id)
        messages = [schemas.Message.model_validate(m) for m in ordered_messages(db, conversation_id)]
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return messages


@router.get("/users/{user_id}/conversations", response_model=List[schemas.ConversationSummary])
def list_conversations(user_id: int, db: Session = Depends(get_db)):
    last_message, last_message_time = last_message_subqueries(db)
    unread_count = (
        db.query(func.count(models.Message.id))
        .filter(
            models.Message.conversation_id == models.Conversation.id,
            models.Message.receiver_id == user_id,
            models.Message.is_read.is_(False),
        )
        .correlate(models.Conversation)
        .scalar_subquery()
    )
    rows = (
        db.query(models.Conversation, last_message, last_message_time, unread_count)
        .filter(or_(models.Conversation.user_one_id == user_id, models.Conversation.user_two_id == user_id))
        .all()
    )

    summaries = []
    for conversation, text, sent_at, unread in rows:
        other = conversation.other_participant(user_id)
        summaries.append(schemas.ConversationSummary(
            conversation_id=conversation.id,
            job_id=conversation.job_id,
            job_title=conversation.job.title if conversation.job else None,
            other_user_id=other.id,
            first_name=other.first_name,
            last_name=other.last_name,
            company_name=other.company_name,
            profile_image_url=other.profile_image_url,
            last_message=text,
            last_message_time=sent_at,
            unread_count=unread or 0,
        ))
    return _newest_first(summaries, lambda s: s.last_message_time)


@router.get("/users/{user_id}/unread-count", response_model=schemas.UnreadCount)
def get_unread_count(user_id: int, db: Session = Depends(get_db)):
    count = (
        db.query(func.count(models.Message.id))
        .filter(models.Message.receiver_id == user_id, models.Message.is_read.is_(False))
        .scalar()
    )
    return {"unread_count": count or 0}


# --- Admin (read-only) ---
@router.get("/admin/conversations", response_model=List[schemas.AdminConversation], tags=["Admin"])
def list_all_conversations(db: Session = Depends(get_db), admin_user: models.User = Depends(get_current_admin_user)):
    last_message, last_message_time = last_message_subqueries(db)
    rows = db.query(models.Conversation, last_message, last_message_time).all()

    conversations = []
    for conversation, text, sent_at in rows:
        one, two = conversation.user_one, conversation.user_two
        conversations.append(schemas.AdminConversation(
            conversation_id=conversation.id,
            job_id=conversation.job_id,
            job_title=conversation.job.title if conversation.job else None,
            user_one_id=one.id,
            user_one_first_name=one.first_name,
            user_one_last_name=one.last_name,
            user_one_company_name=one.company_name,
            user_one_profile_image=one.profile_image_url,
            user_two_id=two.id,
            user_two_first_name=two.first_name,
            user_two_last_name=two.last_name,
            user_two_company_name=two.company_name,
            user_two_profile_image=two.profile_image_url,
            last_message=text,
            last_message_time=sent_at,
        ))
    return _newest_first(conversations, lambda c: c.last_message_time)


@router.get("/admin/conversations/{conversation_id}/messages", response_model=List[schemas.Message], tags=["Admin"])
def get_messages_admin(conversation_id: int, db: Session = Depends(get_db),
                       admin_user: models.User = Depends(get_current_admin_user)):
    """Read a conversation without changing any read flags."""
    get_conversation_or_404(db, conversation_id)
    return ordered_messages(db, conversation_id)
