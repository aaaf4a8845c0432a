from datetime import datetime, timezone

from sqlalchemy import (Boolean, Column, Date, DateTime, ForeignKey, Index, Integer,
                        String, Text, UniqueConstraint)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

USER_ROLES = ("student", "publisher", "admin")
USER_STATUSES = ("active", "blocked")
JOB_STATUSES = ("draft", "active", "closed")
APPLICATION_STATUSES = ("pending", "viewed", "accepted", "rejected")
TERMINAL_APPLICATION_STATUSES = ("accepted", "rejected")
REPORT_TYPES = ("user", "conversation", "app_problem")
REPORT_STATUSES = ("pending", "resolved", "dismissed")

STUDENT_PROFILE_FIELDS = (
    "university_name", "field_of_study", "year_of_study", "languages_spoken",
    "preferred_categories", "skills", "cv_url",
)
PUBLISHER_PROFILE_FIELDS = (
    "about", "industry", "website_url", "address", "phone_number",
    "facebook_url", "linkedin_url", "instagram_url",
)


def derive_display_status(status, application_deadline, today=None):
    """Return the status a job should be shown with.

    An active job whose application deadline has passed is reported as
    ``expired``. The value is computed on every read and never stored.
    """
    if today is None:
        today = datetime.now(timezone.utc).date()
    if status == "active" and application_deadline is not None and application_deadline < today:
        return "expired"
    return status


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False)
    status = Column(String(20), default="active", nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)

    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    # Publisher only
    company_name = Column(String(255), nullable=True)
    profile_image_url = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    student_profile = relationship("StudentProfile", back_populates="user", uselist=False, cascade="all, delete-orphan")
    publisher_profile = relationship("PublisherProfile", back_populates="user", uselist=False, cascade="all, delete-orphan")
    jobs = relationship("Job", back_populates="publisher", cascade="all, delete-orphan")
    applications = relationship("JobApplication", back_populates="student", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")

    reviews_written = relationship("CompanyReview", foreign_keys="CompanyReview.student_id",
                                   back_populates="student", cascade="all, delete-orphan")
    reviews_received = relationship("CompanyReview", foreign_keys="CompanyReview.publisher_id",
                                    back_populates="publisher", cascade="all, delete-orphan")

    conversations_as_one = relationship("Conversation", foreign_keys="Conversation.user_one_id",
                                        back_populates="user_one", cascade="all, delete-orphan")
    conversations_as_two = relationship("Conversation", foreign_keys="Conversation.user_two_id",
                                        back_populates="user_two", cascade="all, delete-orphan")

    reports_filed = relationship("Report", foreign_keys="Report.reporter_id",
                                 back_populates="reporter", cascade="all, delete-orphan")
    reports_received = relationship("Report", foreign_keys="Report.reported_user_id",
                                    back_populates="reported_user", cascade="all, delete-orphan")

    @property
    def display_name(self):
        if self.role == "publisher" and self.company_name:
            return self.company_name
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or self.email


class StudentProfile(Base):
    __tablename__ = "student_profiles"

    user_id = Column(Integer, ForeignKey("users.id"), primary_key=True)
    university_name = Column(String(255), nullable=True)
    field_of_study = Column(String(255), nullable=True)
    year_of_study = Column(String(50), nullable=True)
    languages_spoken = Column(Text, nullable=True)
    preferred_categories = Column(Text, nullable=True)
    skills = Column(Text, nullable=True)
    cv_url = Column(String(255), nullable=True)

    user = relationship("User", back_populates="student_profile")


class PublisherProfile(Base):
    __tablename__ = "publisher_profiles"

    user_id = Column(Integer, ForeignKey("users.id"), primary_key=True)
    about = Column(Text, nullable=True)
    industry = Column(String(255), nullable=True)
    website_url = Column(String(255), nullable=True)
    address = Column(String(255), nullable=True)
    phone_number = Column(String(50), nullable=True)
    facebook_url = Column(String(255), nullable=True)
    linkedin_url = Column(String(255), nullable=True)
    instagram_url = Column(String(255), nullable=True)

    user = relationship("User", back_populates="publisher_profile")


class JobCategory(Base):
    __tablename__ = "job_categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)


class Skill(Base):
    __tablename__ = "skills"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    publisher_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("job_categories.id"), nullable=True)
    title = Column(String(255), index=True, nullable=False)
    description = Column(Text, nullable=True)
    skills_required = Column(Text, nullable=True)
    job_type = Column(String(50), nullable=True)
    work_mode = Column(String(50), default="on-site")
    location = Column(String(255), nullable=True)
    # Free text: "5000", "5000 - 8000" or "Negotiable"
    payment_range = Column(String(100), nullable=True)
    vacancies = Column(Integer, default=1, nullable=False)
    application_deadline = Column(Date, nullable=True)
    status = Column(String(20), default="draft", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    publisher = relationship("User", back_populates="jobs")
    category = relationship("JobCategory")
    applications = relationship("JobApplication", back_populates="job", cascade="all, delete-orphan")

    @property
    def display_status(self):
        return derive_display_status(self.status, self.application_deadline)

    @property
    def category_name(self):
        return self.category.name if self.category else None

    @property
    def company_name(self):
        return self.publisher.company_name if self.publisher else None


class JobApplication(Base):
    __tablename__ = "job_applications"
    __table_args__ = (UniqueConstraint("student_id", "job_id", name="uq_application_student_job"),)

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    proposal = Column(Text, nullable=False)
    status = Column(String(20), default="pending", nullable=False)
    applied_at = Column(DateTime(timezone=True), server_default=func.now())

    student = relationship("User", back_populates="applications")
    job = relationship("Job", back_populates="applications")


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(Integer, primary_key=True, index=True)
    user_one_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    user_two_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user_one = relationship("User", foreign_keys=[user_one_id], back_populates="conversations_as_one")
    user_two = relationship("User", foreign_keys=[user_two_id], back_populates="conversations_as_two")
    job = relationship("Job")
    messages = relationship("Message", back_populates="conversation", cascade="all, delete-orphan",
                            order_by="Message.id")
    # Deleting a conversation keeps its reports but clears their conversation_id
    reports = relationship("Report", back_populates="conversation")

    def has_participant(self, user_id):
        return user_id in (self.user_one_id, self.user_two_id)

    def other_participant(self, user_id):
        return self.user_two if self.user_one_id == user_id else self.user_one


# Participants are stored smallest id first. A NULL job_id would never collide in a
# plain unique index, so job-less conversations are keyed on job 0.
Index(
    "uq_conversation_pair_job",
    Conversation.user_one_id,
    Conversation.user_two_id,
    func.coalesce(Conversation.job_id, 0),
    unique=True,
)


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    receiver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    message_text = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    conversation = relationship("Conversation", back_populates="messages")


class CompanyReview(Base):
    __tablename__ = "company_reviews"
    __table_args__ = (UniqueConstraint("student_id", "publisher_id", name="uq_review_student_publisher"),)

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    publisher_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    review_text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    student = relationship("User", foreign_keys=[student_id], back_populates="reviews_written")
    publisher = relationship("User", foreign_keys=[publisher_id], back_populates="reviews_received")


class Report(Base):
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, index=True)
    reporter_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    reported_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id", ondelete="SET NULL"), nullable=True)
    type = Column(String(20), nullable=False)
    reason = Column(Text, nullable=False)
    status = Column(String(20), default="pending", nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    reporter = relationship("User", foreign_keys=[reporter_id], back_populates="reports_filed")
    reported_user = relationship("User", foreign_keys=[reported_user_id], back_populates="reports_received")
    conversation = relationship("Conversation", back_populates="reports")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String(255), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="notifications")


class SiteSetting(Base):
    __tablename__ = "site_settings"

    setting_key = Column(String(100), primary_key=True)
    # JSON encoded
    setting_value = Column(Text, nullable=True)
