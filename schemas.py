from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import date, datetime

# --- Token Schemas for Authentication ---
class Token(BaseModel):
    access_token: str
    token_type: str


class MessageResponse(BaseModel):
    """Plain acknowledgement returned by write endpoints."""
    message: str


# --- User Schemas ---
class UserBase(BaseModel):
    """Shared fields used in user-related schemas."""
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company_name: Optional[str] = None


class UserCreate(UserBase):
    """Schema for user registration."""
    password: str
    role: str


class User(UserBase):
    """Schema for returning user data (excluding password)."""
    id: int
    role: str
    status: str
    is_verified: bool
    profile_image_url: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdminUser(User):
    """User row for the admin panel, flattened with both profile tables."""
    university_name: Optional[str] = None
    field_of_study: Optional[str] = None
    year_of_study: Optional[str] = None
    languages_spoken: Optional[str] = None
    preferred_categories: Optional[str] = None
    skills: Optional[str] = None
    cv_url: Optional[str] = None
    about: Optional[str] = None
    industry: Optional[str] = None
    website_url: Optional[str] = None
    address: Optional[str] = None
    phone_number: Optional[str] = None
    facebook_url: Optional[str] = None
    linkedin_url: Optional[str] = None
    instagram_url: Optional[str] = None


class UserStatusUpdate(BaseModel):
    status: Optional[str] = None
    is_verified: Optional[bool] = None


# --- Job Schemas ---
class Category(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class Job(BaseModel):
    """Schema for returning job data."""
    id: int
    publisher_id: int
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    company_name: Optional[str] = None
    title: str
    description: Optional[str] = None
    skills_required: Optional[str] = None
    job_type: Optional[str] = None
    work_mode: Optional[str] = None
    location: Optional[str] = None
    payment_range: Optional[str] = None
    vacancies: int
    application_deadline: Optional[date] = None
    status: str
    display_status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class JobDetail(Job):
    accepted_count: int


class RecommendedJob(Job):
    recommendation_score: int
    application_status: Optional[str] = None


class Suggestions(BaseModel):
    """Known skill and category names, used to autocomplete profile forms."""
    skills: List[str]
    categories: List[str]


class PublisherJob(BaseModel):
    id: int
    title: str
    status: str
    display_status: str
    vacancies: int
    application_deadline: Optional[date] = None
    created_at: Optional[datetime] = None
    application_count: int
    accepted_count: int


class AdminJob(BaseModel):
    id: int
    title: str
    status: str
    display_status: str
    application_deadline: Optional[date] = None
    created_at: Optional[datetime] = None
    company_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    category_name: Optional[str] = None


class JobStatusUpdate(BaseModel):
    status: str


class RecentApplicant(BaseModel):
    student_id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    job_title: str
    applied_at: Optional[datetime] = None


class JobOverview(BaseModel):
    id: int
    title: str
    status: str
    display_status: str
    application_count: int


class PublisherStats(BaseModel):
    active_jobs: int
    total_applicants: int
    new_applicants_today: int
    pending_applicants: int
    recent_applicants: List[RecentApplicant]
    job_overview: List[JobOverview]


# --- Application Schemas ---
class ApplicationCreate(BaseModel):
    """Schema for creating a new job application."""
    student_id: int
    job_id: int
    proposal: str


class Application(BaseModel):
    id: int
    student_id: int
    job_id: int
    proposal: str
    status: str
    applied_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Applicant(BaseModel):
    """An application as seen by the publisher who owns the job."""
    application_id: int
    student_id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    profile_image_url: Optional[str] = None
    job_id: int
    job_title: str
    proposal: str
    status: str
    applied_at: Optional[datetime] = None
    university_name: Optional[str] = None
    field_of_study: Optional[str] = None
    year_of_study: Optional[str] = None
    languages_spoken: Optional[str] = None
    skills: Optional[str] = None
    cv_url: Optional[str] = None


class ApplicationStatusUpdate(BaseModel):
    publisher_id: int
    status: str


class StudentApplication(BaseModel):
    application_id: int
    job_id: int
    job_title: str
    job_status: str
    publisher_name: Optional[str] = None
    applied_at: Optional[datetime] = None
    application_status: str


class StudentStats(BaseModel):
    applications_sent: int
    pending_applications: int
    viewed_applications: int
    offers_received: int


# --- Messaging Schemas ---
class MessageCreate(BaseModel):
    """A chat message. ``job_id`` must be present but may be null."""
    sender_id: int
    receiver_id: int
    job_id: Optional[int]
    message_text: str


class MessageSent(BaseModel):
    message: str
    conversation_id: int


class Message(BaseModel):
    id: int
    conversation_id: int
    sender_id: int
    receiver_id: int
    message_text: str
    is_read: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ConversationSummary(BaseModel):
    conversation_id: int
    job_id: Optional[int] = None
    job_title: Optional[str] = None
    other_user_id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    last_message: Optional[str] = None
    last_message_time: Optional[datetime] = None
    unread_count: int


class AdminConversation(BaseModel):
    conversation_id: int
    job_id: Optional[int] = None
    job_title: Optional[str] = None
    user_one_id: int
    user_one_first_name: Optional[str] = None
    user_one_last_name: Optional[str] = None
    user_one_company_name: Optional[str] = None
    user_one_profile_image: Optional[str] = None
    user_two_id: int
    user_two_first_name: Optional[str] = None
    user_two_last_name: Optional[str] = None
    user_two_company_name: Optional[str] = None
    user_two_profile_image: Optional[str] = None
    last_message: Optional[str] = None
    last_message_time: Optional[datetime] = None


class UnreadCount(BaseModel):
    unread_count: int


# --- Review Schemas ---
class ReviewCreate(BaseModel):
    student_id: int
    publisher_id: int
    rating: int = Field(ge=1, le=5)
    review_text: str


class Review(BaseModel):
    id: int
    student_id: int
    publisher_id: int
    rating: int
    review_text: str
    created_at: Optional[datetime] = None
    student_first_name: Optional[str] = None
    student_last_name: Optional[str] = None


class PublisherReviews(BaseModel):
    average_rating: Optional[float] = None
    review_count: int
    reviews: List[Review]


# --- Report Schemas ---
class ReportCreate(BaseModel):
    reporter_id: int
    type: str
    reason: str
    reported_user_id: Optional[int] = None
    conversation_id: Optional[int] = None


class Report(BaseModel):
    id: int
    reporter_id: int
    reported_user_id: Optional[int] = None
    conversation_id: Optional[int] = None
    type: str
    reason: str
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AppProblemReport(BaseModel):
    id: int
    type: str
    reason: str
    status: str
    created_at: Optional[datetime] = None
    reporter_id: int
    reporter_first_name: Optional[str] = None
    reporter_last_name: Optional[str] = None
    reporter_role: str


class UserReport(AppProblemReport):
    conversation_id: Optional[int] = None
    reported_id: int
    reported_first_name: Optional[str] = None
    reported_last_name: Optional[str] = None
    reported_role: str


class ReportsOverview(BaseModel):
    user_reports: List[UserReport] = Field(serialization_alias="userReports")
    app_problem_reports: List[AppProblemReport] = Field(serialization_alias="appProblemReports")


class ReportStatusUpdate(BaseModel):
    status: str


class PendingCount(BaseModel):
    pending_count: int


# --- Admin Schemas ---
class AdminStats(BaseModel):
    total_users: int
    total_jobs: int
    jobs_pending_approval: int
    total_students: int
    total_publishers: int
    unverified_users: int
    pending_reports: int


# --- Notification Schemas ---
class Notification(BaseModel):
    id: int
    user_id: int
    type: str
    message: str
    link: Optional[str] = None
    is_read: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NotificationList(BaseModel):
    unread_count: int
    notifications: List[Notification]


# --- Company Profile Schemas ---
class CompanyDetails(BaseModel):
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    company_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    about: Optional[str] = None
    industry: Optional[str] = None
    website_url: Optional[str] = None
    address: Optional[str] = None
    phone_number: Optional[str] = None
    facebook_url: Optional[str] = None
    linkedin_url: Optional[str] = None
    instagram_url: Optional[str] = None
    average_rating: Optional[float] = None
    review_count: int


class CompanyJob(BaseModel):
    id: int
    title: str
    category: Optional[str] = None
    job_type: Optional[str] = None
    payment_range: Optional[str] = None
    created_at: Optional[datetime] = None


class CompanyProfile(BaseModel):
    """Public page of a publisher: details, open jobs and latest reviews."""
    details: CompanyDetails
    jobs: List[CompanyJob]
    reviews: List[Review]
