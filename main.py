import os
import sys
import logging
from datetime import timedelta

# --- Third-party libraries ---
from dotenv import load_dotenv
from fastapi import FastAPI, Depends, HTTPException, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

# --- Project-specific imports ---
import models
import schemas
from auth import (get_password_hash, verify_password, create_access_token, get_user,
                  get_current_active_user, ACCESS_TOKEN_EXPIRE_MINUTES)
from database import engine, get_db
from notifications import notify_admins
import admin
import applications
import jobs
import messaging
import notifications
import reports
import reviews
import site_settings

# --- Initial Setup ---
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger("uniwiz")

# Create all database tables based on your models
models.Base.metadata.create_all(bind=engine)

app = FastAPI(title="UniWiz API")


# --- CORS Middleware ---
# This allows the React frontend (e.g., running on localhost:3000) to communicate with the backend
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Exception Handlers ---
# Every error leaves the API as {"message": ...}
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail}, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc):
    fields = [".".join(str(part) for part in error["loc"] if part != "body") for error in exc.errors()]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Invalid or incomplete data.", "fields": fields},
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request, exc):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"message": "A database error occurred."})


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"message": "Internal server error."})


# --- Routers ---
app.include_router(messaging.router)
app.include_router(jobs.router)
app.include_router(applications.router)
app.include_router(reviews.router)
app.include_router(reports.router)
app.include_router(notifications.router)
app.include_router(site_settings.router)
app.include_router(admin.router)


# --- API Endpoints ---
@app.post("/register/", response_model=schemas.User, status_code=status.HTTP_201_CREATED, tags=["Authentication"])
def register_user(user: schemas.UserCreate, db: Session = Depends(get_db)):
    """Registers a student or publisher, hashes their password and creates the matching profile row."""
    if user.role not in ("student", "publisher"):
        raise HTTPException(status_code=400, detail="Invalid role specified.")
    if get_user(db, email=user.email):
        raise HTTPException(status_code=400, detail="This email is already registered.")

    db_user = models.User(
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        company_name=user.company_name,
        hashed_password=get_password_hash(user.password),
        role=user.role,
    )
    if user.role == "student":
        db_user.student_profile = models.StudentProfile()
    else:
        db_user.publisher_profile = models.PublisherProfile()
    db.add(db_user)
    db.flush()

    notify_admins(db, "new_user_registered", f"A new user has registered: {db_user.display_name} ({user.role})", "/user-management")
    db.commit()
    db.refresh(db_user)
    logger.info("Registered %s %s", user.role, db_user.id)
    return db_user


@app.post("/token", response_model=schemas.Token, tags=["Authentication"])
def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """Handles user login and returns a JWT access token."""
    user = get_user(db, email=form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password.")
    if user.status == "blocked":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Your account has been blocked by the administrator.")

    access_token = create_access_token(
        data={"sub": user.email}, expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return {"access_token": access_token, "token_type": "bearer"}


@app.get("/users/me/", response_model=schemas.User, tags=["Users"])
def read_current_user(current_user: models.User = Depends(get_current_active_user)):
    """Returns the details of the currently authenticated user."""
    return current_user
