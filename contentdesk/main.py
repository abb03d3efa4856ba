import os
import re
import uuid
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from .db import engine, SessionLocal
from .enums import OrganizationRole, UserRole
from .errors import AppError
from .logging_setup import setup_logging, log_event, request_id_var
from .models import Base, Organization, OrganizationUser, User
from .security.auth import get_password_hash
from .security.session import find_user_by_email
from .routes import auth, linkedin, organization, ideas, drafts, feedback, media, delivery, scheduled_posts, admin, ai
from .services.scheduler import start_scheduler, stop_scheduler
from .config import settings

import logging
logger = logging.getLogger(__name__)

setup_logging()

# Startup validation checks
unsafe = []
if settings.secret_key == "change-me-in-production-for-jwt":
    unsafe.append("JWT_SECRET (Using default insecure key)")
if settings.environment != "local" and settings.database_url.startswith("sqlite"):
    unsafe.append("DATABASE_URL (Production Postgres required)")
if unsafe:
    logger.warning(f"CRITICAL STARTUP WARNING: Missing or unsafe required variables: {', '.join(unsafe)}")

app = FastAPI(title="ContentDesk - Multi-tenant Content Workflow")
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    token = request_id_var.set(request_id)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    response.headers["X-Request-ID"] = request_id
    return response

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}", exc_info=exc)
        return _error(500, "Internal server error")
    log_event("request_rejected", level="info", path=request.url.path, status_code=exc.status_code, error=exc.message)
    return _error(exc.status_code, exc.message)

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return _error(exc.status_code, message)

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if not errors:
        return _error(400, "Invalid request")
    first = errors[0]
    field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path", "form"))
    msg = re.sub(r"^Value error, ", "", first.get("msg", "Invalid value"))
    return _error(400, f"{field}: {msg}" if field else msg)

@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error", exc_info=exc)
    return _error(500, "Internal server error")

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return _error(500, "Internal server error")

@app.get("/health")
def health_check():
    return {"status": "ok", "service": "contentdesk"}

@app.get("/ready")
def readiness_check():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "ready"}
    except SQLAlchemyError:
        logger.exception("Readiness check failed")
        return JSONResponse(status_code=503, content={"status": "not_ready", "error": "Database unreachable"})

# Serve uploads
os.makedirs(settings.uploads_dir, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.uploads_dir), name="uploads")

# Include Routers
app.include_router(auth.router)
app.include_router(linkedin.router)
app.include_router(organization.router)
app.include_router(ideas.router)
app.include_router(drafts.router)
app.include_router(feedback.router)
app.include_router(media.router)
app.include_router(delivery.router)
app.include_router(delivery.items_router)
app.include_router(scheduled_posts.router)
app.include_router(admin.router)
app.include_router(ai.router)

def bootstrap_saas():
    """Seed the platform admin and a default organization on an empty database."""
    db = SessionLocal()
    try:
        superadmin = None
        if settings.superadmin_email and settings.superadmin_password:
            superadmin = find_user_by_email(db, settings.superadmin_email)
            if not superadmin:
                superadmin = User(
                    email=settings.superadmin_email.strip().lower(),
                    password_hash=get_password_hash(settings.superadmin_password),
                    role=UserRole.ADMIN.value,
                    is_super_admin=True,
                    is_active=True,
                    name="Platform Superadmin"
                )
                db.add(superadmin)
                db.flush()
                log_event("bootstrap_superadmin_created", user_id=superadmin.id)

        if superadmin and not db.query(Organization.id).first():
            org = Organization(name="Default Organization", slug="default")
            db.add(org)
            db.flush()
            db.add(OrganizationUser(
                organization_id=org.id,
                user_id=superadmin.id,
                role=OrganizationRole.OWNER.value,
                is_active=True,
                permissions=[],
            ))
            log_event("bootstrap_organization_created", organization_id=org.id)

        db.commit()
    except SQLAlchemyError:
        logger.exception("Bootstrap failed")
        db.rollback()
    finally:
        db.close()

@app.on_event("startup")
def on_startup():
    log_event("startup", environment=settings.environment)
    Base.metadata.create_all(bind=engine)
    bootstrap_saas()

    if settings.scheduler_enabled:
        app.state.scheduler = start_scheduler(SessionLocal)
    else:
        app.state.scheduler = None

@app.on_event("shutdown")
def on_shutdown():
    stop_scheduler()
