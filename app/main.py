"""Lumina – FastAPI application."""
# Load .env before any app code that might read config
from dotenv import load_dotenv
from pathlib import Path
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.database import Base, SessionLocal, engine
from app.errors import ServiceError
# Import models so Base.metadata has all tables before create_all (schema source of truth)
from app.models import (  # noqa: F401
    User, Client, ClientLink, EventType, Question, QuestionnaireResponse,
    ContractTemplate, CustomVariable, Contract, Signature, Gallery, GalleryPhoto, AuditLog,
)
from app.routers import auth, clients, espace_links, event_types, contracts, galleries, client_portal

settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, debug=settings.debug)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (auth, clients, espace_links, event_types, contracts, galleries, client_portal):
    app.include_router(module.router, prefix="/api")


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # same {"error": ...} shape as ServiceError, plus the offending fields
    errors = exc.errors()
    fields = [".".join(str(p) for p in e.get("loc", ()) if p != "body") for e in errors]
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message, "fields": [f for f in fields if f]})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.on_event("startup")
def startup():
    if settings.mailgun_api_key and settings.mailgun_domain:
        logger.info("[Mailgun] using domain=%s from=%s", settings.mailgun_domain, settings.mailgun_from_email)
    elif settings.smtp_host and settings.smtp_user:
        logger.info("[SMTP] using host=%s:%s", settings.smtp_host, settings.smtp_port)
    else:
        logger.info("[Email] no provider configured - emails are %s", "logged" if settings.is_development else "skipped")
    try:
        Base.metadata.create_all(bind=engine)
        from app.seed import seed_system_data
        db = SessionLocal()
        try:
            seed_system_data(db)
        finally:
            db.close()
    except Exception as e:
        logger.warning("Database startup failed (tables/seed skipped). Check DATABASE_URL. Error: %s", e)

    if settings.audit_cleanup_cron_enabled:
        try:
            from apscheduler.schedulers.background import BackgroundScheduler
            from app.services.audit_log import run_audit_cleanup_job
            scheduler = BackgroundScheduler()
            scheduler.add_job(
                run_audit_cleanup_job, "cron", hour=3, minute=0, args=[settings.audit_retention_years]
            )
            scheduler.start()
            app.state.scheduler = scheduler
        except Exception as e:
            logger.warning("Audit cleanup scheduler not started: %s", e)


@app.on_event("shutdown")
def shutdown():
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None:
        scheduler.shutdown(wait=False)


@app.get("/")
def root():
    return {"app": settings.app_name, "status": "ok"}


@app.get("/api/health")
def health():
    return {"status": "healthy"}
