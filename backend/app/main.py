"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm

from app import __version__
from app.api.v1.api import api_router
from app.auth import create_access_token, authenticate_user, get_current_active_user
from app.config import settings
from app.connectors.http_collaborators import HttpEmailSender, HttpUpdateGenerator
from app.database import SessionLocal
from app.logging_config import configure_logging
from app.scheduler import SchedulerService
from app.schemas.auth import Token, User
from app.services.execution_runner import ExecutionRunner
from app.services.notification_gate import NotificationGate

# Configure root logger early
configure_logging(settings.log_level)

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire the collaborators, runner and scheduler for the lifetime of the app."""
    update_generator = HttpUpdateGenerator(
        settings.update_service_url,
        settings.update_service_token,
        timeout=settings.execution_timeout_seconds,
    )
    email_sender = HttpEmailSender(
        settings.email_service_url,
        settings.email_service_token,
        timeout=settings.execution_timeout_seconds,
    )
    gate = NotificationGate(SessionLocal)
    runner = ExecutionRunner(
        SessionLocal,
        update_generator,
        email_sender,
        gate,
        timeout_seconds=settings.execution_timeout_seconds,
    )
    scheduler = SchedulerService(
        SessionLocal,
        runner,
        gate,
        max_workers=settings.scheduler_max_workers,
        interval_seconds=settings.scheduler_interval_seconds,
        history_retention_days=settings.history_retention_days,
    )

    app.state.execution_runner = runner
    app.state.scheduler = scheduler

    if settings.scheduler_enabled:
        scheduler.start()
    else:
        log.info("Scheduler disabled by configuration (SCHEDULER_ENABLED=false)")

    try:
        yield
    finally:
        scheduler.shutdown()
        await update_generator.close()
        await email_sender.close()


app = FastAPI(
    title="Daily Updates Scheduler",
    description="Runs scheduled update generation, email delivery and in-app notifications",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.post("/token", response_model=Token)
async def login_for_access_token(form_data: Annotated[OAuth2PasswordRequestForm, Depends()]):
    user = authenticate_user(form_data.username, form_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token_expires = timedelta(minutes=settings.access_token_expire_minutes)
    access_token = create_access_token(
        data={"sub": user.username}, expires_delta=access_token_expires
    )
    return {"access_token": access_token, "token_type": "bearer"}


@app.get("/users/me/", response_model=User)
async def read_users_me(current_user: Annotated[User, Depends(get_current_active_user)]):
    return current_user


@app.get("/api/health")
async def health_check(request: Request):
    """Health check endpoint."""
    scheduler = getattr(request.app.state, "scheduler", None)
    return {
        "status": "healthy",
        "version": __version__,
        "scheduler_running": bool(scheduler and scheduler.running),
    }


@app.get("/")
async def root():
    """Root endpoint - redirect to docs."""
    return {
        "message": "Daily Updates Scheduler API",
        "version": __version__,
        "docs": "/docs"
    }


app.include_router(api_router, prefix=settings.api_v1_str)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    log.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000, log_level=settings.log_level.lower())
