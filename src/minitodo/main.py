from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .engine import TaskListEngine
from .logging_setup import setup_logging
from .reminders import LoggingNotificationPresenter, NotificationPresenter, ReminderScheduler
from .repositories import Repository, get_repository
from .routers import tasks as tasks_router
from .settings import Settings, get_settings
from .store import TaskStore

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "tasks",
        "description": "Ordered task list, counters, task intents (add, toggle, replace, remind, delete).",
    },
]


# PUBLIC_INTERFACE
def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[Repository] = None,
    presenter: Optional[NotificationPresenter] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    The store, engine and reminder scheduler are created once in the app
    lifespan (they need the running event loop) and kept on `app.state`.

    Args:
        settings: Settings to use; loaded from the environment when omitted.
        repository: Storage backend; the process-wide repository when omitted.
        presenter: Reminder alert presenter; alerts are logged when omitted.
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        store = TaskStore(repository or get_repository())
        app.state.engine = TaskListEngine(store)
        app.state.reminder_scheduler = ReminderScheduler(
            presenter or LoggingNotificationPresenter(),
            lead=timedelta(minutes=settings.reminder_lead_minutes),
        )
        logger.info("Task engine started backend=%s", settings.persistence_backend)
        try:
            yield
        finally:
            app.state.reminder_scheduler.cancel_all()
            await app.state.engine.aclose()
            logger.info("Task engine stopped")

    app = FastAPI(
        title="MiniTodo Backend",
        description="Personal task list with reminders, ordered and counted by a reactive task engine.",
        version="0.1.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )

    # Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Return a consistent JSON structure for request validation errors.

        Response format:
            {
                "error": "ValidationError",
                "detail": [... pydantic/fastapi error details ...],
                "message": "Request validation failed"
            }
        """
        return JSONResponse(
            status_code=422,
            content={
                "error": "ValidationError",
                "message": "Request validation failed",
                "detail": jsonable_errors(exc),
            },
        )

    # PUBLIC_INTERFACE
    @app.get("/", summary="Health Check", tags=["health"])
    async def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health.
        """
        return {"message": "Healthy", "backend": settings.persistence_backend}

    app.include_router(tasks_router.router)
    return app


def jsonable_errors(exc: RequestValidationError) -> list:
    """Error details with the raw exception objects pydantic attaches replaced by strings."""
    errors = []
    for err in exc.errors():
        err = dict(err)
        if "ctx" in err:
            err["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        errors.append(err)
    return errors


app = create_app()
