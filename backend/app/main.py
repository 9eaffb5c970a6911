import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.routes import (
    academic_years,
    classrooms,
    disciplines,
    events,
    groups,
    health,
    learning_types,
    notifications,
    study_years,
    teachers,
    users,
)
from app.core.config import get_settings
from app.core.exceptions import AppError, field_errors
from app.core.logging import configure_logging
from app.core.middleware import RequestContextMiddleware, RequestSizeLimitMiddleware
from app.db.bootstrap import init_db
from app.services.notification_hub import NotificationHub

settings = get_settings()
logger = logging.getLogger(__name__)

HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    413: "PAYLOAD_TOO_LARGE",
}


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging(settings)
    if settings.auto_create_schema:
        init_db()
    logger.info("%s started", settings.project_name)
    yield


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": exc.code, "message": exc.message, "details": exc.details},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Validation failed",
            "details": {"fields": field_errors(exc.errors())},
        },
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "code": HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
            "message": str(exc.detail),
            "details": {},
        },
        headers=getattr(exc, "headers", None),
    )


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.state.notification_hub = NotificationHub()
app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)

app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_request_size_bytes)
app.add_middleware(RequestContextMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(users.router, prefix=f"{settings.api_prefix}/users", tags=["users"])
app.include_router(events.router, prefix=f"{settings.api_prefix}/orar", tags=["orar"])
app.include_router(academic_years.router, prefix=f"{settings.api_prefix}/ani-universitari", tags=["calendar"])
app.include_router(learning_types.router, prefix=f"{settings.api_prefix}/cicluri", tags=["calendar"])
app.include_router(study_years.router, prefix=f"{settings.api_prefix}/ani-studiu", tags=["calendar"])
app.include_router(groups.router, prefix=f"{settings.api_prefix}/grupe", tags=["calendar"])
app.include_router(disciplines.router, prefix=f"{settings.api_prefix}/discipline", tags=["discipline"])
app.include_router(teachers.router, prefix=f"{settings.api_prefix}/cadre", tags=["cadre"])
app.include_router(classrooms.router, prefix=f"{settings.api_prefix}/sali", tags=["sali"])
app.include_router(notifications.router, prefix=f"{settings.api_prefix}/notifications", tags=["notifications"])
