from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine
from starlette.exceptions import HTTPException as StarletteHTTPException

from edurecords import schemas
from edurecords.config import settings
from edurecords.core.errors import AuthorizationError, StoreError, ValidationError
from edurecords.db import Base, build_engine, build_session_factory
from edurecords.logger import configure_logging, get_logger
from edurecords.routers import (
    assignments,
    attendance,
    auth,
    batches,
    marks,
    notifications,
    settings as settings_router,
    students,
    teachers
)

logger = get_logger(__name__)


def _error(status_code: int, message: str, fields: Optional[dict] = None) -> JSONResponse:
    content = schemas.ErrorResponse(message=message, fields=fields)
    return JSONResponse(status_code=status_code, content=content.model_dump(exclude_none=True))


def _request_fields(exc: RequestValidationError) -> dict:
    """Flattens pydantic errors to {"records.0.student_id": "msg"}, dropping the body/query prefix."""
    fields = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        fields[".".join(loc) or "body"] = err.get("msg", "invalid")
    return fields


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(ValidationError)
    async def record_validation_handler(request: Request, exc: ValidationError):
        logger.info(f"Validation failed for {request.url.path}: {exc.fields}")
        return _error(status.HTTP_400_BAD_REQUEST, exc.message, exc.fields)

    @app.exception_handler(AuthorizationError)
    async def authorization_handler(request: Request, exc: AuthorizationError):
        return _error(status.HTTP_403_FORBIDDEN, AuthorizationError.message)

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        # Already logged with traceback where the write failed
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, StoreError.message)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _error(status.HTTP_400_BAD_REQUEST, ValidationError.message, _request_fields(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.warning(f"HTTP error {exc.status_code} for {request.url.path}: {exc.detail}")
        response = _error(exc.status_code, str(exc.detail))
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled server error for {request.url.path}: {exc}", exc_info=True)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server error")


def create_app(engine: Optional[Engine] = None) -> FastAPI:
    """
    Composition root. The engine and session factory live on app.state and
    reach handlers through the get_db dependency.
    """
    configure_logging()
    engine = engine or build_engine()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.create_tables:
            Base.metadata.create_all(bind=engine)
        logger.info(f"{settings.app_name} started ({settings.app_env}, {engine.dialect.name})")
        yield
        engine.dispose()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)

    # --- CORS Configuration ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # --- Router Inclusion ---
    app.include_router(auth.router)
    app.include_router(batches.router)
    app.include_router(teachers.router)
    app.include_router(students.router)
    app.include_router(attendance.router)
    app.include_router(marks.router)
    app.include_router(notifications.router)
    app.include_router(settings_router.router)
    app.include_router(assignments.router)

    @app.get("/api/health", tags=["Health"])
    def health():
        return {"status": "OK", "time": datetime.utcnow().isoformat()}

    @app.get("/")
    def home():
        return {"message": "Backend is running!"}

    return app


app = create_app()
