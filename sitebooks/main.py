import os

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError

from .config import settings
from .db import Base, engine
from .errors import DomainError, Internal
from .logging import setup_logging, RequestIdMiddleware, structlog
from .auth.router import router as auth_router
from .routes.files import router as files_router
from .routes.projects import router as projects_router
from .routes.tasks import router as tasks_router
from .routes.workers import router as workers_router
from .routes.materials import router as materials_router
from .routes.attendance import router as attendance_router
from .routes.transactions import router as transactions_router
from .routes.users import router as users_router

# Register the tables with the metadata before create_all
from .models import models  # noqa: F401


logger = structlog.get_logger("sitebooks")


async def domain_error_handler(request: Request, exc: DomainError):
    if isinstance(exc, Internal):
        logger.error("internal_error", path=request.url.path, error=exc.message, **exc.details)
    elif exc.status_code >= 400:
        logger.info("domain_error", path=request.url.path, code=exc.code, detail=exc.message)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("storage_error", path=request.url.path, error_type=type(exc).__name__, error=str(exc))
    return JSONResponse(status_code=500, content=Internal("storage failure").to_dict())


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # Errors
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(SQLAlchemyError, storage_error_handler)

    # Routers
    app.include_router(auth_router)
    for router in (
        projects_router,
        tasks_router,
        workers_router,
        materials_router,
        attendance_router,
        transactions_router,
        users_router,
        files_router,
    ):
        app.include_router(router, prefix="/api")

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.on_event("startup")
    def _startup():
        logger.info("startup", environment=settings.environment)
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            Base.metadata.create_all(bind=engine)
            logger.info("startup_tables_ready", tables=len(Base.metadata.tables))

    return app


app = create_app()
