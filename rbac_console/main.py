"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from rbac_console.core.config import settings
from rbac_console.core.middleware import setup_logging, setup_middleware
from rbac_console.core.exceptions import RBACConsoleError
from rbac_console.schemas.schemas import ApiResponse

from rbac_console.api.roles import router as roles_router
from rbac_console.api.menus import router as menus_router
from rbac_console.api.permissions import router as permissions_router
from rbac_console.api.users import router as users_router

setup_logging()
logger = logging.getLogger("rbac_console")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("🚀 Starting %s", settings.APP_NAME)
    if settings.AUTO_CREATE_TABLES:
        from rbac_console.db.base import Base
        from rbac_console.db.session import engine
        import rbac_console.models  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("✅ Database tables ready")

    yield

    logger.info("🔻 Shutting down %s", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    description="Role-based access control admin console",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Middleware
setup_middleware(app)


def _envelope(status_code: int, message: str, errors: list) -> JSONResponse:
    body = ApiResponse(success=False, message=message, errors=errors)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", by_alias=True))


@app.exception_handler(RBACConsoleError)
async def rbac_exception_handler(request: Request, exc: RBACConsoleError):
    return _envelope(exc.status_code, exc.message, exc.errors)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"] if part not in ("body", "query", "path"))
        errors.append(f"{field}: {error['msg']}" if field else error["msg"])
    return _envelope(400, "Validation failed", errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    response = _envelope(exc.status_code, str(exc.detail), [str(exc.detail)])
    if exc.headers:
        response.headers.update(exc.headers)
    return response


# Register routers
app.include_router(roles_router, prefix=settings.API_PREFIX)
app.include_router(menus_router, prefix=settings.API_PREFIX)
app.include_router(permissions_router, prefix=settings.API_PREFIX)
app.include_router(users_router, prefix=settings.API_PREFIX)


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/api/health")
async def health():
    """Quick health check endpoint."""
    return {"status": "ok"}
