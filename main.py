import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from app.api.endpoints import (
    auth,
    health,
    user,
)
from app.core.config import settings
from app.core.errors import AuthError, IdentityStoreError
from app.core.rate_limit import RateLimitExceeded
from app.core.security import SecurityMiddleware
from app.db.base import Base
from app.db.session import engine
from app.models.auth import Identity  # noqa: F401  registers the identities table

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    logger.info("%s %s starting (%s)", settings.PROJECT_NAME, settings.VERSION, settings.ENVIRONMENT)
    yield


# Define the FastAPI application instance
app = FastAPI(
    lifespan=lifespan,
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="Wallet-signature authentication for Blockchain Secure Docs",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "x-wallet-address", "x-wallet-signature"],
)

# Security headers and the 1 MB body limit, outermost so every response gets them
app.add_middleware(SecurityMiddleware)


def error_body(message: str, code: str) -> dict:
    return {"success": False, "error": message, "code": code}


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.kind.value),
    )


@app.exception_handler(IdentityStoreError)
async def store_error_handler(request: Request, exc: IdentityStoreError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.kind.value),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=error_body(exc.message, "RateLimited"),
        headers={"Retry-After": str(exc.retry_after)},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [
        f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}"
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        content=error_body(f"Validation failed: {', '.join(fields)}", "ValidationError"),
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # unknown paths and known paths with the wrong method both read as a missing route
    missing_route = exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED or (
        exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found"
    )
    if missing_route:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=error_body(f"Route not found: {request.method} {request.url.path}", "NotFound"),
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), "HTTPError"),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("%s %s -> 500", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error.", "InternalError"),
    )


@app.get("/", include_in_schema=False)
def read_root():
    return {
        "success": True,
        "message": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "docs": "endpoints live at /api/auth/*, /api/user/* and /api/health",
    }


# Include your API routers
app.include_router(health.router)

g_prefix = "/api"
app.include_router(auth.router, prefix=g_prefix + "/auth")
app.include_router(user.router, prefix=g_prefix + "/user")


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
