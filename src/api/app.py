"""FastAPI application setup."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api.limiter import limiter
from src.api.routes import accounts, auth, linktoken, networks, portfolio, transfers, wallet
from src.config import (
    PRODUCT_NAME,
    PRODUCT_TAGLINE,
    PRODUCT_VERSION,
    PRODUCT_DESCRIPTION,
    configure_logging,
    get_settings,
)
from src.core.errors import MeshfolioError

logger = logging.getLogger(__name__)

app = FastAPI(
    title=f"{PRODUCT_NAME} API",
    description=PRODUCT_DESCRIPTION,
    version=PRODUCT_VERSION,
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.on_event("startup")
def startup():
    """Configure logging on startup."""
    settings = get_settings()
    configure_logging(settings.log_level)
    if not settings.is_mesh_configured():
        logger.warning("MESH_CLIENT_ID / MESH_CLIENT_SECRET not set; provider calls will fail")
    elif settings.is_sandbox_key and settings.is_production_url:
        logger.warning("Sandbox key (sk_sand_...) configured against the production Mesh URL")


@app.exception_handler(MeshfolioError)
async def meshfolio_error_handler(request: Request, exc: MeshfolioError):
    """Known errors carry their own status and message."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def describe_validation_errors(exc: RequestValidationError) -> str:
    """One message for a failed request body, naming the offending fields."""
    missing = []
    invalid = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        name = ".".join(loc) or "body"
        if error.get("type") == "missing":
            missing.append(name)
        else:
            invalid.append(f"{name}: {error.get('msg')}")
    if missing:
        return f"Missing required fields: {', '.join(missing)}"
    return f"Invalid request: {'; '.join(invalid)}" if invalid else "Invalid request"


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": describe_validation_errors(exc)})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    """Anything unexpected is logged in full and reported generically."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/api/health")
def health():
    """Health check endpoint."""
    settings = get_settings()
    return {
        "name": PRODUCT_NAME,
        "version": PRODUCT_VERSION,
        "status": "ok",
        "tagline": PRODUCT_TAGLINE,
        "meshConfigured": settings.is_mesh_configured(),
        "sandbox": settings.is_sandbox_key,
    }


# Mount API routers
app.include_router(linktoken.router, prefix="/api", tags=["link"])
app.include_router(networks.router, prefix="/api", tags=["networks"])
app.include_router(portfolio.router, prefix="/api", tags=["portfolio"])
app.include_router(transfers.router, prefix="/api", tags=["transfers"])
app.include_router(wallet.router, prefix="/api", tags=["wallet"])
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(accounts.router, prefix="/api/accounts", tags=["accounts"])
