"""
CineScope Account API
Accounts, bearer sessions, favorites, watchlists and password reset.
Run with ``uvicorn app.main:app``.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List
import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from app.database import init_db
from app.middleware import SecurityHeadersMiddleware
from app.routes import auth, users

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
API_VERSION = "1.0.0"
IS_PRODUCTION = ENVIRONMENT == "production"


def _allowed_origins() -> List[str]:
    origins = ["http://localhost:3000", "http://localhost:5173"]
    frontend = os.getenv("FRONTEND_URL")
    if frontend:
        origins.append(frontend.rstrip("/"))
    return origins


ALLOWED_ORIGINS = _allowed_origins()


# ============================================
# Lifespan
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"CineScope Account API v{API_VERSION} starting ({ENVIRONMENT}, "
                f"{len(ALLOWED_ORIGINS)} CORS origins)")
    init_db()
    yield
    logger.info("CineScope Account API stopped")


app = FastAPI(
    title="CineScope Account API",
    description="Accounts, sessions, favorites and watchlists for CineScope",
    version=API_VERSION,
    lifespan=lifespan,
)

# ============================================
# Middleware
# ============================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)
app.add_middleware(SecurityHeadersMiddleware, hsts=IS_PRODUCTION)

if IS_PRODUCTION:
    hosts = [h.strip() for h in os.getenv("TRUSTED_HOSTS", "").split(",") if h.strip()]
    if hosts:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=hosts)


# ============================================
# Error responses
# ============================================

def _error_response(request: Request, status_code: int, detail, headers=None) -> JSONResponse:
    response = JSONResponse(status_code=status_code, content={"detail": detail}, headers=headers)
    # Handled errors skip CORSMiddleware; browsers still need to read 401s
    origin = request.headers.get("origin")
    if origin in ALLOWED_ORIGINS:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"
    return response


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return _error_response(request, exc.status_code, exc.detail, exc.headers)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return _error_response(request, 500, "Internal server error")


# ============================================
# Probes and routers
# ============================================

@app.get("/", tags=["Health"])
async def root():
    return {"message": "CineScope Account API", "version": API_VERSION, "docs": "/docs"}


@app.get("/health", tags=["Health"])
async def health_check():
    return {
        "status": "healthy",
        "api_version": API_VERSION,
        "environment": ENVIRONMENT,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


app.include_router(auth.router)
app.include_router(users.router)
