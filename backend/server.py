from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import uuid
from contextlib import asynccontextmanager
from database import database
from routes import projects, payments, webhooks, pricing, intake, admin
from services.project_validation import field_name
from utils.errors import AppError, ExternalProviderError

import os
import logging
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting Web Project Intake API")
    if os.environ.get("PYTEST_RUNNING"):
        logger.info("PYTEST_RUNNING set - skipping MongoDB connection")
    else:
        await database.connect()

    # Stripe config: log mode (test/live) from key prefix (no secret keys)
    stripe_key = (os.environ.get("STRIPE_SECRET_KEY") or os.environ.get("STRIPE_API_KEY") or "").strip()
    if not stripe_key:
        logger.error("STRIPE_API_KEY / STRIPE_SECRET_KEY is not set. Payment initiation will fail.")
    else:
        stripe_mode = "test" if stripe_key.startswith("sk_test_") else "live"
        logger.info("STRIPE_MODE = %s (from Stripe key prefix)", stripe_mode)
    if not (os.environ.get("STRIPE_WEBHOOK_SECRET") or "").strip():
        logger.warning("STRIPE_WEBHOOK_SECRET is not set. Webhooks are rejected outside ENVIRONMENT=development.")
    if not (os.environ.get("AUTH_JWT_SECRET") or os.environ.get("AUTH_JWT_PUBLIC_KEY") or "").strip():
        logger.error("AUTH_JWT_SECRET / AUTH_JWT_PUBLIC_KEY is not set. Session tokens are rejected outside ENVIRONMENT=development.")

    yield

    # Shutdown
    logger.info("Shutting down Web Project Intake API")
    await database.close()

# Create FastAPI app
app = FastAPI(
    title="Web Project Intake API",
    description="Website project intake, pricing, payments and reconciliation",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(projects.router)
app.include_router(payments.router)
app.include_router(webhooks.router)
app.include_router(pricing.router)
app.include_router(intake.router)
app.include_router(admin.router)

# Root endpoint
@app.get("/api")
async def root():
    return {
        "service": "Web Project Intake",
        "version": "1.0.0",
        "status": "operational"
    }

# Health check
@app.get("/api/health")
async def health_check():
    return {
        "status": "healthy",
        "environment": os.getenv("ENVIRONMENT", "development")
    }


# Application errors: structured detail (error_code, message, request_id)
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    request_id = str(uuid.uuid4())
    if isinstance(exc, ExternalProviderError):
        logger.error(
            "External provider failure request_id=%s provider=%s path=%s detail=%s",
            request_id, exc.provider, request.url.path, exc.detail,
        )
    elif exc.status_code >= 500:
        logger.error("Request failed request_id=%s path=%s error=%s", request_id, request.url.path, exc.message)
    else:
        logger.info(
            "Request rejected request_id=%s path=%s status=%s error_code=%s",
            request_id, request.url.path, exc.status_code, exc.error_code,
        )
    detail = exc.public_detail()
    detail["request_id"] = request_id
    return JSONResponse(status_code=exc.status_code, content={"detail": detail})


# Validation error handler: same 422 shape as ValidationFailed
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    request_id = str(uuid.uuid4())
    errors = exc.errors()
    logger.warning(
        "Request validation failed request_id=%s path=%s errors=%s",
        request_id,
        request.url.path,
        [(e.get("loc"), e.get("msg"), e.get("type")) for e in errors],
    )
    field_errors = []
    seen = set()
    for err in errors:
        # Drop the "body"/"query"/"header" prefix
        field = field_name(tuple(err.get("loc", ())[1:]))
        if field in seen:
            continue
        seen.add(field)
        field_errors.append({"field": field, "message": err.get("msg", "Invalid value")})
    return JSONResponse(
        status_code=422,
        content={"detail": {
            "error_code": "VALIDATION_ERROR",
            "message": "Validation failed",
            "request_id": request_id,
            "field_errors": field_errors,
        }},
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    request_id = str(uuid.uuid4())
    logger.error(f"Unhandled exception request_id={request_id}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": {
            "error_code": "INTERNAL_ERROR",
            "message": "Internal server error",
            "request_id": request_id,
        }},
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "server:app",
        host="0.0.0.0",
        port=8001,
        reload=os.getenv("ENVIRONMENT") == "development"
    )
