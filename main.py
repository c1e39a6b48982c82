from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import os

from config.settings import settings
from core.errors import TransactionError
from core.reconciliation import ReceiptReconciler
from db.session import create_tables
from middleware.logging import LoggingMiddleware
from utilities.jwt import validate_env_variables
from models import *  # noqa: F401,F403 ensure model registration

# Import API routers
from api.payme import router as payme_router
from api.payment import router as payment_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Starting Payme Gateway API...")

    # Validate environment variables (non-fatal if missing)
    try:
        validate_env_variables()
    except ValueError as e:
        logger.warning(f"Env validation warning: {e}")

    # Create database tables
    create_tables()
    logger.info("Database tables created/verified")

    reconciler = ReceiptReconciler()
    if settings.RECON_ENABLED:
        reconciler.start()
    else:
        logger.info("Receipt reconciliation disabled")
    app.state.reconciler = reconciler

    yield

    # Shutdown
    reconciler.shutdown()
    logger.info("Shutting down Payme Gateway API...")

# Create FastAPI app
app = FastAPI(
    title="Payme Gateway API",
    description="Payme Merchant API endpoint, hosted checkout links and card payments for marketplace orders",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(LoggingMiddleware)

# Payme expects HTTP 200 with the error in the body
@app.exception_handler(TransactionError)
async def transaction_exception_handler(request: Request, exc: TransactionError):
    """Handle Payme domain errors"""
    logger.warning(f"Payme error {exc.code} ({exc.error.name}) for id={exc.request_id}")
    return JSONResponse(status_code=200, content=exc.to_response())

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": exc.detail if isinstance(exc.detail, str) else str(exc.detail),
        }
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error"}
    )

# Health check
@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "Payme Gateway API is running"}

# Include routers
app.include_router(payme_router, prefix="/api")
app.include_router(payment_router, prefix="/api")

if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        reload=True,
        log_level="info"
    )
