"""
FastAPI application entry point for the speech evaluation backend.
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings, validate_azure_config
from app.core.exceptions import ConfigurationError, SpeechEvaluationError
from app.api import evaluate

import logging

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="Kids Speech Evaluation Backend",
    description="Pronunciation assessment backend for the kids speech practice app",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(evaluate.router, prefix="/api")


@app.exception_handler(SpeechEvaluationError)
async def speech_evaluation_error_handler(request: Request, exc: SpeechEvaluationError):
    """Map a classified evaluation failure to its HTTP response."""
    if exc.status_code >= 500:
        logger.error(f"Evaluation error: {exc.error}: {exc.detail}")
    else:
        logger.warning(f"Evaluation rejected: {exc.error}: {exc.detail}")

    content = {"error": exc.error, "message": exc.message}
    if exc.expose_details:
        content["details"] = exc.detail
    elif exc.status_code >= 500:
        content["details"] = exc.detail if settings.is_development else "Internal server error"

    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Invalid request: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid Request", "message": "The request form data is invalid"}
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return JSONResponse(
            status_code=404,
            content={"error": "Not Found", "message": "The requested endpoint does not exist"}
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": "Request Error", "message": str(exc.detail)}
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error: {str(exc)}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Server Error", "message": "An unexpected error occurred"}
    )


@app.on_event("startup")
async def startup_event():
    """Execute on application startup."""
    logger.info(f"🚀 Speech Evaluation Backend running on port {settings.PORT}")
    logger.info(f"📊 Health check: http://localhost:{settings.PORT}/api/health")
    logger.info(f"🎤 Evaluation endpoint: http://localhost:{settings.PORT}/api/evaluate")
    logger.info(f"CORS origins: {settings.CORS_ALLOWED_ORIGINS}")

    # 시작 시에는 경고만 (요청 시점에 다시 검증)
    try:
        validate_azure_config(settings)
        logger.info("✅ Azure Speech Service configuration validated")
    except ConfigurationError as e:
        logger.warning(f"⚠️  Azure Speech Service configuration warning: {e.detail}")
        logger.warning("   Please set up your .env file with Azure credentials")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
