"""Main FastAPI application."""
from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from cotrack.api import callouts, chatbot, ingestion, invitations, pages, sessions, team_analysis, tracking_files, users
from cotrack.config import settings
from cotrack.database import check_database_connection, get_db
from cotrack.services.gemini import API_KEY_MISSING_MESSAGE
from cotrack.utils.exceptions import LLMConfigurationError, LLMError, LLMRateLimitError, NotFoundError
from cotrack.utils.logger import logger

API_VERSION = "1.0.0"

# Create database tables (in production, use migrations)
# Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Cotrack API",
    description="Backend API for collaborative browsing sessions",
    version=API_VERSION,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(users.router)
app.include_router(sessions.router)
app.include_router(invitations.router)
app.include_router(tracking_files.router)
app.include_router(pages.router)
app.include_router(ingestion.router)
app.include_router(chatbot.router)
app.include_router(team_analysis.router)
app.include_router(callouts.router)


def error_body(message: str, error: str = None) -> dict:
    body = {"success": False, "message": message}
    if error:
        body["error"] = error
    return body


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content=error_body(str(exc.detail)), headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and parameters are 400s."""
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    message = "Invalid request: " + "; ".join(problems) if problems else "Invalid request"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error_body(message))


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=error_body(str(exc)))


@app.exception_handler(LLMConfigurationError)
async def llm_configuration_handler(request: Request, exc: LLMConfigurationError):
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(API_KEY_MISSING_MESSAGE),
    )


@app.exception_handler(LLMRateLimitError)
async def llm_rate_limit_handler(request: Request, exc: LLMRateLimitError):
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=error_body("AI provider is rate limited, try again shortly", str(exc)),
    )


@app.exception_handler(LLMError)
async def llm_error_handler(request: Request, exc: LLMError):
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("AI request failed", str(exc)),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Server error", str(exc)),
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Cotrack API",
        "version": API_VERSION,
        "docs": "/docs",
    }


@app.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """Health check endpoint, including database connectivity."""
    connected = check_database_connection(db)
    body = {
        "status": "healthy" if connected else "unhealthy",
        "database": "connected" if connected else "disconnected",
        "environment": settings.environment,
    }
    if not connected:
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
    return body
