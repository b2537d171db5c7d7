from fastapi import Depends, FastAPI, HTTPException, Request, Security, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import APIKeyHeader
from prometheus_fastapi_instrumentator import Instrumentator

from interview_engine.base.config import settings
from interview_engine.base.error_handlers import register_exception_handlers
from interview_engine.base.logging_config import configure_service_loggers, setup_logger
from interview_engine.routers import interviews

configure_service_loggers()
logger = setup_logger("app")

# --- API key header config ---
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def verify_api_key(key: str = Security(api_key_header)):
    if settings.ENABLE_API_KEY_SECURITY and key != settings.API_KEY:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or missing API key")


# --- FastAPI app instance ---
app = FastAPI(
    title=f"{settings.PROJECT_NAME} API",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# --- CORS config ---
origins = [
    "http://localhost:3000",     # Local React dev
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Prometheus metrics ---
Instrumentator().instrument(app).expose(app)

# --- Error handlers ---
register_exception_handlers(app)


# --- Logging middleware ---
@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"[Request] {request.method} {request.url.path}")
    response = await call_next(request)
    logger.info(f"[Response] {response.status_code} for {request.method} {request.url.path}")
    return response


# --- API Routers ---
app.include_router(interviews.router, prefix=f"/api/{settings.API_VERSION}", dependencies=[Depends(verify_api_key)])


# --- System endpoints ---
@app.get("/health", tags=["System"])
def health_check():
    return {"status": "ok"}


@app.get("/version", tags=["System"])
def version_check():
    return {
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
        "api_version": settings.API_VERSION,
        "meeting_provider": settings.MEETING_PROVIDER,
    }
