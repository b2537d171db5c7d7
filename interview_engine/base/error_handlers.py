import traceback

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from interview_engine.base.errors import HTTP_STATUS_BY_KIND, InterviewEngineError
from interview_engine.base.logging_config import setup_logger
from interview_engine.base.metrics import api_exception_counter

logger = setup_logger("error_handler")


def register_exception_handlers(app):
    @app.exception_handler(InterviewEngineError)
    async def engine_exception_handler(request: Request, exc: InterviewEngineError):
        logger.warning(f"[EngineError] kind={exc.kind.value} | {exc.message} | Path={request.url.path}")
        api_exception_counter.labels(type=exc.kind.value).inc()
        return JSONResponse(
            status_code=HTTP_STATUS_BY_KIND[exc.kind],
            content={"error": exc.message, "kind": exc.kind.value},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.warning(f"[HTTPException] {exc.detail} | Path={request.url.path}")
        api_exception_counter.labels(type="http").inc()
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail, "status_code": exc.status_code},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"[ValidationError] Path={request.url.path} | {exc.errors()}")
        api_exception_counter.labels(type="validation").inc()
        return JSONResponse(
            status_code=422,
            content={"error": "Invalid request parameters", "details": jsonable_errors(exc)},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"[UnhandledError] {str(exc)}\n{traceback.format_exc()}")
        api_exception_counter.labels(type="unhandled").inc()
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"},
        )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [{"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")} for err in exc.errors()]
