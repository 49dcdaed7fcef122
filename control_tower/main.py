import uuid

import structlog
from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from .errors import ControlTowerError
from .log_config import configure_logging
from .routers.control_tower import router as control_tower_router
from .routers.health import router as health_router

configure_logging()
logger = structlog.get_logger()

app = FastAPI(title="Integration Control Tower API", version="0.1.0")


@app.middleware("http")
async def request_id_middleware(request: Request, call_next) -> Response:  # type: ignore[override]
    request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
    request.state.request_id = request_id
    structlog.contextvars.bind_contextvars(request_id=request_id)
    try:
        response = await call_next(request)
    finally:
        structlog.contextvars.unbind_contextvars("request_id")
    response.headers["X-Request-Id"] = request_id
    return response


@app.exception_handler(ControlTowerError)
async def control_tower_error_handler(request: Request, exc: ControlTowerError) -> JSONResponse:
    logger.info(
        "control_tower_command_rejected",
        path=request.url.path,
        error=exc.code,
        status_code=exc.status_code,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "error": exc.code})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Submitted values stay out of the response; a malformed body may carry a credential.
    errors = [{key: value for key, value in error.items() if key != "input"} for error in exc.errors()]
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(errors)})


app.include_router(health_router)
app.include_router(control_tower_router)
