import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portal.core.config import settings, require_session_secret
from portal.core.logging import setup_logging
from portal.middleware.route_gate import register_route_gate
from portal.routes.auth import router as auth_router
from portal.routes.bff import router as bff_router
from portal.routes.pages import router as pages_router

setup_logging()
logger = logging.getLogger(__name__)

require_session_secret()

app = FastAPI(title="Members Portal")
logger.info(
    "Startup config: ENV=%s API_BASE_URL=%s PROTECTED=%s PROFILE_LOOKUP_MODE=%s",
    settings.ENV,
    settings.API_BASE_URL,
    ",".join(settings.PROTECTED_PATH_PREFIXES),
    settings.PROFILE_LOOKUP_MODE,
)

_ERROR_CODE_BY_STATUS: dict[int, str] = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
    502: "BAD_GATEWAY",
    503: "SERVICE_UNAVAILABLE",
}


def _error_code(status_code: int) -> str:
    return _ERROR_CODE_BY_STATUS.get(int(status_code), "HTTP_ERROR")


@app.exception_handler(HTTPException)
def http_exception_handler(request: Request, exc: HTTPException):  # noqa: ARG001
    detail = exc.detail
    message: str
    details: dict | None = None

    if isinstance(detail, str):
        message = detail
    elif isinstance(detail, dict):
        msg = detail.get("message")
        message = msg if isinstance(msg, str) and msg else "Request failed"
        det = detail.get("details")
        details = det if isinstance(det, dict) else None
    else:
        message = str(detail) if detail is not None else "Request failed"

    payload: dict = {"error": _error_code(exc.status_code), "message": message}
    if details:
        payload["details"] = details
    return JSONResponse(status_code=exc.status_code, content=payload, headers=exc.headers)


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError):  # noqa: ARG001
    return JSONResponse(
        status_code=422,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Invalid request payload",
            "details": {"errors": exc.errors()},
        },
    )


register_route_gate(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(bff_router)
app.include_router(pages_router)

@app.get("/health")
def health_check():
    return {"status": "ok"}
