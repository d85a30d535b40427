import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from workhub.auth.errors import AuthError
from workhub.core.config import configure_logging, settings
from workhub.routes.auth import router as auth_router
from workhub.routes.callback import router as callback_router

logger = logging.getLogger(__name__)

configure_logging()

app = FastAPI(title="Workhub API")
logger.info(
    "Startup config: ENV=%s IDENTITY_PROVIDER=%s admin_emails=%d",
    settings.ENV,
    settings.IDENTITY_PROVIDER,
    len(settings.ADMIN_EMAILS),
)

_ERROR_CODE_BY_STATUS: dict[int, str] = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    429: "RATE_LIMITED",
    500: "INTERNAL_ERROR",
    503: "SERVICE_UNAVAILABLE",
}


def _error_code(status_code: int) -> str:
    return _ERROR_CODE_BY_STATUS.get(int(status_code), "HTTP_ERROR")


def _error_payload(message: str, code: str, details=None) -> dict:
    # Clients show "error" to users verbatim; "code" is for programmatic handling.
    payload: dict = {"error": message, "code": code}
    if details is not None:
        payload["details"] = details
    return payload


@app.exception_handler(AuthError)
def auth_error_handler(request: Request, exc: AuthError):  # noqa: ARG001
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(exc.message, exc.code, exc.details),
        headers=headers,
    )


@app.exception_handler(HTTPException)
def http_exception_handler(request: Request, exc: HTTPException):  # noqa: ARG001
    detail = exc.detail
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

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(message, _error_code(exc.status_code), details),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError):  # noqa: ARG001
    return JSONResponse(
        status_code=400,
        content=_error_payload(
            "Invalid request payload",
            "VALIDATION_ERROR",
            {"errors": jsonable_errors(exc)},
        ),
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # ctx may hold exception instances that are not JSON serializable.
    return [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(callback_router)
app.include_router(auth_router)

@app.get("/health")
def health_check():
    return {"status": "ok"}
