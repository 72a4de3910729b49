import json
import logging
import time
import uuid
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from quizhub.core.config import settings
from quizhub.core.errors import QuizHubError
from quizhub.core.security_audit_log import request_id
from quizhub.db import session as db_session
from quizhub.routers import auth, health, questions, quizzes, results, users


def _parse_csv(value: str) -> list[str]:
    return [x.strip() for x in str(value or "").split(",") if x.strip()]


def _error_payload(request: Request, *, message: str, error: str) -> dict[str, object]:
    return {"ok": False, "message": message, "error": error, "requestId": request_id(request)}


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "invalid request"
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = str(first.get("msg") or "invalid value")
    return f"{loc}: {msg}" if loc else msg


def create_app() -> FastAPI:
    logging.basicConfig(
        level=getattr(logging, str(settings.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    app = FastAPI(title="QuizHub API", version="1.0.0")

    logger = logging.getLogger("quizhub")

    allow_origins = _parse_csv(settings.cors_allow_origins)
    if "*" in allow_origins:
        raise RuntimeError("CORS_ALLOW_ORIGINS must not include '*' when allow_credentials=true")

    allow_methods = ["*"] if settings.cors_allow_methods.strip() == "*" else _parse_csv(settings.cors_allow_methods)
    allow_headers = ["*"] if settings.cors_allow_headers.strip() == "*" else _parse_csv(settings.cors_allow_headers)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        t0 = time.perf_counter()
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = rid
        status_code: int | None = None
        try:
            response = await call_next(request)
            status_code = int(response.status_code)
        except Exception:
            status_code = 500
            raise
        finally:
            path = request.url.path
            if not path.startswith("/health"):
                logger.info(
                    json.dumps(
                        {
                            "ts": datetime.now(timezone.utc).isoformat(),
                            "rid": rid,
                            "user_id": getattr(request.state, "user_id", None),
                            "method": request.method,
                            "path": path,
                            "status": status_code,
                            "duration_ms": int((time.perf_counter() - t0) * 1000),
                        },
                        ensure_ascii=False,
                    )
                )
        response.headers["X-Request-ID"] = rid
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        if (settings.app_env or "").strip().lower() in {"prod", "production"}:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response

    @app.exception_handler(QuizHubError)
    async def quizhub_error_handler(request: Request, exc: QuizHubError):
        if exc.status_code >= 500:
            logger.error("%s: %s", exc.error_code, exc.message, exc_info=exc.__cause__ or exc)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(request, message=exc.message, error=exc.error_code),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content=_error_payload(request, message=_validation_message(exc), error="invalid_input"),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        status = int(exc.status_code)
        error = {400: "invalid_input", 401: "unauthorized", 403: "forbidden", 404: "not_found", 409: "conflict", 429: "rate_limited"}.get(
            status, "http_error"
        )
        return JSONResponse(
            status_code=status,
            content=_error_payload(request, message=str(exc.detail or "request failed"), error=error),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("unhandled exception", extra={"rid": request_id(request)})
        return JSONResponse(
            status_code=500,
            content=_error_payload(request, message="internal server error", error="internal_error"),
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=allow_methods,
        allow_headers=allow_headers,
    )

    prefix = settings.api_prefix.rstrip("/")
    app.include_router(health.router)
    app.include_router(auth.router, prefix=prefix)
    app.include_router(quizzes.router, prefix=prefix)
    app.include_router(questions.router, prefix=prefix)
    app.include_router(results.router, prefix=prefix)
    app.include_router(users.router, prefix=prefix)

    @app.on_event("startup")
    async def _startup() -> None:
        db_session.init_db()
        if settings.db_supervisor_enabled:
            db_session.start_supervisor()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        db_session.stop_supervisor()
        db_session.shutdown_db()

    return app


app = create_app()
