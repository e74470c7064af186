from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI, Request

from disputeshield.api.cors import install_cors
from disputeshield.api.routers.exports import build_exports_router
from disputeshield.api.routers.relay import build_relay_router
from disputeshield.api.routers.system import router as system_router
from disputeshield.config import settings
from disputeshield.observability import (
    configure_logging,
    normalize_request_id,
    reset_request_id,
    sanitize_for_logging,
    set_request_id,
)
from disputeshield.turnstile import TurnstileClient
from disputeshield.verification import VerificationStrategy, build_verification_strategy

logger = logging.getLogger("disputeshield.api")


def get_turnstile_client() -> TurnstileClient:
    return TurnstileClient(
        secret=settings.turnstile_secret,
        verify_url=settings.turnstile_verify_url,
        timeout=settings.verification_timeout_seconds,
    )


def get_verification_strategy() -> VerificationStrategy:
    return build_verification_strategy(settings)


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging(settings.log_level)
    logger.info(
        "application_startup",
        extra={
            "event": "application_startup",
            "environment": settings.app_env,
            "verification_mode": settings.verification_mode,
        },
    )
    yield
    logger.info("application_shutdown", extra={"event": "application_shutdown"})


def create_app() -> FastAPI:
    # Fail at startup rather than on the first export.
    build_verification_strategy(settings)

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        request_id = normalize_request_id(request.headers.get(settings.request_id_header))
        request.state.request_id = request_id
        token = set_request_id(request_id)
        started = time.perf_counter()

        logger.info(
            "request_started",
            extra={
                "event": "request_started",
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "query": sanitize_for_logging(dict(request.query_params)),
                "client_ip": request.client.host if request.client else None,
            },
        )

        try:
            response = await call_next(request)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            response.headers[settings.request_id_header] = request_id
            logger.info(
                "request_completed",
                extra={
                    "event": "request_completed",
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                },
            )
            return response
        except Exception:
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            logger.exception(
                "request_failed",
                extra={
                    "event": "request_failed",
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": elapsed_ms,
                },
            )
            raise
        finally:
            reset_request_id(token)

    # Registered last so it runs outermost and answers pre-flight before anything else.
    install_cors(app, settings)

    app.include_router(system_router)
    app.include_router(build_relay_router(get_turnstile_client=get_turnstile_client))
    app.include_router(build_exports_router(get_verification_strategy=get_verification_strategy))
    return app


app = create_app()
