from __future__ import annotations

import logging
from typing import Callable

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from disputeshield.turnstile import TurnstileClient, TurnstileUnavailableError

logger = logging.getLogger("disputeshield.relay")

TurnstileClientGetter = Callable[[], TurnstileClient]


async def _read_token(request: Request) -> str:
    try:
        body = await request.json()
    except ValueError:
        return ""
    if not isinstance(body, dict):
        return ""
    token = body.get("token")
    if not isinstance(token, str):
        return ""
    return token.strip()


def build_relay_router(*, get_turnstile_client: TurnstileClientGetter) -> APIRouter:
    router = APIRouter()

    @router.post("/turnstile/verify", response_model=None)
    async def verify_turnstile(request: Request) -> JSONResponse:
        token = await _read_token(request)
        if not token:
            return JSONResponse(status_code=400, content={"ok": False, "error": "missing_token"})

        client = get_turnstile_client()
        if not client.configured:
            logger.error("turnstile_secret_missing", extra={"event": "turnstile_secret_missing"})
            return JSONResponse(status_code=500, content={"ok": False, "error": "missing_secret"})

        try:
            ok = await run_in_threadpool(client.siteverify, token)
        except TurnstileUnavailableError as exc:
            logger.warning(
                "turnstile_siteverify_unavailable",
                extra={"event": "turnstile_siteverify_unavailable", "error": str(exc)},
            )
            return JSONResponse(status_code=200, content={"ok": False, "error": "verification_unavailable"})

        return JSONResponse(status_code=200, content={"ok": ok})

    return router
