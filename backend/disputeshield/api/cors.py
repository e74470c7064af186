from __future__ import annotations

from fastapi import FastAPI, Request, Response

from disputeshield.config import Settings


def resolve_allowed_origin(origin: str | None, *, allowed_origin: str, preview_suffix: str) -> str:
    """Echo the production origin or a preview deployment; anything else gets the production origin."""
    if origin == allowed_origin:
        return origin
    if origin and preview_suffix and origin.endswith(preview_suffix):
        return origin
    return allowed_origin


def cors_headers(request: Request, settings: Settings) -> dict[str, str]:
    origin = resolve_allowed_origin(
        request.headers.get("Origin"),
        allowed_origin=settings.allowed_origin,
        preview_suffix=settings.preview_origin_suffix,
    )
    return {
        "Access-Control-Allow-Origin": origin,
        "Vary": "Origin",
        "Access-Control-Allow-Credentials": "false",
        "Access-Control-Allow-Methods": "POST, OPTIONS",
        "Access-Control-Allow-Headers": request.headers.get("Access-Control-Request-Headers") or "Content-Type",
    }


def install_cors(app: FastAPI, settings: Settings) -> None:
    @app.middleware("http")
    async def relay_cors_middleware(request: Request, call_next):
        headers = cors_headers(request, settings)
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=headers)

        response = await call_next(request)
        for key, value in headers.items():
            response.headers[key] = value
        return response
