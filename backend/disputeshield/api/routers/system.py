from __future__ import annotations

from fastapi import APIRouter

from disputeshield.config import settings


router = APIRouter()


@router.get("/")
def root() -> dict[str, str]:
    return {"service": "disputeshield-backend", "status": "running"}


@router.get("/health")
def health() -> dict[str, object]:
    return {
        "status": "ok",
        "environment": settings.app_env,
        "verification_mode": settings.verification_mode,
        "turnstile_site_key_configured": bool(settings.turnstile_site_key.strip()),
    }
