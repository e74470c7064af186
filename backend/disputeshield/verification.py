from __future__ import annotations

import logging
from typing import Protocol

import httpx

from disputeshield.config import Settings

logger = logging.getLogger("disputeshield.verification")

VERIFICATION_MODES = {"remote", "bypass"}


class VerificationStrategy(Protocol):
    requires_token: bool

    def verify_human(self, token: str | None) -> bool:
        ...


class AlwaysAllow:
    """Local-development gate: every export counts as human-verified."""

    requires_token = False

    def verify_human(self, token: str | None) -> bool:
        return True


class RemoteCheck:
    """Asks the verification relay whether a Turnstile token is valid.

    Any failure (non-2xx, ``ok`` not true, transport error, bad JSON) counts as
    a failed check. There is no retry.
    """

    requires_token = True

    def __init__(self, verify_url: str, *, timeout: float = 10.0, client: httpx.Client | None = None) -> None:
        self._verify_url = verify_url
        self._timeout = timeout
        self._client = client

    def verify_human(self, token: str | None) -> bool:
        if not token or not token.strip():
            return False

        try:
            response = self._post({"token": token.strip()})
        except httpx.HTTPError as exc:
            logger.warning(
                "verification_relay_unreachable",
                extra={"event": "verification_relay_unreachable", "error": str(exc)},
            )
            return False

        if not response.is_success:
            logger.warning(
                "verification_relay_rejected",
                extra={"event": "verification_relay_rejected", "status_code": response.status_code},
            )
            return False

        try:
            payload = response.json()
        except ValueError:
            logger.warning("verification_relay_invalid_json", extra={"event": "verification_relay_invalid_json"})
            return False

        return isinstance(payload, dict) and payload.get("ok") is True

    def _post(self, body: dict[str, str]) -> httpx.Response:
        if self._client is not None:
            return self._client.post(self._verify_url, json=body, timeout=self._timeout)
        return httpx.post(self._verify_url, json=body, timeout=self._timeout)


def build_verification_strategy(settings: Settings) -> VerificationStrategy:
    mode = (settings.verification_mode or "").strip().lower()
    if mode not in VERIFICATION_MODES:
        raise ValueError(f"Unsupported VERIFICATION_MODE '{settings.verification_mode}'. Use 'remote' or 'bypass'.")
    if mode == "bypass":
        return AlwaysAllow()
    return RemoteCheck(settings.relay_verify_url, timeout=settings.verification_timeout_seconds)
