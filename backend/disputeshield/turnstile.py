from __future__ import annotations

import logging

import httpx

logger = logging.getLogger("disputeshield.turnstile")


class TurnstileUnavailableError(RuntimeError):
    """Raised when the siteverify endpoint cannot be reached or answers garbage."""


class TurnstileClient:
    def __init__(
        self,
        *,
        secret: str,
        verify_url: str,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._secret = secret
        self._verify_url = verify_url
        self._timeout = timeout
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self._secret.strip())

    def siteverify(self, token: str) -> bool:
        form = {"secret": self._secret, "response": token}
        try:
            if self._client is not None:
                response = self._client.post(self._verify_url, data=form, timeout=self._timeout)
            else:
                response = httpx.post(self._verify_url, data=form, timeout=self._timeout)
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise TurnstileUnavailableError(f"Turnstile siteverify failed: {exc}") from exc

        success = isinstance(payload, dict) and bool(payload.get("success"))
        if not success and isinstance(payload, dict):
            logger.info(
                "turnstile_token_rejected",
                extra={"event": "turnstile_token_rejected", "error_codes": payload.get("error-codes")},
            )
        return success
