from __future__ import annotations

from datetime import datetime, timezone
from io import BytesIO
import zipfile

import pytest

import disputeshield.export.composer as composer_module
from disputeshield.config import Settings
from disputeshield.exporting import (
    ATTACHMENT_TIP,
    COMPLETENESS_WARNING,
    ExportGenerationError,
    ExportValidationError,
    VerificationFailedError,
    export_pdf,
    export_zip,
)
from disputeshield.models import DisputeCase
from disputeshield.session import DisputeSession
from disputeshield.verification import AlwaysAllow

GENERATED_AT = datetime(2026, 2, 14, 9, 30, tzinfo=timezone.utc)


class RecordingVerifier:
    requires_token = True

    def __init__(self, result: bool = True, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.tokens: list[str | None] = []

    def verify_human(self, token: str | None) -> bool:
        self.tokens.append(token)
        if self.error is not None:
            raise self.error
        return self.result


def _settings(**overrides: object) -> Settings:
    return Settings(_env_file=None, **overrides)


def _session(order_id: str = "ORD 10/42", token: str | None = "tok") -> DisputeSession:
    case = DisputeCase(
        merchant_name="Acme Widgets",
        order_id=order_id,
        amount="120.00",
        dispute_reason="product_not_received",
        tracking_number="1Z1",
        carrier="ups",
        timeline=["2026-02-10: order shipped early", "delivered, signed by customer"],
    )
    return DisputeSession(case=case, verification_token=token)


def test_blank_order_id_blocks_both_exports_before_verification() -> None:
    verifier = RecordingVerifier()
    for export in (export_pdf, export_zip):
        with pytest.raises(ExportValidationError, match="Order ID is required."):
            export(_session(order_id="   "), verifier=verifier, settings=_settings())
    assert verifier.tokens == []


def test_missing_token_is_a_validation_error_when_the_gate_needs_one() -> None:
    verifier = RecordingVerifier()
    with pytest.raises(ExportValidationError, match="Verify you're human to export."):
        export_zip(_session(token=None), verifier=verifier, settings=_settings())
    assert verifier.tokens == []


def test_bypass_gate_exports_without_token() -> None:
    result = export_pdf(_session(token=None), verifier=AlwaysAllow(), settings=_settings(), generated_at=GENERATED_AT)
    assert result.content.startswith(b"%PDF")
    assert result.page_count == 1
    assert result.file_name == "chargeback-evidence.pdf"


@pytest.mark.parametrize(
    "verifier",
    [RecordingVerifier(result=False), RecordingVerifier(error=RuntimeError("relay exploded"))],
)
def test_failed_verification_discards_cached_token(verifier: RecordingVerifier) -> None:
    session = _session(token="stale-token")
    with pytest.raises(VerificationFailedError) as excinfo:
        export_zip(session, verifier=verifier, settings=_settings())

    assert excinfo.value.message == "Human verification failed. Please try again."
    assert excinfo.value.reset_verification is True
    assert session.verification_token is None
    assert verifier.tokens == ["stale-token"]


def test_zip_export_produces_named_archive_and_warnings() -> None:
    result = export_zip(
        _session(),
        verifier=RecordingVerifier(),
        settings=_settings(),
        generated_at=GENERATED_AT,
    )

    assert result.file_name == "dispute-evidence-ORD_10_42.zip"
    assert result.page_count == 1
    archive = zipfile.ZipFile(BytesIO(result.content))
    assert archive.read("evidence.pdf").startswith(b"%PDF")
    assert "attachments/README.txt" in archive.namelist()
    # No delivery date, no communication notes, no attachments.
    assert COMPLETENESS_WARNING in result.warnings
    assert ATTACHMENT_TIP in result.warnings


def test_long_document_warning_uses_page_threshold() -> None:
    session = _session()
    for index in range(150):
        session.add_timeline_event(f"follow-up {index}")
    result = export_pdf(
        session,
        verifier=AlwaysAllow(),
        settings=_settings(max_recommended_pages=1),
        generated_at=GENERATED_AT,
    )
    assert result.page_count > 1
    assert any(warning.startswith(f"Evidence document is {result.page_count} pages") for warning in result.warnings)


def test_generation_failure_is_reported_generically(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_render(*args: object, **kwargs: object):
        raise ValueError("boom")

    monkeypatch.setattr(composer_module, "_render", broken_render)

    with pytest.raises(ExportGenerationError, match="Failed to generate PDF. Please try again."):
        export_pdf(_session(), verifier=AlwaysAllow(), settings=_settings())
    with pytest.raises(ExportGenerationError, match="Failed to generate ZIP. Please try again.") as excinfo:
        export_zip(_session(), verifier=AlwaysAllow(), settings=_settings())
    assert excinfo.value.status_code == 500
    assert "boom" not in excinfo.value.message


def test_export_leaves_session_untouched_on_success() -> None:
    session = _session()
    before = session.case.model_dump()
    export_zip(session, verifier=RecordingVerifier(), settings=_settings(), generated_at=GENERATED_AT)
    assert session.case.model_dump() == before
    assert session.verification_token == "tok"
