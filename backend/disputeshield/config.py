from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "DisputeShield API"
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"
    request_id_header: str = "X-Request-ID"

    # The relay answers browsers on the production site and on preview deployments.
    allowed_origin: str = "https://disputeshield.app"
    preview_origin_suffix: str = ".pages.dev"

    turnstile_site_key: str = ""
    turnstile_secret: str = ""
    turnstile_verify_url: str = "https://challenges.cloudflare.com/turnstile/v0/siteverify"
    relay_base_url: str = "http://localhost:8000"
    verification_mode: str = "remote"  # remote|bypass
    verification_timeout_seconds: float = 10.0

    show_branding_footer: bool = True
    include_submission_notes: bool = True
    max_recommended_pages: int = 10
    max_attachment_files: int = 25
    max_attachment_file_bytes: int = 10 * 1024 * 1024

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def relay_verify_url(self) -> str:
        base = self.relay_base_url.strip().rstrip("/")
        return f"{base}/turnstile/verify"


settings = Settings()
