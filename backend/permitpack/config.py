from pydantic_settings import BaseSettings, SettingsConfigDict

from permitpack.formatting.policy import LetterProfile


class Settings(BaseSettings):
    app_name: str = "Permitpack API"
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    cors_origins: str = "http://localhost:3000"
    cors_allow_credentials: bool = True
    log_level: str = "INFO"
    request_id_header: str = "X-Request-ID"

    aws_region: str = "us-east-1"
    storage_backend: str = "local"  # local|s3
    storage_root: str = "data/uploads"
    s3_bucket: str = "permitpack-dev"
    s3_prefix: str = "permitpack"

    # Letterhead, signature and footer strings the cover letter classifier keys on.
    letterhead: str = "Intralog Permit Services"
    signature_phrase: str = "Permit Services Team"
    footer_prefix: str = "Generated by PainlessPermit"
    default_contact_email: str = "permits@intralog.io"
    default_contact_phone: str = "(801) 441-8992"

    fetch_max_in_flight: int = 6
    max_documents_per_export: int = 200
    cover_letter_format: str = "docx"  # docx|txt
    archive_compression_enabled: bool = True
    zip_compression_level: int = 6
    # Embedded deployments (iframes, kiosks) cannot open a native save dialog.
    restricted_context: bool = False
    preferences_path: str = "data/preferences.json"
    notification_ttl_seconds: float = 5.0

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def letter_profile(self) -> LetterProfile:
        return LetterProfile(
            letterhead=self.letterhead,
            signature_phrase=self.signature_phrase,
            footer_prefix=self.footer_prefix,
        )


settings = Settings()
