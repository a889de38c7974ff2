from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

NON_PRODUCTION_ENVS = {"dev", "test"}


class ConfigurationError(RuntimeError):
    pass


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_env: str = Field(default="dev", alias="APP_ENV")
    app_host: str = Field(default="0.0.0.0", alias="APP_HOST")
    app_port: int = Field(default=3000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    enable_openapi_docs: bool = Field(default=True, alias="ENABLE_OPENAPI_DOCS")

    database_url: str = Field(default="sqlite+aiosqlite:///./wallet_pass.db", alias="DATABASE_URL")
    redis_url: str = Field(default="redis://127.0.0.1:6379/0", alias="REDIS_URL")

    jwt_secret: str = Field(default="", alias="JWT_SECRET")
    download_token_ttl_seconds: int = Field(default=60, alias="DOWNLOAD_TOKEN_TTL_SECONDS")
    code_length: int = Field(default=6, alias="CODE_LENGTH")
    code_create_max_attempts: int = Field(default=5, alias="CODE_CREATE_MAX_ATTEMPTS")

    stripe_secret_key: str = Field(default="", alias="STRIPE_SECRET_KEY")
    stripe_webhook_secret: str = Field(default="", alias="STRIPE_WEBHOOK_SECRET")
    app_base_url: str = Field(default="", alias="APP_BASE_URL")
    frontend_origin: str = Field(default="*", alias="FRONTEND_ORIGIN")
    trusted_proxies: str = Field(default="127.0.0.1/32,::1/128", alias="TRUSTED_PROXIES")
    redeem_rate_limit_per_minute: int = Field(default=20, alias="REDEEM_RATE_LIMIT_PER_MINUTE")

    email_from: str = Field(default="no-reply@example.com", alias="EMAIL_FROM")
    resend_api_key: str = Field(default="", alias="RESEND_API_KEY")
    smtp_host: str = Field(default="smtp.example.com", alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_user: str = Field(default="user", alias="SMTP_USER")
    smtp_pass: str = Field(default="pass", alias="SMTP_PASS")

    org_name: str = Field(default="Web Pass Org", alias="ORG_NAME")
    pass_description: str = Field(default="Web-generated pass", alias="PASS_DESCRIPTION")
    pass_type_identifier: str = Field(default="", alias="PASS_TYPE_IDENTIFIER")
    team_identifier: str = Field(default="", alias="TEAM_IDENTIFIER")
    pass_key_passphrase: str = Field(default="", alias="PASS_KEY_PASSPHRASE")
    pass_cert_path: str = Field(default="", alias="PASS_CERT_PATH")
    pass_key_path: str = Field(default="", alias="PASS_KEY_PATH")
    wwdr_cert_path: str = Field(default="", alias="WWDR_CERT_PATH")
    pass_cert_base64: str = Field(default="", alias="PASS_CERT_BASE64")
    pass_key_base64: str = Field(default="", alias="PASS_KEY_BASE64")
    wwdr_cert_base64: str = Field(default="", alias="WWDR_CERT_BASE64")
    assets_dir: str = Field(default="assets", alias="ASSETS_DIR")
    pass_model_dir: str = Field(default="pass-model.pass", alias="PASS_MODEL_DIR")
    runtime_dir: str = Field(default=".run", alias="RUNTIME_DIR")
    public_dir: str = Field(default="public", alias="PUBLIC_DIR")


def missing_required_secrets(settings: Settings) -> list[str]:
    missing: list[str] = []
    if not settings.jwt_secret:
        missing.append("JWT_SECRET")
    if settings.app_env not in NON_PRODUCTION_ENVS and not settings.stripe_webhook_secret:
        missing.append("STRIPE_WEBHOOK_SECRET")
    return missing


def validate_required_secrets(settings: Settings) -> None:
    """Refuses to start a process that could not mint or verify anything."""
    missing = missing_required_secrets(settings)
    if missing:
        raise ConfigurationError(f"missing required settings: {', '.join(missing)}")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
