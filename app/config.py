"""LeadLaunch — Central Configuration via Pydantic Settings."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Meta API ──
    meta_app_id: str = ""
    meta_app_secret: str = ""
    meta_redirect_uri: str = ""
    meta_api_version: str = "v24.0"
    meta_base_url: str = "https://graph.facebook.com"
    meta_dialog_url: str = "https://www.facebook.com"

    # ── Database ──
    database_url: str = ""

    # ── Auth ──
    jwt_secret: str = "dev-secret-change-me"
    jwt_algorithm: str = "HS256"
    jwt_expire_days: int = 7
    bcrypt_rounds: int = 10

    # ── App ──
    port: int = 8080
    app_base_url: str = ""
    log_level: str = "INFO"
    max_upload_bytes: int = 25 * 1024 * 1024

    # ── Insights Sync ──
    scheduler_enabled: bool = True
    insights_sync_minutes: int = 30
    insights_lookback_days: int = 7

    @property
    def effective_database_url(self) -> str:
        """Return the configured URL, otherwise a local SQLite file."""
        if self.database_url:
            return self.database_url
        return "sqlite:///./leadlaunch.db"

    @property
    def public_base_url(self) -> str:
        """Base URL the browser is redirected back to after OAuth."""
        return (self.app_base_url or f"http://localhost:{self.port}").rstrip("/")

    @property
    def graph_base(self) -> str:
        return f"{self.meta_base_url}/{self.meta_api_version}"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
