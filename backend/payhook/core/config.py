from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_name: str = "Payhook"
    debug: bool = False
    node_env: str = "development"  # env: NODE_ENV, banner + log format only

    # Server
    host: str = "0.0.0.0"
    port: int = 80

    # Public URLs (startup banner)
    site_url: str = "http://localhost:3000"
    webhook_url: str = ""  # empty = derived from port

    # Payhip
    payhip_api_key: str = ""  # display only, never used to verify payloads

    # Payment log store
    payment_log_dir: str = "payment-logs"
    payment_log_write_timeout: float = 10.0  # seconds

    # HTTP edge
    allowed_origins: list[str] = [
        "http://blessingsjourney.xyz",
        "https://blessingsjourney.xyz",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    static_dir: str = ""  # env: STATIC_DIR, optional front-end root served at /

    @property
    def is_production(self) -> bool:
        return self.node_env.lower() == "production"

    @property
    def resolved_webhook_url(self) -> str:
        return self.webhook_url or f"http://localhost:{self.port}/webhook/payhip"

    @property
    def masked_api_key(self) -> str:
        if not self.payhip_api_key:
            return "(not set)"
        return f"{self.payhip_api_key[:8]}..."


@lru_cache
def get_settings() -> Settings:
    return Settings()
