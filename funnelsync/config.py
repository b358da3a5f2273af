"""FunnelSync - Central Configuration via Pydantic Settings."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Server ──
    port: int = 8080

    # ── Upstream feeds ──
    ads_api_url: str = "https://mocki.io/v1/9dcc2981-2bc8-465a-bce3-47767e1278e6"
    crm_api_url: str = "https://mocki.io/v1/6a064f10-829d-432c-9f0d-24d5b8cb71c7"

    # ── Export sink ──
    sink_url: str = ""  # empty = export is prepared but not delivered
    sink_secret: str = "admira_secret_example"

    # ── HTTP behaviour ──
    timeout_seconds: int = 30
    max_retries: int = 3
    backoff_ms: int = 1000

    # ── Reconciliation ──
    join_ignore_campaign_id: bool = False

    # ── App ──
    log_level: str = "INFO"
    scheduler_enabled: bool = False
    export_hour: int = 2  # Daily ingest + export at 2 AM UTC

    @property
    def timeout(self) -> float:
        """HTTP timeout in seconds."""
        return float(self.timeout_seconds)

    @property
    def backoff(self) -> float:
        """Linear backoff unit in seconds."""
        return self.backoff_ms / 1000.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
