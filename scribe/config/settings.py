"""Environment-driven configuration.

Each concern reads its own prefixed variables from the process environment,
``.env`` and the ``.secrets`` directory. Bedrock keeps unprefixed aliases so
the same variable names work across deployments.
"""

from typing import Optional
from urllib.parse import quote_plus

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env(prefix: str = "") -> SettingsConfigDict:
    return SettingsConfigDict(
        env_prefix=prefix,
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class DatabaseConfig(BaseSettings):
    """PostgreSQL connection for the session and transcript tables."""

    model_config = _env("DB_")

    host: str = "localhost"
    port: int = 5432
    username: str = "postgres"
    password: SecretStr = SecretStr("postgres")
    database: str = "scribe"
    search_schema: Optional[str] = None
    # NullPool when true; serverless Postgres drops idle pooled connections.
    serverless: bool = True

    @property
    def url(self) -> str:
        credentials = f"{quote_plus(self.username)}:{quote_plus(self.password.get_secret_value())}"
        return f"postgresql+asyncpg://{credentials}@{self.host}:{self.port}/{self.database}"


class AwsConfig(BaseSettings):
    model_config = _env("AWS_")

    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    region: str = "us-east-1"


class BedrockConfig(BaseSettings):
    """Text generation used for enhancement, formatting and summaries."""

    model_config = _env()

    enabled: bool = Field(default=False, validation_alias="BEDROCK_ENABLED")
    region: str = Field(default="us-east-1", validation_alias="BEDROCK_REGION")
    # Probed in order on first use; the first one that answers is kept.
    model_candidates: list[str] = Field(
        default=[
            "amazon.nova-lite-v1:0",
            "amazon.nova-micro-v1:0",
            "anthropic.claude-3-haiku-20240307-v1:0",
        ],
        validation_alias="BEDROCK_MODEL_CANDIDATES",
    )
    max_tokens: int = Field(default=800, ge=1, le=4096, validation_alias="BEDROCK_MAX_TOKENS")
    temperature: float = Field(default=0.3, ge=0.0, le=1.0, validation_alias="BEDROCK_TEMPERATURE")
    top_p: float = Field(default=0.8, ge=0.0, le=1.0, validation_alias="BEDROCK_TOP_P")
    timeout_seconds: float = Field(default=10.0, gt=0, validation_alias="BEDROCK_TIMEOUT_SECONDS")
    max_input_chars: int = Field(default=6000, ge=100, validation_alias="BEDROCK_MAX_INPUT_CHARS")
    api_key: SecretStr | None = Field(default=None, validation_alias="BEDROCK_API_KEY")


class TranscribeConfig(BaseSettings):
    """Amazon Transcribe streaming for per-chunk speech to text."""

    model_config = _env("TRANSCRIBE_")

    enabled: bool = False
    region: str = "us-east-1"
    language_code: str = "en-US"
    sample_rate_hz: int = 16000
    timeout_seconds: float = Field(default=8.0, gt=0)


class SessionConfig(BaseSettings):
    """Realtime recording session tuning."""

    model_config = _env("SESSION_")

    chunk_interval_seconds: int = Field(default=3, ge=1)
    idle_grace_seconds: float = Field(default=300.0, gt=0)
    sweep_interval_seconds: float = Field(default=15.0, gt=0)
    interrupted_retention_seconds: float = Field(default=3600.0, ge=0)
    enhancement_window: int = Field(default=3, ge=1)
    enhancement_timeout_seconds: float = Field(default=4.0, gt=0)
    max_upload_bytes: int = Field(default=100 * 1024 * 1024, ge=1)


class Settings(BaseSettings):
    """Application settings"""

    model_config = _env()

    app_name: str = "Scribe Realtime Backend"
    app_version: str = "1.0.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 3001

    log_file: str = "logs/app.log"
    session_log_file: str = "logs/session_pipeline.log"
    transcript_log_file: str = "logs/transcripts.log"
    persist_request_logs: bool = False
    ffmpeg_binary: str = "ffmpeg"

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    aws: AwsConfig = Field(default_factory=AwsConfig)
    bedrock: BedrockConfig = Field(default_factory=BedrockConfig)
    transcribe: TranscribeConfig = Field(default_factory=TranscribeConfig)
    sessions: SessionConfig = Field(default_factory=SessionConfig)

    # CORS
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:3002"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["GET", "POST"]
    cors_allow_headers: list[str] = ["*"]


settings = Settings()
