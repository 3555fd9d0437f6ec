"""
Centralized Configuration Manager
Provides unified configuration management with validation and environment overrides
"""

import logging
from typing import Any, Dict, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from wafbot.models.query_models import RegionProfile, RegionTag


class AppSettings(BaseSettings):
    """Application settings with validation"""

    # Application Settings
    app_name: str = Field(default="waf-query-bot", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Runtime environment")
    log_level: str = Field(default="INFO", description="Logging level (DEBUG/INFO/WARNING/ERROR/CRITICAL)")
    log_file: Optional[str] = Field(default=None, description="Optional rotating log file path")

    # AWS Configuration
    aws_region: str = Field(default="ap-northeast-1", pattern=r"^[a-z0-9-]+$", description="Primary AWS region")

    # Athena Configuration (primary region)
    ATHENA_DATABASE: str = Field(
        default="amazon_security_lake_glue_db_ap_northeast_1",
        description="Athena database for the primary region (a '.table' suffix is ignored)",
    )
    ATHENA_OUTPUT_BUCKET: str = Field(default="", description="S3 bucket (and optional prefix) for query results")
    ATHENA_WORKGROUP: str = Field(default="primary", min_length=1, description="Athena workgroup")

    # Athena Configuration (us-east-1, global/frontend WAF)
    ATHENA_DATABASE_US_EAST_1: str = Field(
        default="amazon_security_lake_glue_db_us_east_1",
        description="Athena database for us-east-1",
    )
    ATHENA_OUTPUT_BUCKET_US_EAST_1: Optional[str] = Field(
        default=None,
        description="S3 bucket for us-east-1 results (defaults to ATHENA_OUTPUT_BUCKET)",
    )

    # Query execution
    ATHENA_POLL_INTERVAL_SECONDS: float = Field(default=2.0, gt=0, le=60, description="Status poll interval")
    ATHENA_QUERY_TIMEOUT_SECONDS: float = Field(default=45.0, gt=0, le=900, description="Submission-to-completion deadline")
    ATHENA_MAX_RESULTS: int = Field(default=20, ge=1, le=1000, description="Rows fetched per query (single page)")

    # Bedrock Configuration
    BEDROCK_MODEL_ID: str = Field(
        default="apac.anthropic.claude-3-sonnet-20240229-v1:0",
        description="Bedrock model used for SQL generation and analysis",
    )
    BEDROCK_REGION: str = Field(default="ap-northeast-1", pattern=r"^[a-z0-9-]+$", description="Bedrock region")
    BEDROCK_MAX_TOKENS: int = Field(default=1000, ge=1, le=8192, description="Max tokens per model call")

    # Slack Configuration
    SLACK_BOT_TOKEN_SECRET_NAME: Optional[str] = Field(default=None, description="Secrets Manager id holding the bot token")
    SLACK_BOT_USER_ID: Optional[str] = Field(default=None, description="Bot user id, used to drop the bot's own messages")
    SLACK_API_URL: str = Field(default="https://slack.com/api/chat.postMessage", description="chat.postMessage endpoint")
    SLACK_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0, le=60, description="Slack API timeout")

    # Display toggles
    SHOW_SQL_IN_SLACK: bool = Field(default=True, description="Show prompt and generated SQL in results")
    SHOW_QUERY_ID_IN_SLACK: bool = Field(default=True, description="Show execution id and console link in results")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment setting"""
        valid_environments = ["development", "staging", "production", "test"]
        if v not in valid_environments:
            raise ValueError(f"Environment must be one of: {valid_environments}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level setting"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("SHOW_SQL_IN_SLACK", "SHOW_QUERY_ID_IN_SLACK", mode="before")
    @classmethod
    def parse_display_toggle(cls, v: Any) -> bool:
        """Display toggles stay on unless explicitly set to 'false'"""
        if isinstance(v, bool):
            return v
        if v is None:
            return True
        return str(v).strip().lower() != "false"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode"""
        return self.environment == "development"

    @staticmethod
    def _catalog_name(database: str) -> str:
        return database.split(".")[0]

    @staticmethod
    def _output_location(bucket: str) -> str:
        bucket = bucket.strip()
        if not bucket:
            return ""
        if bucket.startswith("s3://"):
            return bucket if bucket.endswith("/") else f"{bucket}/"
        return f"s3://{bucket.rstrip('/')}/"

    def region_profiles(self) -> Dict[RegionTag, RegionProfile]:
        """Structured per-region execution settings"""
        secondary_bucket = self.ATHENA_OUTPUT_BUCKET_US_EAST_1 or self.ATHENA_OUTPUT_BUCKET
        return {
            RegionTag.AP_NORTHEAST_1: RegionProfile(
                region=RegionTag.AP_NORTHEAST_1,
                catalog=self._catalog_name(self.ATHENA_DATABASE),
                output_location=self._output_location(self.ATHENA_OUTPUT_BUCKET),
                workgroup=self.ATHENA_WORKGROUP,
            ),
            RegionTag.US_EAST_1: RegionProfile(
                region=RegionTag.US_EAST_1,
                catalog=self._catalog_name(self.ATHENA_DATABASE_US_EAST_1),
                output_location=self._output_location(secondary_bucket),
                workgroup=self.ATHENA_WORKGROUP,
            ),
        }


class ConfigurationManager:
    """Centralized configuration manager"""

    _instance: Optional[AppSettings] = None
    _logger = logging.getLogger(__name__)

    @classmethod
    def get_settings(cls) -> AppSettings:
        """Get the global settings instance with singleton pattern"""
        if cls._instance is None:
            try:
                cls._instance = AppSettings()
                cls._logger.info(f"Configuration loaded successfully for environment: {cls._instance.environment}")
            except ValidationError as e:
                cls._logger.error(f"Configuration validation failed: {e}")
                raise
        return cls._instance


# Global settings instance
settings = ConfigurationManager.get_settings()


def get_settings() -> AppSettings:
    """Get the global settings instance"""
    return ConfigurationManager.get_settings()
