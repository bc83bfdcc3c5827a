"""
vswitch Daemon Configuration Management
"""
from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from vswitch.logging_config import SERVICE_TOKEN


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_prefix="VSWITCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Switch Configuration
    config_file: str = Field(
        default="/etc/vswitch/config.json",
        description="JSON file holding the list of switch definitions",
    )
    storage_path: str = Field(
        default="/var/lib/vswitch",
        description="Directory for persisted timer and state records",
    )

    # Daemon Configuration
    daemon_host: str = Field(default="0.0.0.0", description="HTTP API bind address")
    daemon_port: int = Field(default=8581, description="HTTP API port")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    json_logs: bool = Field(default=False, description="Emit JSON logs instead of console output")
    log_file: Optional[str] = Field(default=None, description="Also write logs to this file")

    # Log Monitoring Configuration
    default_log_file_path: str = Field(
        default="/var/lib/homebridge/homebridge.log",
        description="Log file followed when a switch enables monitoring without a path",
    )
    default_startup_delay_ms: int = Field(
        default=10000, ge=0, description="Startup delay used when enabled without a value"
    )
    log_source: Literal["tail", "poll"] = Field(
        default="tail", description="How log files are followed"
    )
    tail_command: str = Field(default="tail", description="Executable used by the tail follower")
    tail_follow_name: bool = Field(
        default=False, description="Follow the file name (tail -F) to survive rotation"
    )
    poll_interval_seconds: float = Field(
        default=0.25, gt=0, description="Sleep between reads for the polling follower"
    )
    self_log_tokens: List[str] = Field(
        default=[SERVICE_TOKEN, "homebridge-virtual-switch", "HomebridgeVirtualSwitches"],
        description="Tokens identifying lines this daemon wrote itself",
    )

    # API Configuration
    api_title: str = Field(default="vswitch API", description="API title")
    api_version: str = Field(default="0.1.0", description="API version")
    api_docs_enabled: bool = Field(default=True, description="Enable API documentation")
    cors_origins: List[str] = Field(default=["*"], description="Origins allowed to call the API")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
