"""
Configuration management for SwipeSync using Pydantic Settings.

Loads configuration from environment variables with type validation and sane defaults.
"""

from typing import List, Tuple
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: str = Field(default="development", description="Environment: development, staging, production")
    debug: bool = Field(default=False, description="Debug mode")

    # Key-value store (Redis)
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    redis_socket_timeout: float = Field(default=5.0, description="Redis socket timeout (seconds)")
    scan_batch_size: int = Field(default=200, description="COUNT hint for SCAN iterations")
    scan_max_keys: int = Field(default=5000, description="Upper bound on keys returned by one pattern scan")

    # Blockchain RPC
    base_rpc_url: str = Field(default="https://mainnet.base.org", description="Base network RPC endpoint")
    rpc_timeout_seconds: int = Field(default=30, description="RPC request timeout (seconds)")
    rpc_max_attempts: int = Field(default=3, description="Attempts per contract read before giving up")
    rpc_backoff_seconds: float = Field(default=1.0, description="Exponential backoff multiplier for contract reads")

    # Contracts
    legacy_contract_address: str = Field(
        default="0x2bA339Df34B98099a9047d9442075F7B3a792f74",
        description="ETH/SWIPE dual-token prediction market contract",
    )
    usdc_contract_address: str = Field(
        default="0xf5Fa6206c2a7d5473ae7468082c9D260DFF83205",
        description="USDC dual-pool contract",
    )
    route_rules: str = Field(
        default="pred_v2_=usdc,=legacy",
        description="Ordered prefix=version routing rules (comma-separated)",
    )
    usdc_seed_prediction_ids: str = Field(
        default="224,225,226",
        description="Bootstrap on-chain ids for full USDC sync (comma-separated)",
    )

    # Reconciliation
    sync_participant_cap: int = Field(default=100, description="Max participants synced per prediction per pass")
    price_history_limit: int = Field(default=1000, description="Max price points kept per prediction")

    # Tasks & stats
    achievement_types: str = Field(
        default="BETA_TESTER,FOLLOW_SOCIALS,STREAK_7,STREAK_30",
        description="Permanent achievement task types (comma-separated)",
    )
    internal_api_secret: str = Field(default="", description="Shared secret for the stats recording endpoint")
    admin_key: str = Field(default="", description="Admin key for X-Admin-Key protected routes")

    # Rate Limiting
    rate_limit_enabled: bool = Field(default=True, description="Enable rate limiting")
    rate_limit_confirm: str = Field(default="30/minute", description="Rate limit for task confirmation")
    rate_limit_stats: str = Field(default="60/minute", description="Rate limit for claim recording")

    # Logging
    log_level: str = Field(default="INFO", description="Log level: DEBUG, INFO, WARNING, ERROR")
    log_format: str = Field(default="text", description="Log format: json or text")
    log_file: str = Field(default="", description="Log file path (empty disables the file sink)")

    # Scheduler
    scheduler_enabled: bool = Field(default=False, description="Enable background drift checker")
    drift_check_interval_minutes: int = Field(default=15, description="Drift check interval")

    @field_validator("usdc_seed_prediction_ids")
    @classmethod
    def parse_seed_ids(cls, v: str) -> List[int]:
        """Parse comma-separated on-chain ids into a list of ints."""
        return [int(part.strip()) for part in v.split(",") if part.strip()]

    @field_validator("achievement_types")
    @classmethod
    def parse_achievement_types(cls, v: str) -> List[str]:
        """Parse comma-separated achievement types."""
        return [part.strip() for part in v.split(",") if part.strip()]

    @field_validator("route_rules")
    @classmethod
    def parse_route_rules(cls, v: str) -> List[Tuple[str, str]]:
        """Parse 'prefix=version' pairs, preserving order."""
        rules = []
        for part in v.split(","):
            part = part.strip()
            if not part:
                continue
            if "=" not in part:
                raise ValueError(f"Invalid route rule (expected prefix=version): {part}")
            prefix, version = part.split("=", 1)
            rules.append((prefix.strip(), version.strip().lower()))
        return rules

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"


# Global settings instance
settings = Settings()
