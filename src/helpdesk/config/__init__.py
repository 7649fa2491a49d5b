"""
Configuration Module
====================

Application settings and domain constants for the helpdesk SLA service.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path
from typing import List


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="helpdesk-sla", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/helpdesk",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA ==========
    sla_policies_path: Path = Field(
        default=Path("sla_policies.yaml"),
        description="YAML file with the default SLA policy per priority"
    )
    sla_check_interval_seconds: int = Field(
        default=0,
        description="Seconds between background breach sweeps (0 disables the sweep)",
        ge=0
    )
    sla_at_risk_hours: int = Field(
        default=2,
        description="Default warning window for the at-risk list",
        ge=1
    )
    sla_report_period_days: int = Field(
        default=30,
        description="Default trailing period for compliance reports",
        ge=1
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class Priority(str):
    """Ticket priority levels."""
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class TicketStatus(str):
    """Ticket lifecycle statuses."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    PENDING = "pending"
    RESOLVED = "resolved"
    CLOSED = "closed"


class UserRole(str):
    """Roles of helpdesk users."""
    CUSTOMER = "customer"
    AGENT = "agent"
    ADMIN = "admin"


class SLAState(str):
    """Display states derived from the stored SLA fields."""
    NO_SLA = "no_sla"
    PENDING = "pending"
    RESPONDED = "responded"
    MET = "met"
    BREACHED = "breached"


class ReportGrouping(str):
    """Grouping keys for the compliance report."""
    DEPARTMENT = "department"
    AGENT = "agent"


# ========== Lists for validation ==========

VALID_PRIORITIES = [
    Priority.CRITICAL, Priority.HIGH,
    Priority.MEDIUM, Priority.LOW
]
VALID_STATUSES = [
    TicketStatus.OPEN, TicketStatus.IN_PROGRESS, TicketStatus.PENDING,
    TicketStatus.RESOLVED, TicketStatus.CLOSED
]
TERMINAL_STATUSES = [TicketStatus.RESOLVED, TicketStatus.CLOSED]
RESPONDER_ROLES = [UserRole.AGENT, UserRole.ADMIN]
VALID_GROUPINGS = [ReportGrouping.DEPARTMENT, ReportGrouping.AGENT]

# Display order: Critical first
PRIORITY_RANK = {
    Priority.CRITICAL: 1,
    Priority.HIGH: 2,
    Priority.MEDIUM: 3,
    Priority.LOW: 4,
}

# Upper bound for policy hours (one year)
MAX_SLA_HOURS = 8760
