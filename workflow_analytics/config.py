"""Configuration management for Workflow Analytics."""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AnalyticsSettings(BaseSettings):
    """Analytics settings loaded from environment variables or a YAML file."""

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_ANALYTICS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    app_name: str = "Workflow Analytics"
    log_level: str = Field(default="INFO")

    # Gathering
    group_timeout_seconds: float = Field(default=30.0, gt=0)

    # Flow & bottleneck detection
    bottleneck_incoming_multiplier: float = Field(default=2.0, gt=0)
    bottleneck_handoff_hours: float = Field(default=24.0, gt=0)
    high_redelegation_threshold: int = Field(default=2, ge=0)

    # Periods
    default_period_days: int = Field(default=30, gt=0)
    benchmark_history_periods: int = Field(default=3, ge=1)
    prediction_periods: int = Field(default=4, ge=0)

    # Fixed benchmark targets
    fixed_targets: Dict[str, float] = Field(
        default_factory=lambda: {
            "completion_rate": 78.0,
            "avg_completion_time_hours": 48.0,
            "delegation_success_rate": 85.0,
            "approval_rate": 85.0,
        }
    )

    # Recommendation thresholds
    min_completion_rate: float = 70.0
    excellent_completion_rate: float = 90.0
    min_delegation_success_rate: float = 80.0
    min_approval_rate: float = 75.0
    max_time_to_first_delegation_hours: float = 24.0
    min_implementation_efficiency: float = 70.0
    min_plan_completion_rate: float = 80.0
    min_flow_efficiency_score: float = 60.0
    max_completion_rate_decline_percent: float = 15.0


def load_settings(path: Optional[Union[str, Path]] = None, **overrides: Any) -> AnalyticsSettings:
    """Build settings, layering an optional YAML file and explicit overrides."""
    values: Dict[str, Any] = {}

    if path is not None:
        config_path = Path(path)
        with config_path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {config_path} must contain a mapping")
        values.update(loaded)

    values.update(overrides)
    return AnalyticsSettings(**values)


def configure_logging(settings: Optional[AnalyticsSettings] = None) -> None:
    """Configure root logging for applications embedding the analytics engine."""
    settings = settings or AnalyticsSettings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
