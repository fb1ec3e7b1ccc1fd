"""Process configuration for the governance engine."""

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

ENV_PREFIX = "MESH_GOV_"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


@dataclass
class GovernanceConfig:
    """Configuration for the catalog and access lifecycle engine.

    Attributes:
        grant_duration_days: Default lifetime of a grant on non-public products.
        expiry_warning_days: Window before expiry in which a grant reads as expiring.
        audit_capacity: Maximum audit entries retained; None means unbounded.
        notification_workers: Threads used for fire-and-forget owner notifications.
        log_level: structlog filtering level.
        json_logs: Emit JSON log lines.
        seed_demo_data: Load the demo catalog when the API server starts.
    """

    grant_duration_days: int = 180
    expiry_warning_days: int = 30
    audit_capacity: Optional[int] = None
    notification_workers: int = 2
    log_level: str = "INFO"
    json_logs: bool = False
    seed_demo_data: bool = False

    @property
    def grant_duration(self) -> timedelta:
        return timedelta(days=self.grant_duration_days)

    @property
    def expiry_warning_window(self) -> timedelta:
        return timedelta(days=self.expiry_warning_days)

    @classmethod
    def from_env(cls) -> "GovernanceConfig":
        """Build a configuration from ``MESH_GOV_*`` environment variables."""
        defaults = cls()
        return cls(
            grant_duration_days=_env_int("GRANT_DURATION_DAYS", defaults.grant_duration_days),
            expiry_warning_days=_env_int("EXPIRY_WARNING_DAYS", defaults.expiry_warning_days),
            audit_capacity=_env_int("AUDIT_CAPACITY", defaults.audit_capacity),
            notification_workers=_env_int("NOTIFICATION_WORKERS", defaults.notification_workers),
            log_level=os.environ.get(ENV_PREFIX + "LOG_LEVEL", defaults.log_level),
            json_logs=_env_bool("JSON_LOGS", defaults.json_logs),
            seed_demo_data=_env_bool("SEED_DEMO", defaults.seed_demo_data),
        )
