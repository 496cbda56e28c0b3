# src/config/settings.py — v1
"""Typed configuration loaded from .env and PROVISION_* variables via pydantic-settings.

Single source of truth for host paths, application identity and runner
behaviour. Operator inputs (domain, contact email, secrets) may also be
supplied here for non-interactive runs.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Provisioner settings loaded from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="PROVISION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === OPERATOR INPUTS (non-interactive mode) ===
    domain: str = ""
    contact_email: str = ""
    database_password: str = ""
    api_key: str = ""
    dns_ready: bool | None = None

    # === APPLICATION IDENTITY ===
    app_name: str = "webapp"
    service_name: str = ""
    db_name: str = ""
    db_user: str = ""
    backend_port: int = 8000
    backend_module: str = "app_backend"

    # === HOST PATHS ===
    state_dir: Path = Path("/var/lib/provisioner")
    app_root: Path = Path("/var/www/webapp")
    frontend_root: Path = Path("/var/www/webapp-frontend")
    nginx_sites_available: Path = Path("/etc/nginx/sites-available")
    nginx_sites_enabled: Path = Path("/etc/nginx/sites-enabled")
    systemd_unit_dir: Path = Path("/etc/systemd/system")
    letsencrypt_live_dir: Path = Path("/etc/letsencrypt/live")
    backup_dir: Path = Path("/root/backups")
    backup_script: Path = Path("/root/backup.sh")
    backup_log: Path = Path("/var/log/backup.log")

    # === PACKAGES ===
    base_packages: str = (
        "python3,python3-pip,python3-venv,nginx,certbot,python3-certbot-nginx,"
        "postgresql,postgresql-contrib,git,curl,ufw,fail2ban"
    )
    node_major: int = 18
    nodesource_url: str = "https://deb.nodesource.com/setup_{major}.x"
    backend_packages: str = (
        "fastapi,uvicorn[standard],pydantic,python-multipart,openai,"
        "psycopg2-binary,sqlalchemy,python-dotenv,boto3,"
        "python-jose[cryptography],passlib[bcrypt]"
    )

    # === BACKEND ENVIRONMENT FILE ===
    api_key_env_var: str = "OPENAI_API_KEY"
    s3_bucket: str = ""
    aws_region: str = "us-east-1"

    # === SCHEDULES ===
    backup_schedule: str = "0 2 * * *"
    renew_schedule: str = "0 0 * * *"
    backup_retention_days: int = 7

    # === RUNNER ===
    step_timeout_s: float = 1800.0
    command_timeout_s: float = 900.0
    continue_independent: bool = True
    require_root: bool = True

    # === LOGGING ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = Path("/var/log/provisioner.log")
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("backend_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 1 <= v <= 65535:
            raise ValueError("backend_port must be between 1 and 65535")
        return v

    @field_validator("step_timeout_s", "command_timeout_s")
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be > 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.command_timeout_s > self.step_timeout_s:
            errors.append("COMMAND_TIMEOUT_S must be <= STEP_TIMEOUT_S")

        for name in (
            "state_dir",
            "app_root",
            "frontend_root",
            "nginx_sites_available",
            "nginx_sites_enabled",
            "systemd_unit_dir",
            "letsencrypt_live_dir",
            "backup_dir",
            "backup_script",
        ):
            if not getattr(self, name).is_absolute():
                errors.append(f"{name.upper()} must be an absolute path")

        if not self.app_name.replace("_", "").replace("-", "").isalnum():
            errors.append("APP_NAME may only contain letters, digits, '-' and '_'")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def resolved_service_name(self) -> str:
        return self.service_name or self.app_name

    @property
    def resolved_db_name(self) -> str:
        return self.db_name or self.app_name.replace("-", "_")

    @property
    def resolved_db_user(self) -> str:
        return self.db_user or f"{self.resolved_db_name}_user"

    @property
    def resolved_s3_bucket(self) -> str:
        return self.s3_bucket or f"{self.app_name}-uploads"

    @property
    def base_packages_list(self) -> list[str]:
        """Parse comma-separated system packages."""
        return [p.strip() for p in self.base_packages.split(",") if p.strip()]

    @property
    def backend_packages_list(self) -> list[str]:
        """Parse comma-separated pip packages."""
        return [p.strip() for p in self.backend_packages.split(",") if p.strip()]

    @property
    def nodesource_setup_url(self) -> str:
        return self.nodesource_url.format(major=self.node_major)

