# src/api/models.py — v1
"""API-level models: ProvisionOptions, PreviewItem, ProvisionResult."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from provisioner.core.models import RunSummary


class ProvisionOptions(BaseModel):
    """Caller-supplied inputs for one provisioning invocation.

    Values left as None fall back to PROVISION_* settings, then to prompts
    when the run is interactive.
    """

    domain: str | None = None
    contact_email: str | None = None
    database_password: str | None = None
    api_key: str | None = None
    dns_ready: bool | None = None
    resume: bool = False
    interactive: bool = True
    dry_run: bool = False
    state_dir: Path | None = None

    def overrides(self) -> dict[str, str | bool | None]:
        """Operator values keyed like the variable store."""
        return {
            "domain": self.domain,
            "contact_email": self.contact_email,
            "database_password": self.database_password,
            "api_key": self.api_key,
            "dns_ready": self.dns_ready,
        }


class PreviewItem(BaseModel):
    """Dry-run prediction for one step."""

    step_id: str
    label: str
    action: Literal["skip", "apply"]
    note: str = ""


class ProvisionResult(BaseModel):
    """Return value of facade.provision()."""

    run_id: str | None = None
    summary: RunSummary | None = None
    preview: list[PreviewItem] = Field(default_factory=list)
    state_path: Path | None = None

    @property
    def completed(self) -> bool:
        if self.summary is None:
            return True
        return self.summary.status == "completed"
