# src/variables/sources.py — v1
"""Configuration sources — where operator input comes from.

The runner never talks to a terminal directly. Steps that need operator
input (DNS readiness) go through the ConfigSource held by the StepContext,
so the same plan runs interactively or from CLI/environment values.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path

from rich.console import Console
from rich.prompt import Confirm, Prompt
from rich.table import Table

from provisioner.config.settings import Settings
from provisioner.core.errors import ConfigDeclined, RunCancelled
from provisioner.core.models import ValueSource
from provisioner.templates.files import parse_env_file
from provisioner.variables.store import REQUIRED_KEYS, VariableStore, generate_secret_key

logger = logging.getLogger(__name__)

# key -> (prompt text, secret?)
PROMPTS: dict[str, tuple[str, bool]] = {
    "api_key": ("Enter your API key", True),
    "database_password": ("Enter database password (create a secure one)", True),
    "domain": ("Enter your domain name (e.g. example.com)", False),
    "contact_email": ("Enter your email for the SSL certificate", False),
}

# Secrets whose leading characters may be shown in summaries.
PREFIX_REVEALING_KEYS: frozenset[str] = frozenset({"api_key"})

_SETTINGS_KEYS: tuple[str, ...] = (
    "domain",
    "contact_email",
    "database_password",
    "api_key",
)


class ConfigSource(ABC):
    """Collects operator input and answers confirmation questions."""

    interactive: bool = False

    @abstractmethod
    def collect(self, store: VariableStore) -> None:
        """Fill in any required values still missing from the store."""

    @abstractmethod
    def confirm(self, store: VariableStore) -> None:
        """Confirm the collected configuration.

        Raises:
            ConfigDeclined: If the operator rejects the settings.
        """

    @abstractmethod
    def confirm_dns(self, store: VariableStore, public_ip: str | None) -> bool:
        """Return True when DNS for the domain points at this host."""


class MappingSource(ConfigSource):
    """Non-interactive source: everything comes from CLI options or environment."""

    def collect(self, store: VariableStore) -> None:
        missing = [k for k in REQUIRED_KEYS if k not in store]
        if missing:
            logger.debug("Non-interactive run missing values: %s", missing)

    def confirm(self, store: VariableStore) -> None:
        logger.info("Configuration accepted (non-interactive): %s", store.masked_summary())

    def confirm_dns(self, store: VariableStore, public_ip: str | None) -> bool:
        ready = bool(store.get_bool("dns_ready", False))
        logger.info("DNS readiness from configuration: %s", "yes" if ready else "no")
        return ready


class InteractiveSource(ConfigSource):
    """Terminal prompts rendered with rich."""

    interactive = True

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    def collect(self, store: VariableStore) -> None:
        self._console.rule("Configuration Setup")
        for key, (text, secret) in PROMPTS.items():
            if key in store:
                continue
            value = self._ask(text, secret)
            store.set(
                key,
                value,
                source="interactive",
                reveal_prefix=key in PREFIX_REVEALING_KEYS,
            )

    def confirm(self, store: VariableStore) -> None:
        table = Table(title="Please confirm your settings", show_header=False)
        table.add_column("Setting", style="bold")
        table.add_column("Value")
        table.add_column("Source", style="dim")
        for key, shown in store.masked_summary().items():
            table.add_row(key, shown, store.get_entry(key).source)
        self._console.print(table)
        if not self._ask_yes_no("Are these correct?", default=False):
            raise ConfigDeclined("Deployment cancelled. Please run the command again.")

    def confirm_dns(self, store: VariableStore, public_ip: str | None) -> bool:
        preset = store.get_bool("dns_ready")
        if preset is not None:
            return preset
        domain = store.get("domain")
        self._console.print("[yellow]Make sure DNS is pointing to this server![/yellow]")
        self._console.print(f"A record: {domain} -> {public_ip or 'unknown'}")
        return self._ask_yes_no("Is DNS configured?", default=False)

    def _ask(self, text: str, secret: bool) -> str:
        try:
            return Prompt.ask(text, password=secret, console=self._console)
        except (EOFError, KeyboardInterrupt) as exc:
            raise RunCancelled("Cancelled at configuration prompt") from exc

    def _ask_yes_no(self, text: str, default: bool) -> bool:
        try:
            return Confirm.ask(text, default=default, console=self._console)
        except (EOFError, KeyboardInterrupt) as exc:
            raise RunCancelled(f"Cancelled at prompt: {text}") from exc


def seed_store(
    store: VariableStore,
    settings: Settings,
    overrides: Mapping[str, str | bool | None] | None = None,
) -> None:
    """Load preset values: CLI overrides first, then PROVISION_* settings."""
    overrides = overrides or {}

    for key in _SETTINGS_KEYS:
        value = overrides.get(key)
        source: ValueSource = "cli"
        if value in (None, ""):
            value = getattr(settings, key)
            source = "environment"
        if value in (None, ""):
            continue
        store.set(key, str(value), source=source, reveal_prefix=key in PREFIX_REVEALING_KEYS)

    dns_ready = overrides.get("dns_ready")
    source = "cli"
    if dns_ready is None:
        dns_ready = settings.dns_ready
        source = "environment"
    if dns_ready is not None:
        store.set("dns_ready", "yes" if dns_ready else "no", source=source)


def add_generated_values(store: VariableStore, env_file: Path) -> None:
    """Generate the backend secret key, reusing one already deployed."""
    if "secret_key" in store:
        return
    existing = None
    if env_file.is_file():
        existing = parse_env_file(env_file.read_text(encoding="utf-8")).get("SECRET_KEY")
    if existing:
        logger.info("Reusing SECRET_KEY from %s", env_file)
    store.set("secret_key", existing or generate_secret_key(), source="generated")
