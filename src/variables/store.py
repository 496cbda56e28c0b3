# src/variables/store.py — v1
"""Variable store — run-scoped configuration values with secret masking.

Values are set once at run start (collected, generated or read from the
environment) and are immutable afterwards. Secret values never leave the
store in cleartext except through get(), which steps use to render files.
"""

from __future__ import annotations

import logging
import re
import secrets
from urllib.parse import quote

from provisioner.core.errors import InvalidConfig, MissingConfig
from provisioner.core.models import ConfigValue, Sensitivity, ValueSource

logger = logging.getLogger(__name__)

HIDDEN_PLACEHOLDER = "[HIDDEN]"
PREFIX_MAX_LEN = 15
MIN_HIDDEN_SUFFIX = 8
MIN_PREFIX_SECRET_LEN = 16

REQUIRED_KEYS: tuple[str, ...] = ("domain", "contact_email", "database_password", "api_key")
SECRET_KEYS: frozenset[str] = frozenset({"database_password", "api_key", "secret_key"})

_LABEL_RE = re.compile(r"^(?!-)[a-z0-9-]{1,63}(?<!-)$")
_EMAIL_RE = re.compile(r"^[^@\s]+@([^@\s]+)$")

_TRUE_WORDS = {"1", "true", "yes", "y", "on"}
_FALSE_WORDS = {"0", "false", "no", "n", "off", ""}


def is_valid_hostname(value: str) -> bool:
    """Basic hostname grammar: dot-separated labels, at least two of them."""
    if not value or len(value) > 253:
        return False
    labels = value.lower().rstrip(".").split(".")
    if len(labels) < 2:
        return False
    return all(_LABEL_RE.match(label) for label in labels)


def is_valid_email(value: str) -> bool:
    match = _EMAIL_RE.match(value)
    return bool(match) and is_valid_hostname(match.group(1))


def mask_value(value: str, reveal_prefix: bool = False) -> str:
    """Render a secret for display.

    Prefix-revealing secrets show at most PREFIX_MAX_LEN leading characters
    and always hide the last MIN_HIDDEN_SUFFIX. Everything else, including
    short prefix-revealing values, becomes HIDDEN_PLACEHOLDER.
    """
    if not reveal_prefix or len(value) < MIN_PREFIX_SECRET_LEN:
        return HIDDEN_PLACEHOLDER
    shown = min(PREFIX_MAX_LEN, len(value) - MIN_HIDDEN_SUFFIX)
    return f"{value[:shown]}..."


def generate_secret_key() -> str:
    """64 hex characters, equivalent to `openssl rand -hex 32`."""
    return secrets.token_hex(32)


class VariableStore:
    """In-memory store of ConfigValues for one run."""

    def __init__(self) -> None:
        self._values: dict[str, ConfigValue] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def set(
        self,
        key: str,
        value: str,
        sensitivity: Sensitivity | None = None,
        source: ValueSource = "interactive",
        reveal_prefix: bool = False,
    ) -> ConfigValue:
        """Record a value. Values are immutable for the run once set."""
        if key in self._values:
            raise InvalidConfig(f"Configuration value '{key}' is already set")
        if sensitivity is None:
            sensitivity = "secret" if key in SECRET_KEYS else "plain"
        entry = ConfigValue(
            key=key,
            value=value.strip(),
            source=source,
            sensitivity=sensitivity,
            reveal_prefix=reveal_prefix,
        )
        self._values[key] = entry
        logger.debug("Config value set: %s (source=%s, %s)", key, source, sensitivity)
        return entry

    def get(self, key: str) -> str:
        entry = self._values.get(key)
        if entry is None:
            raise MissingConfig(key)
        return entry.value

    def get_entry(self, key: str) -> ConfigValue:
        entry = self._values.get(key)
        if entry is None:
            raise MissingConfig(key)
        return entry

    def get_optional(self, key: str, default: str | None = None) -> str | None:
        entry = self._values.get(key)
        return entry.value if entry is not None else default

    def get_bool(self, key: str, default: bool | None = None) -> bool | None:
        """Interpret a plain value as a yes/no flag."""
        raw = self.get_optional(key)
        if raw is None:
            return default
        word = raw.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
        raise InvalidConfig(f"Configuration value '{key}' is not a yes/no flag: {raw!r}")

    def masked_summary(self) -> dict[str, str]:
        """Return key -> display string with every secret masked."""
        return {
            key: mask_value(entry.value, entry.reveal_prefix) if entry.is_secret else entry.value
            for key, entry in self._values.items()
        }

    def masked(self, text: str) -> str:
        """Replace every secret occurring in text with its masked form.

        The percent-encoded form (as embedded in connection URLs) is masked too.
        """
        for entry in sorted(
            (e for e in self._values.values() if e.is_secret and e.value),
            key=lambda e: len(e.value),
            reverse=True,
        ):
            hidden = mask_value(entry.value, entry.reveal_prefix)
            text = text.replace(entry.value, hidden)
            encoded = quote(entry.value, safe="")
            if encoded != entry.value:
                text = text.replace(encoded, hidden)
        return text

    def validate(self) -> None:
        """Check required keys and formats before any step runs.

        Raises:
            InvalidConfig: listing every problem found.
        """
        problems: list[str] = []

        for key in REQUIRED_KEYS:
            if not self.get_optional(key):
                problems.append(f"{key} is required")

        domain = self.get_optional("domain")
        if domain and not is_valid_hostname(domain):
            problems.append(f"domain {domain!r} is not a valid hostname")

        email = self.get_optional("contact_email")
        if email and not is_valid_email(email):
            problems.append(f"contact_email {email!r} is not a valid email address")

        if "dns_ready" in self:
            try:
                self.get_bool("dns_ready")
            except InvalidConfig as exc:
                problems.append(str(exc))

        if problems:
            raise InvalidConfig("Invalid configuration: " + "; ".join(problems), problems)
