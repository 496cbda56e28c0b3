# tests/unit/variables/test_unit_sources.py — v1
"""Tests for variables/sources.py — config sources, seeding, generated values."""

from __future__ import annotations

import io
from unittest.mock import patch

import pytest
from rich.console import Console

from provisioner.config.settings import Settings
from provisioner.core.errors import ConfigDeclined, RunCancelled
from provisioner.variables.sources import (
    InteractiveSource,
    MappingSource,
    add_generated_values,
    seed_store,
)
from provisioner.variables.store import VariableStore


def _console() -> Console:
    return Console(file=io.StringIO(), force_terminal=False, width=120)


class TestSeedStore:
    def test_cli_overrides_environment(self):
        settings = Settings(_env_file=None, domain="env.example.com", contact_email="env@example.com")
        store = VariableStore()
        seed_store(store, settings, {"domain": "cli.example.com"})
        assert store.get("domain") == "cli.example.com"
        assert store.get_entry("domain").source == "cli"
        assert store.get("contact_email") == "env@example.com"
        assert store.get_entry("contact_email").source == "environment"

    def test_empty_values_skipped(self):
        store = VariableStore()
        seed_store(store, Settings(_env_file=None), {"domain": ""})
        assert "domain" not in store

    def test_api_key_reveals_prefix(self):
        store = VariableStore()
        seed_store(store, Settings(_env_file=None), {"api_key": "sk-abcdEFGH12345678WXYZ"})
        assert store.get_entry("api_key").reveal_prefix
        assert store.get_entry("api_key").is_secret

    def test_dns_ready_flag(self):
        store = VariableStore()
        seed_store(store, Settings(_env_file=None, dns_ready=True), {"dns_ready": False})
        assert store.get_bool("dns_ready") is False

    def test_dns_ready_from_settings(self):
        store = VariableStore()
        seed_store(store, Settings(_env_file=None, dns_ready=True))
        assert store.get_bool("dns_ready") is True

    def test_dns_ready_absent(self):
        store = VariableStore()
        seed_store(store, Settings(_env_file=None))
        assert "dns_ready" not in store


class TestAddGeneratedValues:
    def test_generates_when_absent(self, tmp_path):
        store = VariableStore()
        add_generated_values(store, tmp_path / ".env")
        assert len(store.get("secret_key")) == 64
        assert store.get_entry("secret_key").source == "generated"
        assert store.get_entry("secret_key").is_secret

    def test_reuses_deployed_key(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("SECRET_KEY=" + "a" * 64 + "\nDEBUG=False\n")
        store = VariableStore()
        add_generated_values(store, env_file)
        assert store.get("secret_key") == "a" * 64

    def test_existing_value_kept(self, tmp_path):
        store = VariableStore()
        store.set("secret_key", "preset", source="cli")
        add_generated_values(store, tmp_path / ".env")
        assert store.get("secret_key") == "preset"


class TestMappingSource:
    def test_confirm_never_prompts(self):
        store = VariableStore()
        store.set("domain", "example.com")
        MappingSource().confirm(store)

    def test_confirm_dns_uses_flag(self):
        store = VariableStore()
        store.set("dns_ready", "yes")
        assert MappingSource().confirm_dns(store, "203.0.113.10") is True

    def test_confirm_dns_defaults_to_not_ready(self):
        assert MappingSource().confirm_dns(VariableStore(), None) is False


class TestInteractiveSource:
    def test_collect_prompts_only_for_missing(self):
        store = VariableStore()
        store.set("domain", "example.com")
        answers = iter(["sk-abcdEFGH12345678WXYZ", "pw", "admin@example.com"])
        with patch("provisioner.variables.sources.Prompt.ask", side_effect=lambda *a, **k: next(answers)) as ask:
            InteractiveSource(_console()).collect(store)
        assert ask.call_count == 3
        assert store.get("contact_email") == "admin@example.com"
        assert store.get_entry("api_key").reveal_prefix

    def test_secret_prompts_hide_input(self):
        store = VariableStore()
        with patch("provisioner.variables.sources.Prompt.ask", return_value="value") as ask:
            InteractiveSource(_console()).collect(store)
        passwords = {call.args[0]: call.kwargs["password"] for call in ask.call_args_list}
        assert passwords["Enter your API key"] is True
        assert passwords["Enter your domain name (e.g. example.com)"] is False

    def test_eof_cancels(self):
        with patch("provisioner.variables.sources.Prompt.ask", side_effect=EOFError):
            with pytest.raises(RunCancelled):
                InteractiveSource(_console()).collect(VariableStore())

    def test_confirm_declined(self):
        store = VariableStore()
        store.set("database_password", "supersecret")
        console = _console()
        with patch("provisioner.variables.sources.Confirm.ask", return_value=False):
            with pytest.raises(ConfigDeclined):
                InteractiveSource(console).confirm(store)
        assert "supersecret" not in console.file.getvalue()

    def test_confirm_accepted(self):
        store = VariableStore()
        store.set("domain", "example.com")
        with patch("provisioner.variables.sources.Confirm.ask", return_value=True):
            InteractiveSource(_console()).confirm(store)

    def test_confirm_shows_value_sources(self):
        store = VariableStore()
        store.set("domain", "example.com", source="cli")
        store.set("secret_key", "ab" * 32, source="generated")
        console = _console()
        with patch("provisioner.variables.sources.Confirm.ask", return_value=True):
            InteractiveSource(console).confirm(store)
        lines = console.file.getvalue().splitlines()
        assert any("example.com" in line and "cli" in line for line in lines)
        assert any("secret_key" in line and "generated" in line for line in lines)
        assert "ab" * 32 not in console.file.getvalue()

    def test_confirm_dns_preset_skips_prompt(self):
        store = VariableStore()
        store.set("dns_ready", "no")
        with patch("provisioner.variables.sources.Confirm.ask") as ask:
            assert InteractiveSource(_console()).confirm_dns(store, None) is False
        ask.assert_not_called()

    def test_confirm_dns_prompts_with_ip(self):
        store = VariableStore()
        store.set("domain", "example.com")
        console = _console()
        with patch("provisioner.variables.sources.Confirm.ask", return_value=True):
            assert InteractiveSource(console).confirm_dns(store, "203.0.113.10") is True
        assert "example.com -> 203.0.113.10" in console.file.getvalue()
