# tests/unit/collaborators/test_unit_web_tools.py — v1
"""Tests for the filesystem, nginx and certbot collaborators and the factory."""

from __future__ import annotations

import os
import stat

import pytest

from provisioner.collaborators.certificates import CertbotClient, domain_names
from provisioner.collaborators.collaborator_factory import create_collaborators
from provisioner.collaborators.executor import CommandExecutor
from provisioner.collaborators.files import FileSystem
from provisioner.collaborators.proxy import NginxProxy
from provisioner.collaborators.services import SystemdSupervisor
from provisioner.core.errors import CollaboratorError


def _mode(path) -> int:
    return stat.S_IMODE(path.stat().st_mode)


class TestFileSystem:
    def test_write_if_changed(self, tmp_path):
        fs = FileSystem()
        target = tmp_path / "a" / "b.txt"
        assert fs.write_if_changed(target, "one", mode=0o600)
        assert target.read_text() == "one"
        assert _mode(target) == 0o600
        assert not fs.write_if_changed(target, "one", mode=0o600)
        assert fs.write_if_changed(target, "two", mode=0o600)

    def test_mode_drift_rewrites(self, tmp_path):
        fs = FileSystem()
        target = tmp_path / ".env"
        fs.write_if_changed(target, "X=1", mode=0o600)
        os.chmod(target, 0o644)
        assert not fs.matches(target, "X=1", 0o600)
        assert fs.write_if_changed(target, "X=1", mode=0o600)
        assert _mode(target) == 0o600

    def test_write_if_absent_never_clobbers(self, tmp_path):
        fs = FileSystem()
        target = tmp_path / "index.html"
        target.write_text("uploaded")
        assert not fs.write_if_absent(target, "placeholder")
        assert target.read_text() == "uploaded"

    def test_symlink(self, tmp_path):
        fs = FileSystem()
        target = tmp_path / "site"
        target.write_text("x")
        link = tmp_path / "enabled" / "site"
        assert fs.symlink(target, link)
        assert fs.is_symlink_to(link, target)
        assert not fs.symlink(target, link)

    def test_symlink_replaces_file(self, tmp_path):
        fs = FileSystem()
        target = tmp_path / "site"
        target.write_text("x")
        link = tmp_path / "link"
        link.write_text("regular file")
        assert fs.symlink(target, link)
        assert link.is_symlink()

    def test_remove_dangling_symlink(self, tmp_path):
        fs = FileSystem()
        link = tmp_path / "default"
        link.symlink_to(tmp_path / "missing")
        assert fs.remove(link)
        assert not fs.remove(link)

    def test_ensure_dir(self, tmp_path):
        fs = FileSystem()
        assert fs.ensure_dir(tmp_path / "d", mode=0o700)
        assert _mode(tmp_path / "d") == 0o700
        assert not fs.ensure_dir(tmp_path / "d")

    def test_read_and_mode_of_missing(self, tmp_path):
        fs = FileSystem()
        assert fs.read_text(tmp_path / "none") is None
        assert fs.mode_of(tmp_path / "none") is None


class TestNginxProxy:
    def _proxy(self, tmp_path, executor):
        return NginxProxy(
            executor,
            FileSystem(),
            SystemdSupervisor(executor),
            sites_available=tmp_path / "available",
            sites_enabled=tmp_path / "enabled",
        )

    def test_install_site_drops_default(self, tmp_path, fake_executor):
        (tmp_path / "enabled").mkdir()
        (tmp_path / "enabled" / "default").symlink_to(tmp_path / "available" / "default")
        proxy = self._proxy(tmp_path, fake_executor)
        assert not proxy.site_installed("webapp", "server {}")
        assert proxy.install_site("webapp", "server {}")
        assert proxy.site_installed("webapp", "server {}")
        assert not (tmp_path / "enabled" / "default").is_symlink()
        assert not proxy.install_site("webapp", "server {}")

    def test_changed_content_not_installed(self, tmp_path, fake_executor):
        proxy = self._proxy(tmp_path, fake_executor)
        proxy.install_site("webapp", "server {}")
        assert not proxy.site_installed("webapp", "server { listen 443; }")

    @pytest.mark.asyncio
    async def test_test_config_failure(self, tmp_path, fake_executor):
        fake_executor.on("nginx", "-t", returncode=1, stderr="[emerg] unexpected end of file")
        with pytest.raises(CollaboratorError) as exc_info:
            await self._proxy(tmp_path, fake_executor).test_config()
        assert "emerg" in exc_info.value.output

    @pytest.mark.asyncio
    async def test_activate_site_disables_rejected_config(self, tmp_path, fake_executor):
        fake_executor.on("nginx", "-t", returncode=1, stderr="[emerg] unexpected end of file")
        proxy = self._proxy(tmp_path, fake_executor)
        with pytest.raises(CollaboratorError):
            await proxy.activate_site("webapp", "server {")
        assert not (tmp_path / "enabled" / "webapp").is_symlink()
        assert not proxy.site_installed("webapp", "server {")
        assert not fake_executor.ran("systemctl", "reload", "nginx")

    @pytest.mark.asyncio
    async def test_activate_site(self, tmp_path, fake_executor):
        proxy = self._proxy(tmp_path, fake_executor)
        assert await proxy.activate_site("webapp", "server {}")
        assert proxy.site_installed("webapp", "server {}")
        assert fake_executor.ran("systemctl", "reload", "nginx")

    @pytest.mark.asyncio
    async def test_reload_when_running(self, tmp_path, fake_executor):
        await self._proxy(tmp_path, fake_executor).reload()
        assert fake_executor.ran("systemctl", "reload", "nginx")

    @pytest.mark.asyncio
    async def test_restart_when_stopped(self, tmp_path, fake_executor):
        fake_executor.on("systemctl", "is-active", "--quiet", "nginx", returncode=3)
        await self._proxy(tmp_path, fake_executor).reload()
        assert fake_executor.ran("systemctl", "restart", "nginx")
        assert not fake_executor.ran("systemctl", "reload", "nginx")


class TestCertbotClient:
    def test_domain_names(self):
        assert domain_names("example.com") == ["example.com", "www.example.com"]

    def test_has_certificate(self, tmp_path, fake_executor):
        client = CertbotClient(fake_executor, live_dir=tmp_path)
        assert not client.has_certificate("example.com")
        (tmp_path / "example.com").mkdir()
        (tmp_path / "example.com" / "fullchain.pem").write_text("c")
        assert not client.has_certificate("example.com")
        (tmp_path / "example.com" / "privkey.pem").write_text("k")
        assert client.has_certificate("example.com")

    def test_issue_command_is_non_interactive(self, tmp_path, fake_executor):
        client = CertbotClient(fake_executor, live_dir=tmp_path)
        cmd = client.issue_command(domain_names("example.com"), "a@example.com", tmp_path / "www")
        assert cmd[:3] == ["certbot", "certonly", "--webroot"]
        assert "--non-interactive" in cmd
        assert "--agree-tos" in cmd
        assert cmd.count("-d") == 2

    def test_manual_command_quotes_hook(self, tmp_path, fake_executor):
        client = CertbotClient(fake_executor, live_dir=tmp_path)
        text = client.manual_command(["example.com"], "a@example.com", tmp_path)
        assert '--deploy-hook "systemctl reload nginx"' in text

    @pytest.mark.asyncio
    async def test_detect_public_ip(self, tmp_path, fake_executor):
        fake_executor.on("curl", stdout="203.0.113.10\n")
        client = CertbotClient(fake_executor, live_dir=tmp_path)
        assert await client.detect_public_ip() == "203.0.113.10"

    @pytest.mark.asyncio
    async def test_detect_public_ip_offline(self, tmp_path, fake_executor):
        fake_executor.on("curl", returncode=6)
        client = CertbotClient(fake_executor, live_dir=tmp_path)
        assert await client.detect_public_ip() is None


class TestCollaboratorFactory:
    def test_shares_executor(self, settings, fake_executor):
        host = create_collaborators(settings, executor=fake_executor)
        assert host.executor is fake_executor
        assert host.proxy.site_path("webapp") == settings.nginx_sites_available / "webapp"
        assert host.certificates.cert_dir("example.com") == settings.letsencrypt_live_dir / "example.com"

    def test_default_executor(self, settings):
        host = create_collaborators(settings)
        assert isinstance(host.executor, CommandExecutor)
