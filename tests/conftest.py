# tests/conftest.py — v1
"""Shared test fixtures for all unit and integration tests.

Provides a scripted FakeExecutor, a SimulatedHost that models the host
tools (apt, systemd, nginx, ufw, psql, certbot, cron) closely enough to run
the whole plan, and settings rooted in a temp directory. No test needs root
or touches the real system.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

import pytest

from provisioner.collaborators.collaborator_factory import Collaborators, create_collaborators
from provisioner.collaborators.executor import CommandExecutor, CommandResult
from provisioner.config.settings import Settings
from provisioner.core.errors import CollaboratorError
from provisioner.pipeline.plugin_kit.models import StepContext
from provisioner.variables.sources import MappingSource
from provisioner.variables.store import VariableStore

API_KEY = "sk-abcdEFGH12345678WXYZ"
DB_PASSWORD = "s3cret-Pa'ss/word"
SECRET_KEY = "f" * 64
PUBLIC_IP = "203.0.113.10"

Effect = Callable[[tuple[str, ...], str | None, Mapping[str, str]], CommandResult | None]


# === FAKE EXECUTOR ===


class FakeExecutor(CommandExecutor):
    """CommandExecutor that records calls and answers from scripted rules.

    Rules match on an argv prefix; the most recently added rule wins. An
    unmatched command succeeds with empty output.
    """

    def __init__(self) -> None:
        super().__init__(timeout_s=5)
        self.calls: list[tuple[str, ...]] = []
        self.inputs: dict[tuple[str, ...], str] = {}
        self.envs: dict[tuple[str, ...], dict[str, str]] = {}
        self.binaries: set[str] = {"crontab"}
        self._rules: list[tuple[tuple[str, ...], Effect]] = []

    def on(
        self,
        *prefix: str,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        effect: Effect | None = None,
    ) -> None:
        if effect is None:
            def effect(args, _input, _env):
                return CommandResult(args, returncode, stdout, stderr)
        self._rules.append((tuple(prefix), effect))

    def ran(self, *prefix: str) -> bool:
        return any(call[: len(prefix)] == prefix for call in self.calls)

    def count(self, *prefix: str) -> int:
        return sum(1 for call in self.calls if call[: len(prefix)] == prefix)

    async def run(
        self,
        cmd: Sequence[str],
        *,
        input: str | None = None,
        check: bool = True,
        timeout_s: float | None = None,
        env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
    ) -> CommandResult:
        args = tuple(str(a) for a in cmd)
        self.calls.append(args)
        if input is not None:
            self.inputs[args] = input
        if env:
            self.envs[args] = dict(env)

        result = None
        for prefix, effect in reversed(self._rules):
            if args[: len(prefix)] == prefix:
                result = effect(args, input, env or {})
                break
        if result is None:
            result = CommandResult(args, 0)

        if check and not result.ok:
            raise CollaboratorError(
                f"Command failed with exit code {result.returncode}: {' '.join(args)}",
                command=args,
                returncode=result.returncode,
                output=result.output,
            )
        return result

    def which(self, name: str) -> str | None:
        return f"/usr/bin/{name}" if name in self.binaries else None


# === SIMULATED HOST ===

_ROLE_RE = re.compile(r"""CREATE ROLE "([^"]+)" WITH LOGIN PASSWORD '((?:[^']|'')*)'""")
_DB_RE = re.compile(r"""CREATE DATABASE "([^"]+)\"""")
_DATNAME_RE = re.compile(r"datname = '([^']*)'")


class SimulatedHost(FakeExecutor):
    """A fresh Ubuntu box, modelled as a handful of sets and counters."""

    NODE_VERSION = "v18.19.1"

    def __init__(self, settings: Settings) -> None:
        super().__init__()
        self.settings = settings
        self.pending_upgrades = 12
        self.installed: set[str] = set()
        self.node: str | None = None
        self.active: set[str] = {"cron", "nginx"}
        self.enabled: set[str] = {"cron", "nginx"}
        self.roles: dict[str, str] = {}
        self.databases: set[str] = {"postgres"}
        self.ufw_active = False
        self.ufw_defaults_set = False
        self.ufw_rules: list[str] = []
        self.crontab: list[str] = []
        self.nginx_ok = True
        self._install_rules()

        # Ubuntu ships a default nginx site.
        default = settings.nginx_sites_available / "default"
        default.parent.mkdir(parents=True, exist_ok=True)
        default.write_text("server { listen 80 default_server; }\n")
        settings.nginx_sites_enabled.mkdir(parents=True, exist_ok=True)
        (settings.nginx_sites_enabled / "default").symlink_to(default)

    def _install_rules(self) -> None:
        ok = lambda args, stdout="": CommandResult(args, 0, stdout)  # noqa: E731
        fail = lambda args, rc=1, err="": CommandResult(args, rc, "", err)  # noqa: E731

        # apt / dpkg
        def simulate_upgrade(args, _i, _e):
            return ok(args, f"{self.pending_upgrades} upgraded, 0 newly installed, "
                            "0 to remove and 0 not upgraded.\n")

        def upgrade(args, _i, _e):
            self.pending_upgrades = 0
            return ok(args)

        def install(args, _i, _e):
            packages = [a for a in args[3:] if not a.startswith("-")]
            self.installed.update(packages)
            if "nodejs" in packages:
                self.node = self.NODE_VERSION
            return ok(args)

        def dpkg_query(args, _i, _e):
            if args[-1] in self.installed:
                return ok(args, "install ok installed")
            return fail(args, 1, f"dpkg-query: no packages found matching {args[-1]}")

        self.on("apt-get", "-s", "upgrade", effect=simulate_upgrade)
        self.on("apt-get", "-o", effect=upgrade)
        self.on("apt-get", "install", effect=install)
        self.on("dpkg-query", effect=dpkg_query)

        # node
        def node_version(args, _i, _e):
            if self.node is None:
                return fail(args, 127, "node: not found")
            return ok(args, self.node + "\n")

        self.on("node", "--version", effect=node_version)

        # systemd
        def systemctl(args, _i, _e):
            verb, unit = args[1], args[-1]
            if verb == "is-active":
                return ok(args) if unit in self.active else fail(args, 3)
            if verb == "is-enabled":
                return ok(args) if unit in self.enabled else fail(args, 1)
            if verb in ("start", "restart"):
                self.active.add(unit)
            elif verb == "enable":
                self.enabled.add(unit)
            elif verb == "reload" and unit not in self.active:
                return fail(args, 1, f"{unit} is not active, cannot reload.")
            return ok(args)

        self.on("systemctl", effect=systemctl)

        # postgres
        def psql_script(args, sql, _e):
            for user, password in _ROLE_RE.findall(sql or ""):
                self.roles.setdefault(user, password.replace("''", "'"))
            for user, password in re.findall(
                r"""ALTER ROLE "([^"]+)" WITH LOGIN PASSWORD '((?:[^']|'')*)'""", sql or ""
            ):
                if user in self.roles:
                    self.roles[user] = password.replace("''", "'")
            for name in _DB_RE.findall(sql or ""):
                self.databases.add(name)
            return ok(args)

        def psql_query(args, _i, _e):
            match = _DATNAME_RE.search(args[-1])
            exists = match is not None and match.group(1) in self.databases
            return ok(args, "1\n" if exists else "")

        def psql_login(args, _i, env):
            user = args[args.index("-U") + 1]
            database = args[args.index("-d") + 1]
            if self.roles.get(user) == env.get("PGPASSWORD") and database in self.databases:
                return ok(args, "1\n")
            return fail(args, 2, "FATAL: password authentication failed")

        self.on("sudo", "-u", "postgres", "psql", "-v", effect=psql_script)
        self.on("sudo", "-u", "postgres", "psql", "-tAX", effect=psql_query)
        self.on("psql", "-h", effect=psql_login)

        # ufw
        def ufw(args, _i, _e):
            if args[1:3] == ("status", "verbose"):
                return ok(args, self._ufw_status())
            if args[1] == "default":
                self.ufw_defaults_set = True
            elif args[1] == "allow":
                label = {"ssh": "22/tcp"}.get(args[2], args[2])
                if label not in self.ufw_rules:
                    self.ufw_rules.append(label)
            elif args[1:] == ("--force", "enable"):
                self.ufw_active = True
            return ok(args)

        self.on("ufw", effect=ufw)

        # nginx
        self.on(
            "nginx", "-t",
            effect=lambda args, _i, _e: ok(args) if self.nginx_ok
            else fail(args, 1, "nginx: [emerg] unexpected end of file"),
        )

        # certbot
        def certbot(args, _i, _e):
            domain = args[args.index("-d") + 1]
            live = self.settings.letsencrypt_live_dir / domain
            live.mkdir(parents=True, exist_ok=True)
            (live / "fullchain.pem").write_text("CERT")
            (live / "privkey.pem").write_text("KEY")
            return ok(args)

        self.on("certbot", "certonly", effect=certbot)

        # curl: public IP lookup and NodeSource download
        self.on("curl", "-s", stdout=PUBLIC_IP)

        # venv
        def venv(args, _i, _e):
            python = Path(args[-1]) / "bin" / "python"
            python.parent.mkdir(parents=True, exist_ok=True)
            python.write_text("")
            return ok(args)

        self.on("python3", "-m", "venv", effect=venv)

        # cron
        def crontab(args, content, _e):
            if args[1] == "-l":
                if not self.crontab:
                    return fail(args, 1, "no crontab for root")
                return ok(args, "\n".join(self.crontab) + "\n")
            self.crontab = [line for line in (content or "").splitlines() if line.strip()]
            return ok(args)

        self.on("crontab", effect=crontab)

    def _ufw_status(self) -> str:
        if not self.ufw_active:
            return "Status: inactive\n"
        lines = [
            "Status: active",
            "Logging: on (low)",
            "Default: deny (incoming), allow (outgoing), disabled (routed)"
            if self.ufw_defaults_set
            else "Default: allow (incoming), allow (outgoing), disabled (routed)",
            "New profiles: skip",
            "",
            "To                         Action      From",
            "--                         ------      ----",
        ]
        lines += [f"{label:<27}ALLOW IN    Anywhere" for label in self.ufw_rules]
        return "\n".join(lines) + "\n"


# === FIXTURES ===


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with every host path inside tmp_path."""
    return Settings(
        _env_file=None,
        state_dir=tmp_path / "state",
        app_root=tmp_path / "www" / "webapp",
        frontend_root=tmp_path / "www" / "webapp-frontend",
        nginx_sites_available=tmp_path / "nginx" / "sites-available",
        nginx_sites_enabled=tmp_path / "nginx" / "sites-enabled",
        systemd_unit_dir=tmp_path / "systemd",
        letsencrypt_live_dir=tmp_path / "letsencrypt" / "live",
        backup_dir=tmp_path / "backups",
        backup_script=tmp_path / "backup.sh",
        backup_log=tmp_path / "backup.log",
        log_file=None,
        require_root=False,
    )


def make_store(dns_ready: bool | None = None, **overrides: str) -> VariableStore:
    """A valid, fully populated variable store."""
    values = {
        "domain": "example.com",
        "contact_email": "admin@example.com",
        "database_password": DB_PASSWORD,
        "api_key": API_KEY,
        **overrides,
    }
    store = VariableStore()
    for key, value in values.items():
        store.set(key, value, source="cli", reveal_prefix=key == "api_key")
    store.set("secret_key", SECRET_KEY, source="generated")
    if dns_ready is not None:
        store.set("dns_ready", "yes" if dns_ready else "no", source="cli")
    return store


@pytest.fixture
def store() -> VariableStore:
    return make_store(dns_ready=True)


@pytest.fixture
def store_factory() -> Callable[..., VariableStore]:
    return make_store


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def host(settings: Settings) -> SimulatedHost:
    return SimulatedHost(settings)


@pytest.fixture
def collaborators(settings: Settings, host: SimulatedHost) -> Collaborators:
    return create_collaborators(settings, executor=host)


@pytest.fixture
def ctx(settings: Settings, store: VariableStore, collaborators: Collaborators) -> StepContext:
    return StepContext(store=store, settings=settings, source=MappingSource(), host=collaborators)
