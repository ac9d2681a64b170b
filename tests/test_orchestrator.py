"""
Tests for the packaging orchestrator — install, uninstall, update.

All host interaction goes through MockRunner; ``call_log`` is the
ground truth for which commands ran and in what order.
"""

from pathlib import Path

import pytest

from provision.adapters.mock import MockRunner
from provision.core.models.backend import Backend
from provision.core.models.facts import EnvironmentFacts
from provision.core.services.packaging import orchestrator
from provision.core.services.packaging.errors import (
    BootstrapError,
    ExecutionError,
    NetworkUnavailableError,
    PackageNotFoundError,
    RootRequiredError,
    UnsupportedBackendError,
)
from provision.core.services.sysinfo.facts import set_facts

APT_STATUS = ["dpkg-query", "-W", "-f=${Status}"]
APT_CONFFILES = ["dpkg-query", "-W", "-f=${Conffiles}\\n"]
INSTALLED = "install ok installed"

ALL_BACKENDS = [b for b in Backend if b is not Backend.UNKNOWN]


def _mutating(runner: MockRunner) -> list[tuple[str, ...]]:
    """Calls that change the system (everything but queries)."""
    verbs = {"install", "remove", "purge", "uninstall", "-S", "-R", "-Rns", "add", "del", "-Uvh", "-e"}
    return [argv for argv in runner.call_log if len(argv) > 1 and argv[1] in verbs]


# ── Preconditions ────────────────────────────────────────────────────


class TestPreconditions:
    @pytest.mark.parametrize("backend", ALL_BACKENDS)
    def test_install_requires_root(self, make_service, backend):
        service, runner = make_service(is_root=False)
        with pytest.raises(RootRequiredError) as exc:
            service.install("htop", backend)
        assert exc.value.exit_code == 77
        assert runner.call_count == 0

    @pytest.mark.parametrize("backend", ALL_BACKENDS)
    def test_uninstall_requires_root(self, make_service, backend):
        service, runner = make_service(is_root=False)
        with pytest.raises(RootRequiredError):
            service.uninstall("htop", backend, purge=True)
        assert runner.call_count == 0

    def test_update_requires_root(self, make_service):
        service, runner = make_service(is_root=False)
        with pytest.raises(RootRequiredError):
            service.update()
        assert runner.call_count == 0

    def test_root_checked_before_backend(self, make_service):
        service, runner = make_service(is_root=False)
        with pytest.raises(RootRequiredError):
            service.install("htop", "brew")

    @pytest.mark.parametrize("backend", ALL_BACKENDS)
    def test_install_requires_network(self, make_service, backend):
        service, runner = make_service(has_network=False)
        with pytest.raises(NetworkUnavailableError) as exc:
            service.install("htop", backend)
        assert exc.value.exit_code == 69
        assert runner.call_count == 0

    def test_update_requires_network(self, make_service):
        service, runner = make_service(has_network=False)
        with pytest.raises(NetworkUnavailableError):
            service.update()
        assert runner.call_count == 0

    def test_uninstall_works_offline(self, make_service):
        service, runner = make_service(has_network=False)
        runner.set_response(APT_STATUS, stdout=INSTALLED)
        result = service.uninstall("htop")
        assert result.changed


# ── Unsupported backends ─────────────────────────────────────────────


class TestUnsupportedBackend:
    @pytest.mark.parametrize("call", [
        lambda s: s.install("htop", "brew"),
        lambda s: s.uninstall("htop", "brew"),
        lambda s: s.uninstall("htop", "brew", purge=True),
    ])
    def test_unknown_identifier(self, make_service, call):
        service, runner = make_service()
        with pytest.raises(UnsupportedBackendError) as exc:
            call(service)
        assert exc.value.exit_code == 64
        assert "brew" in str(exc.value)
        assert runner.call_count == 0

    def test_undetected_default(self, make_service):
        service, runner = make_service(backend=Backend.UNKNOWN)
        with pytest.raises(UnsupportedBackendError):
            service.install("htop")
        with pytest.raises(UnsupportedBackendError):
            service.update()
        assert runner.call_count == 0

    def test_update_unsupported_for_artifacts(self, make_service):
        service, runner = make_service(backend=Backend.RPM_FILE)
        with pytest.raises(UnsupportedBackendError, match="update"):
            service.update()
        assert runner.call_count == 0

    def test_auto_means_default(self, make_service):
        service, runner = make_service(backend=Backend.PACMAN)
        runner.set_failure(["pacman", "-Q"])
        result = service.install("htop", "auto")
        assert result.backend is Backend.PACMAN
        assert runner.was_called(["pacman", "-S", "--noconfirm", "--needed", "htop"])


# ── install ──────────────────────────────────────────────────────────


class TestInstall:
    def test_already_installed_is_noop(self, make_service):
        service, runner = make_service()
        runner.set_response(APT_STATUS, stdout=INSTALLED)
        result = service.install("htop")
        assert result.status == "noop"
        assert not result.changed
        assert _mutating(runner) == []
        assert runner.call_log == [("dpkg-query", "-W", "-f=${Status}", "htop")]

    def test_dnf_htop(self, make_service):
        service, runner = make_service(backend=Backend.DNF)
        runner.set_failure(["rpm", "-q"])
        result = service.install("htop", Backend.DNF)

        assert result.status == "ok"
        assert result.stages == ["dnf:install"]
        assert runner.call_log == [
            ("rpm", "-q", "htop"),
            ("dnf", "info", "htop"),
            ("dnf", "install", "-y", "htop"),
        ]

    def test_not_available(self, make_service):
        service, runner = make_service()
        runner.set_failure(["apt-cache", "show"], returncode=100)
        with pytest.raises(PackageNotFoundError) as exc:
            service.install("no-such-package")
        assert exc.value.exit_code == 66
        assert _mutating(runner) == []

    def test_install_failure_carries_exit_status(self, make_service):
        service, runner = make_service()
        runner.set_failure(["apt-get", "install"], returncode=100, stderr="E: dpkg was interrupted")
        with pytest.raises(ExecutionError) as exc:
            service.install("htop")
        err = exc.value
        assert err.exit_code == 100
        assert err.backend == "apt"
        assert err.package == "htop"
        assert err.stage == "install"
        assert "dpkg was interrupted" in err.stderr

    def test_apt_env(self, make_service):
        service, runner = make_service()
        service.install("htop")
        install_index = runner.call_log.index(("apt-get", "install", "-y", "htop"))
        assert runner.env_log[install_index] == {"DEBIAN_FRONTEND": "noninteractive"}

    def test_rpm_file(self, make_service, tmp_path):
        artifact = tmp_path / "foo-1.0.rpm"
        artifact.write_bytes(b"rpm")
        service, runner = make_service(backend=Backend.DNF)
        runner.set_response(["rpm", "-qp"], stdout="foo\n")
        runner.set_failure(["rpm", "-q", "foo"])
        result = service.install(str(artifact), "rpm")

        assert result.backend is Backend.RPM_FILE
        assert runner.call_log[-1] == ("rpm", "-Uvh", str(artifact))

    def test_rpm_file_missing(self, make_service, tmp_path):
        service, runner = make_service(backend=Backend.DNF)
        runner.set_failure(["rpm", "-qp"])
        with pytest.raises(PackageNotFoundError):
            service.install(str(tmp_path / "missing.rpm"), Backend.RPM_FILE)
        assert not runner.was_called(["rpm", "-Uvh"])


# ── install through universal backends ───────────────────────────────


class TestUniversalInstall:
    def _flatpak_service(self, make_service):
        service, runner = make_service()
        runner.set_response(["apt-get", "install", "-y", "flatpak"], provides="flatpak")
        runner.set_response(["flatpak", "search"], stdout="org.example.App\n")
        return service, runner

    def test_flatpak_bootstraps_before_install(self, make_service):
        service, runner = self._flatpak_service(make_service)
        result = service.install("org.example.App", Backend.FLATPAK)

        log = runner.call_log
        tool = log.index(("apt-get", "install", "-y", "flatpak"))
        remote = log.index((
            "flatpak", "remote-add", "--if-not-exists", "flathub",
            "https://flathub.org/repo/flathub.flatpakrepo",
        ))
        query = log.index(("flatpak", "list", "--columns=application"))
        install = log.index(("flatpak", "install", "-y", "--noninteractive", "flathub", "org.example.App"))
        assert tool < remote < query < install
        assert result.backend is Backend.FLATPAK

    def test_flathub_failure_stops_install(self, make_service):
        service, runner = self._flatpak_service(make_service)
        runner.set_failure(["flatpak", "remote-add"])
        with pytest.raises(BootstrapError) as exc:
            service.install("org.example.App", Backend.FLATPAK)
        assert exc.value.exit_code == 70
        assert not runner.was_called(["flatpak", "install"])
        assert not runner.was_called(["flatpak", "list"])

    def test_flatpak_tool_install_failure(self, make_service):
        service, runner = make_service()
        runner.set_failure(["apt-cache", "show", "flatpak"], returncode=100)
        with pytest.raises(BootstrapError):
            service.install("org.example.App", "flatpak")
        assert not runner.was_called(["flatpak"])

    def test_universal_default_cannot_bootstrap(self, make_service):
        service, runner = make_service(backend=Backend.SNAP)
        with pytest.raises(BootstrapError, match="native package manager"):
            service.install("org.example.App", Backend.FLATPAK)

    def test_snap_install(self, make_service, tmp_path):
        service, runner = make_service(commands=("apt-get", "snap"))
        runner.set_failure(["snap", "list"])
        result = service.install("hello-world", "snap")
        assert result.stages == ["snap:install"]
        assert (tmp_path / "snap").is_symlink()
        assert runner.call_log[-1] == ("snap", "install", "hello-world")


# ── uninstall ────────────────────────────────────────────────────────


class TestUninstall:
    def test_not_installed_is_noop(self, make_service):
        service, runner = make_service()
        result = service.uninstall("htop", purge=True)
        assert result.status == "noop"
        assert _mutating(runner) == []
        assert not runner.was_called(APT_CONFFILES)

    def test_plain_remove(self, make_service):
        service, runner = make_service()
        runner.set_response(APT_STATUS, stdout=INSTALLED)
        result = service.uninstall("htop")
        assert result.stages == ["apt:remove", "apt:autoremove", "apt:autoclean"]
        assert not runner.was_called(APT_CONFFILES)

    def test_apt_nginx_purge(self, make_service, tmp_path: Path):
        conf = tmp_path / "nginx.conf"
        conf.write_text("worker_processes 1;")
        sites = tmp_path / "sites-enabled"
        sites.mkdir()
        (sites / "default").write_text("server {}")
        gone = tmp_path / "already-gone.conf"

        service, runner = make_service()
        runner.set_response(APT_STATUS, stdout=INSTALLED)
        runner.set_response(APT_CONFFILES, stdout=f" {conf} 1a2b\n {sites} 3c4d\n {gone} 5e6f\n")
        runner.set_failure(["apt-get", "autoremove"])
        runner.set_failure(["apt-get", "autoclean"])

        result = service.uninstall("nginx", purge=True)

        log = runner.call_log
        capture = log.index(("dpkg-query", "-W", "-f=${Conffiles}\\n", "nginx"))
        purge = log.index(("apt-get", "purge", "-y", "nginx"))
        assert capture < purge
        assert result.status == "ok"
        assert not conf.exists()
        assert not sites.exists()
        assert result.removed_paths == [str(conf), str(sites)]
        assert len(result.warnings) == 2
        assert "autoremove" in result.warnings[0]

    def test_failed_removal_keeps_files(self, make_service, tmp_path: Path):
        conf = tmp_path / "nginx.conf"
        conf.write_text("worker_processes 1;")

        service, runner = make_service()
        runner.set_response(APT_STATUS, stdout=INSTALLED)
        runner.set_response(APT_CONFFILES, stdout=f" {conf} 1a2b\n")
        runner.set_failure(["apt-get", "purge"], returncode=100)

        with pytest.raises(ExecutionError) as exc:
            service.uninstall("nginx", purge=True)
        assert exc.value.stage == "purge"
        assert conf.exists()
        assert not runner.was_called(["apt-get", "autoremove"])

    def test_dnf_purge_removes_rpmsave(self, make_service, tmp_path: Path):
        conf = tmp_path / "htoprc"
        conf.write_text("x")
        saved = tmp_path / "htoprc.rpmsave"
        saved.write_text("x")

        service, runner = make_service(backend=Backend.DNF)
        runner.set_response(["rpm", "-qc"], stdout=f"{conf}\n")
        result = service.uninstall("htop", purge=True)

        assert runner.was_called(["dnf", "remove", "-y", "htop"])
        assert not conf.exists()
        assert not saved.exists()
        assert result.removed_paths == [str(conf), str(saved)]

    def test_pacman_purge_has_no_capture(self, make_service):
        service, runner = make_service(backend=Backend.PACMAN)
        result = service.uninstall("htop", purge=True)
        assert result.stages == ["pacman:purge", "pacman:clean"]
        assert runner.was_called(["pacman", "-Rns", "--noconfirm", "htop"])

    def test_rpm_file_removes_by_name(self, make_service, tmp_path: Path):
        service, runner = make_service(backend=Backend.DNF)
        runner.set_response(["rpm", "-qp"], stdout="foo\n")
        runner.set_response(["rpm", "-qc"], stdout="(contains no files)\n")
        result = service.uninstall("/tmp/foo-1.0.rpm", Backend.RPM_FILE, purge=True)
        assert runner.call_log[-1] == ("rpm", "-e", "foo")
        assert runner.was_called(["rpm", "-qc", "foo"])
        assert result.removed_paths == []

    def test_flatpak_purge(self, make_service):
        service, runner = make_service(commands=("apt-get", "flatpak"))
        runner.set_response(["flatpak", "remote-list"], stdout="flathub\n")
        runner.set_response(["flatpak", "list"], stdout="org.gimp.GIMP\n")
        result = service.uninstall("org.gimp.GIMP", "flatpak", purge=True)
        assert runner.was_called(
            ["flatpak", "uninstall", "-y", "--noninteractive", "--delete-data", "org.gimp.GIMP"]
        )
        assert result.stages == ["flatpak:purge", "flatpak:unused"]


# ── update ───────────────────────────────────────────────────────────


class TestUpdate:
    def test_apt_sequence(self, make_service):
        service, runner = make_service()
        result = service.update()
        assert runner.call_log == [
            ("apt-get", "update"),
            ("apt-get", "upgrade", "-y"),
            ("apt-get", "autoremove", "-y"),
        ]
        assert result.stages == ["apt:refresh", "apt:upgrade", "apt:autoremove"]
        assert result.package is None

    def test_refresh_failure_stops(self, make_service):
        service, runner = make_service()
        runner.set_failure(["apt-get", "update"], returncode=100)
        with pytest.raises(ExecutionError) as exc:
            service.update()
        assert exc.value.stage == "refresh"
        assert exc.value.package is None
        assert not runner.was_called(["apt-get", "upgrade"])

    def test_universal_refresh_is_advisory(self, make_service):
        service, runner = make_service(commands=("apt-get", "snap", "flatpak"))
        runner.set_failure(["snap", "refresh"])
        result = service.update()
        assert runner.was_called(["snap", "refresh"])
        assert runner.was_called(["flatpak", "update", "-y", "--noninteractive"])
        assert result.status == "ok"
        assert result.warnings == ["snap refresh failed (exit 1)"]

    def test_universal_skipped_when_absent(self, make_service):
        service, runner = make_service()
        service.update()
        assert not runner.was_called(["snap"])
        assert not runner.was_called(["flatpak"])

    def test_pacman_single_stage(self, make_service):
        service, runner = make_service(backend=Backend.PACMAN, commands=("pacman",))
        service.update()
        assert runner.call_log == [("pacman", "-Syu", "--noconfirm")]


# ── Process-wide API ─────────────────────────────────────────────────


class TestModuleFunctions:
    def test_default_service_uses_cached_facts(self):
        facts = EnvironmentFacts(is_root=True, has_network=True, default_backend=Backend.APK)
        set_facts(facts)
        service = orchestrator.default_service(MockRunner())
        assert service.facts is facts

    def test_install_function(self, monkeypatch):
        runner = MockRunner()
        runner.set_failure(["apk", "info"])
        runner.set_response(["apk", "search"], stdout="htop-3.3.0-r0\n")
        set_facts(EnvironmentFacts(is_root=True, has_network=True, default_backend=Backend.APK))
        monkeypatch.setattr(orchestrator, "SubprocessRunner", lambda: runner)

        result = orchestrator.install("htop")
        assert result.backend is Backend.APK
        assert runner.call_log[-1] == ("apk", "add", "htop")

    def test_uninstall_and_update_functions(self, monkeypatch):
        runner = MockRunner()
        set_facts(EnvironmentFacts(is_root=True, has_network=True, default_backend=Backend.APK))
        monkeypatch.setattr(orchestrator, "SubprocessRunner", lambda: runner)

        assert orchestrator.uninstall("htop", purge=True).stages == ["apk:purge", "apk:clean"]
        assert orchestrator.update().stages == ["apk:refresh", "apk:upgrade"]
