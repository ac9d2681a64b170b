"""
Provision — CLI entrypoint.

Usage:
    python -m provision.main --help
    provision install htop
    provision uninstall nginx --purge
    provision update
    provision apply
    provision config check
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import NoReturn

import click

from provision import __version__
from provision.adapters.shell.command import SubprocessRunner
from provision.core.config.loader import ConfigError, load_config, load_optional_config
from provision.core.models.config import ProvisionConfig
from provision.core.models.result import OperationResult
from provision.core.observability.logging_config import setup_logging
from provision.core.services.packaging.errors import PackagingError
from provision.core.services.packaging.orchestrator import PackagingService
from provision.core.services.sysinfo.facts import current_facts

BACKEND_CHOICES = ("auto", "apt", "dnf", "yum", "pacman", "apk", "snap", "flatpak", "rpm-file")


def build_service(config: ProvisionConfig) -> PackagingService:
    """Packaging service for this host, honoring the configured backend."""
    runner = SubprocessRunner()
    return PackagingService(current_facts(runner, backend_override=config.backend), runner)


def _fail(message: str, exit_code: int) -> NoReturn:
    click.secho(f"❌ {message}", fg="red", err=True)
    sys.exit(exit_code)


def _print_warnings(result: OperationResult) -> None:
    for warn in result.warnings:
        click.secho(f"   ⚠️  {warn}", fg="yellow")


@click.group()
@click.version_option(version=__version__, prog_name="provision")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to provision.yml (default: auto-detect).",
)
@click.option("--no-color", is_flag=True, help="Disable colored log output.")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    no_color: bool,
) -> None:
    """Provision — install, remove and update packages on any distro."""
    ctx.ensure_object(dict)
    ctx.obj["quiet"] = quiet
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # A broken config must not block `config check` from reporting it
    try:
        config = load_optional_config(ctx.obj["config_path"])
        ctx.obj["config_error"] = None
    except ConfigError as e:
        config = ProvisionConfig()
        ctx.obj["config_error"] = e
    ctx.obj["config"] = config

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("PROVISION_LOG_LEVEL", config.logging.level)

    setup_logging(
        level=level,
        log_file=os.environ.get("PROVISION_LOG_FILE"),
        log_file_level=os.environ.get("PROVISION_LOG_FILE_LEVEL", config.logging.file_level),
        log_dir=os.environ.get("PROVISION_LOG_DIR", config.logging.directory),
        colorize=config.logging.colorize and not no_color and "PROVISION_NO_COLOR" not in os.environ,
    )


def _service(ctx: click.Context) -> PackagingService:
    error = ctx.obj.get("config_error")
    if error is not None:
        _fail(str(error), error.exit_code)
    return build_service(ctx.obj["config"])


# ── Package commands ────────────────────────────────────────────


@cli.command()
@click.argument("packages", nargs=-1, required=True)
@click.option(
    "--backend", "-b",
    type=click.Choice(BACKEND_CHOICES, case_sensitive=False),
    default=None,
    help="Package manager to use (default: detected).",
)
@click.pass_context
def install(ctx: click.Context, packages: tuple[str, ...], backend: str | None) -> None:
    """Install one or more packages."""
    service = _service(ctx)
    quiet = ctx.obj.get("quiet", False)

    for package in packages:
        try:
            result = service.install(package, backend)
        except PackagingError as e:
            _fail(str(e), e.exit_code)

        if result.changed:
            click.secho(f"✅ Installed {package} ({result.backend})", fg="green")
        elif not quiet:
            click.echo(f"✓ {package} already installed")
        _print_warnings(result)


@cli.command()
@click.argument("packages", nargs=-1, required=True)
@click.option(
    "--backend", "-b",
    type=click.Choice(BACKEND_CHOICES, case_sensitive=False),
    default=None,
    help="Package manager to use (default: detected).",
)
@click.option("--purge", is_flag=True, help="Also remove configuration files.")
@click.pass_context
def uninstall(ctx: click.Context, packages: tuple[str, ...], backend: str | None, purge: bool) -> None:
    """Uninstall one or more packages."""
    service = _service(ctx)
    quiet = ctx.obj.get("quiet", False)

    for package in packages:
        try:
            result = service.uninstall(package, backend, purge=purge)
        except PackagingError as e:
            _fail(str(e), e.exit_code)

        if result.changed:
            verb = "Purged" if purge else "Removed"
            click.secho(f"✅ {verb} {package} ({result.backend})", fg="green")
            for path in result.removed_paths:
                click.echo(f"   🗑  {path}")
        elif not quiet:
            click.echo(f"✓ {package} not installed")
        _print_warnings(result)


@cli.command()
@click.pass_context
def update(ctx: click.Context) -> None:
    """Refresh and upgrade all installed packages."""
    service = _service(ctx)

    try:
        result = service.update()
    except PackagingError as e:
        _fail(str(e), e.exit_code)

    click.secho(f"✅ System updated ({result.backend})", fg="green")
    _print_warnings(result)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def apply(ctx: click.Context, as_json: bool) -> None:
    """Install or remove every package listed in provision.yml."""
    from provision.core.use_cases.apply import apply_packages

    try:
        config = load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        _fail(str(e), e.exit_code)

    report = apply_packages(config, build_service(config))

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        sys.exit(report.exit_code)

    icons = {"ok": ("✅", "green"), "noop": ("✓", None), "failed": ("❌", "red")}
    for entry in report.entries:
        icon, color = icons.get(entry.status, ("•", None))
        action = "install" if entry.state == "present" else "remove"
        line = f"{icon} {action} {entry.package}"
        if entry.error:
            line += f" — {entry.error}"
        click.secho(line, fg=color)
        for warn in entry.warnings:
            click.secho(f"   ⚠️  {warn}", fg="yellow")

    click.echo()
    summary_color = "red" if report.failed else "green"
    click.secho(
        f"   {report.changed} changed, {report.unchanged} unchanged, {report.failed} failed",
        fg=summary_color,
        bold=True,
    )
    sys.exit(report.exit_code)


# ── Information ─────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def sysinfo(ctx: click.Context, as_json: bool) -> None:
    """Show detected system information."""
    from provision.core.services.sysinfo.system import detect_system_info

    runner = SubprocessRunner()
    facts = current_facts(runner, backend_override=ctx.obj["config"].backend)
    info = detect_system_info(runner)

    if as_json:
        click.echo(json.dumps({**info.to_dict(), **facts.to_dict()}, indent=2))
        return

    def yes_no(flag: bool) -> str:
        return "Yes" if flag else "No"

    rule = "━" * 43
    click.echo(rule)
    click.secho("System Information", bold=True)
    click.echo(rule)
    click.echo(f"OS:               {info.os_id} {info.os_version} ({info.os_codename})")
    click.echo(f"Kernel:           {info.kernel}")
    click.echo(f"Architecture:     {info.arch}")
    click.echo(f"Package Manager:  {facts.default_backend}")
    click.echo(f"Init System:      {info.init_system}")
    click.echo(f"Live Environment: {yes_no(info.is_live)}")
    click.echo(f"Virtual Machine:  {yes_no(info.is_vm)}")
    click.echo(f"Container:        {yes_no(info.is_container)}")
    click.echo(f"Network:          {'Available' if facts.has_network else 'Unavailable'}")
    click.echo(f"Running as root:  {yes_no(facts.is_root)}")
    click.echo(rule)


@cli.group()
def config() -> None:
    """Provisioning configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate provision.yml configuration."""
    from provision.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.config is not None  # guaranteed when valid
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   File: {result.config_path}")
        click.echo(f"   Backend: {result.config.backend or 'auto'}")
        click.echo(f"   Packages: {len(result.config.packages)}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)


if __name__ == "__main__":
    cli()
