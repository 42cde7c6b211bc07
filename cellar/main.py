"""
cellar — CLI entrypoint.

Usage:
    python -m cellar.main --help
    python -m cellar.main check formulae/metadata.yml
    python -m cellar.main install formulae/metadata.yml --prefix /opt/cellar
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from cellar import __version__
from cellar.core.observability.logging_config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="cellar")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to cellar.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """cellar — fetch, build, install and verify formulae."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("CELLAR_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("CELLAR_LOG_FILE"),
        log_file_level=os.environ.get("CELLAR_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


@cli.command()
@click.argument("formula", type=click.Path(exists=False))
@click.option(
    "--prefix",
    required=True,
    type=click.Path(file_okay=False),
    help="Installation root.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(ctx: click.Context, formula: str, prefix: str, as_json: bool) -> None:
    """Fetch, build, install and verify a formula."""
    from cellar.core.use_cases.install import install_formula

    result = install_formula(
        Path(formula),
        Path(prefix),
        config_path=ctx.obj.get("config_path"),
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    run = result.pipeline
    assert run is not None  # guaranteed after error check above
    quiet = ctx.obj.get("quiet", False)

    if run.ok:
        click.secho(f"✅ Installed {run.name} {run.version}", fg="green", bold=True)
        if not quiet and run.record:
            for path in run.record.files:
                click.echo(f"   • {path}")
            click.echo(f"   ⏱  {run.duration_ms}ms")
        return

    click.secho(
        f"❌ {run.name} {run.version} failed while {run.failed_stage}", fg="red", bold=True
    )
    if run.error is not None:
        click.echo(f"   {run.error}")
        output = getattr(run.error, "output", "")
        if output and ctx.obj.get("verbose"):
            click.echo()
            click.secho("   Output:", fg="yellow")
            for line in output.splitlines()[-40:]:
                click.echo(f"   │ {line}")
    if run.record and run.failed_stage is not None and str(run.failed_stage) == "verifying":
        click.secho(
            f"   ⚠️  Files left in place; run 'cellar uninstall {run.name} {run.version} "
            f"--prefix {prefix}' to remove them.",
            fg="yellow",
        )
    sys.exit(1)


@cli.command()
@click.argument("name")
@click.argument("version")
@click.option(
    "--prefix",
    required=True,
    type=click.Path(file_okay=False),
    help="Installation root.",
)
@click.pass_context
def uninstall(ctx: click.Context, name: str, version: str, prefix: str) -> None:
    """Remove an installed package using its installation record."""
    from cellar.core.use_cases.uninstall import uninstall_package

    result = uninstall_package(name, version, Path(prefix), config_path=ctx.obj.get("config_path"))

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    click.secho(f"🗑  Removed {name} {version} ({len(result.removed)} file(s))", fg="green")
    if not ctx.obj.get("quiet", False):
        for path in result.removed:
            click.echo(f"   • {path}")


@cli.command()
@click.argument("formula", type=click.Path(exists=False))
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def check(formula: str, as_json: bool) -> None:
    """Validate a formula file."""
    from cellar.core.use_cases.check import check_formula

    result = check_formula(Path(formula))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)
        return

    if result.valid:
        assert result.manifest is not None  # guaranteed when valid
        click.secho("✅ Formula is valid", fg="green", bold=True)
        click.echo(f"   Name: {result.manifest.name}")
        click.echo(f"   Version: {result.manifest.version}")
        click.echo(f"   Install directives: {len(result.manifest.install_directives)}")
    else:
        click.secho("❌ Formula errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        sys.exit(1)


@cli.command()
@click.argument("formula", type=click.Path(exists=False))
def info(formula: str) -> None:
    """Show what a formula fetches, builds, installs and tests."""
    from cellar.core.config.loader import load_manifest
    from cellar.core.errors import ManifestError

    try:
        m = load_manifest(Path(formula))
    except ManifestError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    click.secho(f"\n📦 {m.name} {m.version}", fg="cyan", bold=True)
    if m.description:
        click.echo(f"   {m.description}")
    if m.homepage:
        click.echo(f"   🔗 {m.homepage}")
    click.echo()
    click.echo(f"   Source: {m.source.url}")
    click.echo(f"   {m.source.algorithm}: {m.source.digest}")
    if m.build_dependencies:
        click.echo(f"   Build dependencies: {', '.join(sorted(m.build_dependencies))}")
    if m.dependencies:
        click.echo(f"   Dependencies: {', '.join(m.dependencies)}")
    click.echo(f"   Build: {' '.join(m.build_argv())}")
    click.secho("   Install:", fg="white", bold=True)
    for d in m.install_directives:
        click.echo(f"     • {m.artifact_path(d)} → {m.category_for(d).subdir}/ ({d.category})")
    click.echo(f"   Test: {' '.join(m.test_directive.command)}")
    click.echo(f"   Expect: /{m.test_directive.expected_pattern}/")
    click.echo()


@cli.command("list")
@click.option(
    "--prefix",
    required=True,
    type=click.Path(file_okay=False),
    help="Installation root.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def list_cmd(prefix: str, as_json: bool) -> None:
    """List packages installed under a prefix."""
    from cellar.core.use_cases.uninstall import list_installed

    records = list_installed(Path(prefix))

    if as_json:
        click.echo(json.dumps([r.model_dump(mode="json") for r in records], indent=2))
        return

    if not records:
        click.echo("No packages installed.")
        return

    for r in records:
        click.echo(f"   • {r.name} {r.version}  ({len(r.files)} file(s), {r.installed_at})")


if __name__ == "__main__":
    cli()
