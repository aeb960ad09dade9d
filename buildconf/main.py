"""
buildconf — CLI entrypoint.

Usage:
    buildconf --help
    buildconf configure --soong-out-dir out/soong --json
    buildconf env check out/soong/soong.environment.used
    buildconf product-vars check out/soong/soong.variables

This is the only module that terminates the process. Core code raises
``BuildConfError`` subclasses; they are reported here on stderr with
exit status 1. Invariant violations are bugs and propagate as-is.
"""

from __future__ import annotations

import json
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import NoReturn

import click
import yaml

from buildconf import __version__
from buildconf.core.errors import BuildConfError
from buildconf.core.observability.logging_config import setup_from_environment


def _fail(error: BuildConfError) -> NoReturn:
    click.secho(f"error: {error}", fg="red", err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="buildconf")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool, debug: bool) -> None:
    """buildconf — configuration core for a native build orchestrator."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug

    # ── Logging setup (once, at process start) ──────────────────
    setup_from_environment(os.environ, debug=debug, verbose=verbose, quiet=quiet)


# ── configure ───────────────────────────────────────────────────


@cli.command()
@click.option("--out-dir", default="out", show_default=True, help="Top-level output directory.")
@click.option("--soong-out-dir", default="out/soong", show_default=True, help="Build output directory.")
@click.option("--source-dir", type=click.Path(file_okay=False), default=None,
              help="Source root (default: current directory).")
@click.option("--module-list-file", default="", help="File listing module definition files.")
@click.option("--run-go-tests", is_flag=True, help="Run tests for the build tool itself.")
@click.option("--symlink-forest-marker", default="", help="Generate the symlink forest.")
@click.option("--bp2build-marker", default="", help="Convert modules to Bazel BUILD files.")
@click.option("--bazel-queryview-dir", default="", help="Generate the Bazel query view.")
@click.option("--bazel-api-bp2build-dir", default="", help="Generate API BUILD files.")
@click.option("--module-graph-file", default="", help="Dump the module graph.")
@click.option("--doc-file", default="", help="Generate module type documentation.")
@click.option("--bazel-mode", is_flag=True, help="Hand part of analysis to Bazel.")
@click.option("--bazel-mode-dev", is_flag=True, help="Bazel mode with development allowlists.")
@click.option("--bazel-mode-staging", is_flag=True, help="Bazel mode with staging allowlists.")
@click.option("--bazel-force-enabled-modules", default="",
              help="Comma-separated modules to force through Bazel.")
@click.option("--multitree-build", is_flag=True, help="This is a multitree build.")
@click.option("--use-bazel-proxy", is_flag=True, help="Reach Bazel through the proxy socket.")
@click.option("--build-from-text-stub", is_flag=True, help="Build java stubs from text files.")
@click.option("--duplicate-policy", type=click.Choice(["error", "warn", "ignore"]), default="error",
              show_default=True, help="Handling of duplicate snapshot directories.")
@click.option("--env-file", type=click.Path(dir_okay=False), default=None,
              help="Write the environment variables read to this file.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--yaml", "as_yaml", is_flag=True, help="Output as YAML.")
@click.pass_context
def configure(
    ctx: click.Context,
    source_dir: str | None,
    duplicate_policy: str,
    env_file: str | None,
    as_json: bool,
    as_yaml: bool,
    **options: object,
) -> None:
    """Load product configuration and resolve the build setup."""
    from buildconf.core.config.facade import DuplicatePolicy, new_config
    from buildconf.core.env.env_file import write_env_file
    from buildconf.core.models.cmd_args import CmdArgs

    try:
        config = new_config(
            CmdArgs(**options),
            dict(os.environ),
            source_dir,
            duplicate_policy=DuplicatePolicy(duplicate_policy),
        )
        summary = config.to_dict()
        summary["toolchain"] = config.clang_toolchain().to_dict()
        summary["sdclang"] = asdict(config.sdclang_settings())
        summary["metrics"] = config.metrics.to_dict()
        if env_file:
            write_env_file(Path(env_file), config.env_deps())
    except BuildConfError as e:
        _fail(e)

    if as_json:
        click.echo(json.dumps(summary, indent=2))
        return
    if as_yaml:
        click.echo(yaml.safe_dump(summary, default_flow_style=False, sort_keys=False), nl=False)
        return

    quiet = ctx.obj.get("quiet", False)
    if not quiet:
        click.secho(f"\n🔧 {summary['device_product'] or 'host-only build'}", fg="cyan", bold=True)
        click.echo(f"   Out dir: {summary['out_dir']}")
        click.echo(f"   Build host: {summary['build_os']} ({summary['build_arch']})")
        click.echo(f"   Build mode: {summary['build_mode']}")
        click.echo()

        for os_name, targets in summary["targets"].items():
            click.secho(f"   {os_name}", fg="white", bold=True)
            for target in targets:
                variant = f" {target['arch_variant']}" if target["arch_variant"] else ""
                nb = " (native bridge)" if target["native_bridge"] else ""
                click.echo(f"     • {target['arch']}{variant} [{target['multilib']}]{nb}")

    if summary["multilib_conflicts"]:
        click.echo()
        click.secho(f"   ⚠️  Multilib conflicts: {', '.join(summary['multilib_conflicts'])}", fg="yellow")

    if env_file and not quiet:
        click.echo()
        click.secho(f"   💾 Environment deps written to {env_file}", fg="cyan")

    click.echo()


# ── env ─────────────────────────────────────────────────────────


@cli.group()
def env() -> None:
    """Environment dependency commands."""


@env.command("check")
@click.argument("env_file", type=click.Path(dir_okay=False))
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def env_check(env_file: str, as_json: bool) -> None:
    """Exit 1 if the environment changed since ENV_FILE was written."""
    from buildconf.core.env.env_file import changed_env_vars

    path = Path(env_file)
    try:
        changed = changed_env_vars(path, os.environ) if path.exists() else None
    except BuildConfError as e:
        _fail(e)

    stale = changed is None or bool(changed)
    if as_json:
        click.echo(json.dumps({"stale": stale, "missing": changed is None, "changed": changed or []}, indent=2))
    elif changed is None:
        click.secho(f"⚠️  No environment file at {env_file}", fg="yellow")
    elif changed:
        click.secho("⚠️  Environment changed:", fg="yellow", bold=True)
        for name in changed:
            click.echo(f"   • {name}")
    else:
        click.secho("✅ Environment is up to date", fg="green")

    if stale:
        sys.exit(1)


# ── product-vars ────────────────────────────────────────────────


@cli.group("product-vars")
def product_vars() -> None:
    """Product variables commands."""


@product_vars.command("check")
@click.argument("path", type=click.Path(dir_okay=False))
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def product_vars_check(path: str, as_json: bool) -> None:
    """Validate a product variables file without writing anything."""
    from buildconf.core.use_cases.config_check import check_product_variables

    result = check_product_variables(Path(path))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.product_vars is not None  # guaranteed when valid
        click.secho("✅ Product variables are valid", fg="green", bold=True)
        click.echo(f"   Device: {result.product_vars.device_name or '-'}")
        click.echo(f"   Targets: {result.target_count}")
    else:
        click.secho("❌ Product variables errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    click.echo()
    if not result.valid:
        sys.exit(1)


if __name__ == "__main__":
    cli()
