from pathlib import Path
from typing import Optional

import typer

from . import __version__
from . import backend
from .commands import (
    ShellCommand,
    build_command,
    config_command,
    down_command,
    exec_command,
    pull_command,
    restart_command,
    stop_command,
    up_command,
)
from .config import ComposeOptions, ConfigError, load_options
from .logger import setup_logging
from .monitor import MAIN_SERVICE, LogTailMonitor, resolve_filter


app = typer.Typer(
    name="dcomp",
    add_completion=False,
    no_args_is_help=True,
    help=(
        "docker-compose task wrappers with TAG/registry propagation.\n\n"
        "Usage:\n"
        "  dcomp up [TAG] [--baked|--debug]        Launch the stack (detached)\n"
        "  dcomp down|stop|config                  Tear down / stop / print config\n"
        "  dcomp restart [SERVICE]                 Restart stack or one service\n"
        "  dcomp logs [SERVICE|all] [--raw]        Follow logs until the stack stops\n"
        "  dcomp build [SERVICE] [TAG] [--no-cache] [--debug]\n"
        "  dcomp pull [SERVICE] [TAG]\n"
        "  dcomp exec [SERVICE] [CMD]              Shell into a service (default: main, ash)\n\n"
        "Task-style targets also work: dcomp up:1.2.0, dcomp logs:all."
    ),
    context_settings={"help_option_names": ["-h", "--help"]},
)


@app.callback()
def _root(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        help="Show version and exit",
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Debug logging on stderr"),
    project_dir: Optional[Path] = typer.Option(
        None, "-C", "--project-dir", help="Directory holding pyproject.toml and compose files"
    ),
):
    if version:
        typer.echo(__version__)
        raise typer.Exit()
    setup_logging(verbose)
    ctx.obj = {"project_dir": project_dir}


def _options(ctx: typer.Context) -> ComposeOptions:
    project_dir = (ctx.obj or {}).get("project_dir")
    try:
        return load_options(project_dir)
    except ConfigError as e:
        typer.echo(f"Invalid configuration: {e}", err=True)
        raise typer.Exit(code=2)


def _echo_command(command: ShellCommand) -> None:
    typer.secho("Executing Command:", bold=True)
    typer.secho(command.render(), fg=typer.colors.YELLOW)


def _execute(command: ShellCommand) -> None:
    _echo_command(command)
    try:
        rc = backend.run(command)
    except FileNotFoundError:
        typer.echo(
            f"{command.argv[0]} not found. Install it or set DCOMP_COMPOSE_BIN / [tool.dcomp].",
            err=True,
        )
        raise typer.Exit(code=backend.EXIT_NOT_FOUND)
    if command.ignore_failure:
        return
    if rc != 0:
        raise typer.Exit(code=rc)


@app.command()
def version():
    """Show CLI version (semver)."""
    typer.echo(__version__)


@app.command()
def up(
    ctx: typer.Context,
    tag: Optional[str] = typer.Argument(None, help="Image tag for this run"),
    baked: bool = typer.Option(False, "--baked", help="Use the plain compose file (no source mapping)"),
    debug: bool = typer.Option(False, "--debug", help="Use the debug compose file"),
):
    """Launch the stack in the background. Builds images as required."""
    options = _options(ctx).with_tag(tag)
    _execute(up_command(options, baked=baked, debug=debug))


@app.command()
def down(ctx: typer.Context):
    """Tear down the stack, including volumes."""
    _execute(down_command(_options(ctx)))


@app.command()
def stop(ctx: typer.Context):
    """Stop all containers, leaving networks and volumes intact."""
    _execute(stop_command(_options(ctx)))


@app.command()
def restart(ctx: typer.Context, service: Optional[str] = typer.Argument(None)):
    """Restart the stack or one service."""
    _execute(restart_command(_options(ctx), service))


@app.command()
def logs(
    ctx: typer.Context,
    service: Optional[str] = typer.Argument(None, help="Service name, or 'all'. Default: main service"),
    raw: bool = typer.Option(False, "--raw", help="Do not pipe through the log formatter"),
    tail: Optional[str] = typer.Option(None, "-n", "--tail", help="History lines before following (or 'all')"),
):
    """Follow logs; resumes after restarts and stops once nothing is up."""
    try:
        options = _options(ctx).with_log_tail(tail)
    except ConfigError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=2)
    monitor = LogTailMonitor(options, target=service or MAIN_SERVICE, raw=raw)
    try:
        monitor.run()
    except KeyboardInterrupt:
        typer.echo()
        raise typer.Exit(code=130)


@app.command()
def build(
    ctx: typer.Context,
    service: Optional[str] = typer.Argument(None),
    tag: Optional[str] = typer.Argument(None),
    no_cache: bool = typer.Option(False, "--no-cache", help="Build without layer cache"),
    debug: bool = typer.Option(False, "--debug", help="Build from the debug compose file"),
):
    """Build images for services that have a build key."""
    options = _options(ctx).with_tag(tag)
    _execute(build_command(options, service, no_cache=no_cache, debug=debug))


@app.command()
def pull(
    ctx: typer.Context,
    service: Optional[str] = typer.Argument(None),
    tag: Optional[str] = typer.Argument(None),
):
    """Pull images named in the compose file."""
    options = _options(ctx).with_tag(tag)
    _execute(pull_command(options, service))


@app.command("exec")
def exec_(
    ctx: typer.Context,
    service: Optional[str] = typer.Argument(None, help="Default: main service"),
    executable: Optional[str] = typer.Argument(None, help="Default: ash"),
):
    """Run a command in a service container (interactive)."""
    _execute(exec_command(_options(ctx), service, executable))


@app.command()
def config(ctx: typer.Context):
    """Print the compiled compose configuration."""
    _execute(config_command(_options(ctx)))


@app.command()
def doctor(ctx: typer.Context):
    """Check the compose backend, docker, log formatter and compose file."""
    options = _options(ctx)
    project_dir = options.project_dir or Path.cwd()
    cwd = str(project_dir)

    compose_out = backend.capture(ShellCommand(argv=[*options.compose_bin, "version"], cwd=cwd))
    compose_ver = compose_out.strip().splitlines()[0] if compose_out and compose_out.strip() else ""
    docker_ok = backend.capture(ShellCommand(argv=[options.docker_bin, "--version"], cwd=cwd)) is not None
    filter_ok = resolve_filter(options, raw=False) is not None
    compose_file_ok = (Path(project_dir) / options.compose_file).is_file()

    compose_state = "ok" if compose_out is not None else "FAIL"
    if compose_ver:
        compose_state = f"{compose_state} ({compose_ver})"
    typer.echo(f"{' '.join(options.compose_bin)}: {compose_state}")
    typer.echo(f"{options.docker_bin}: {'ok' if docker_ok else 'FAIL'}")
    if options.log_filter:
        typer.echo(f"log filter ({options.log_filter[0]}): {'ok' if filter_ok else 'missing (raw output)'}")
    else:
        typer.echo("log filter: disabled")
    typer.echo(f"compose file ({options.compose_file}): {'ok' if compose_file_ok else 'missing'}")
    typer.echo(f"main service: {options.main_service}")
    if compose_out is None or not docker_ok:
        raise typer.Exit(code=1)
