from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from typing import Optional

from .config import ComposeOptions

ALL_SERVICES = "all"
DEFAULT_EXEC = "ash"


@dataclass
class ShellCommand:
    """A backend invocation: argv plus KEY=value environment overrides."""

    argv: list[str]
    env: dict[str, str] = field(default_factory=dict)
    cwd: Optional[str] = None
    interactive: bool = False
    # `down` exits nonzero while other stacks still hold the network
    ignore_failure: bool = False

    def render(self) -> str:
        prefix = [f"{k}={shlex.quote(v)}" for k, v in self.env.items()]
        return " ".join(prefix + [shlex.join(self.argv)])


def compose_argv(options: ComposeOptions, *args: str, compose_file: Optional[str] = None) -> list[str]:
    return [*options.compose_bin, "-f", compose_file or options.compose_file, *args]


def _command(options: ComposeOptions, argv: list[str], **kwargs) -> ShellCommand:
    cwd = str(options.project_dir) if options.project_dir is not None else None
    return ShellCommand(argv=argv, env=options.env_prefix(), cwd=cwd, **kwargs)


def up_command(options: ComposeOptions, baked: bool = False, debug: bool = False) -> ShellCommand:
    """`up -d` against the mapped file; --debug and --baked pick other files."""
    if debug:
        compose_file = options.debug_compose_file
    elif baked:
        compose_file = options.compose_file
    else:
        compose_file = options.mapped_compose_file
    return _command(options, compose_argv(options, "up", "-d", compose_file=compose_file))


def down_command(options: ComposeOptions) -> ShellCommand:
    return _command(options, compose_argv(options, "down", "-v"), ignore_failure=True)


def stop_command(options: ComposeOptions) -> ShellCommand:
    return _command(options, compose_argv(options, "stop"))


def restart_command(options: ComposeOptions, service: Optional[str] = None) -> ShellCommand:
    args = ["restart"]
    if service:
        args.append(service)
    return _command(options, compose_argv(options, *args))


def build_command(
    options: ComposeOptions,
    service: Optional[str] = None,
    no_cache: bool = False,
    debug: bool = False,
) -> ShellCommand:
    args = ["build"]
    if no_cache:
        args.append("--no-cache")
    if service:
        args.append(service)
    compose_file = options.debug_compose_file if debug else options.compose_file
    return _command(options, compose_argv(options, *args, compose_file=compose_file))


def pull_command(options: ComposeOptions, service: Optional[str] = None) -> ShellCommand:
    args = ["pull", "--ignore-pull-failures"]
    if service:
        args.append(service)
    return _command(options, compose_argv(options, *args))


def exec_command(
    options: ComposeOptions,
    service: Optional[str] = None,
    executable: Optional[str] = None,
) -> ShellCommand:
    """Interactive exec; defaults to an `ash` shell in the main service."""
    target = service or options.main_service
    argv = compose_argv(options, "exec", target, *(shlex.split(executable) if executable else [DEFAULT_EXEC]))
    return _command(options, argv, interactive=True)


def config_command(options: ComposeOptions) -> ShellCommand:
    return _command(options, compose_argv(options, "config"))


def status_command(options: ComposeOptions) -> ShellCommand:
    return _command(options, compose_argv(options, "ps"))


def container_id_command(options: ComposeOptions, service: str) -> ShellCommand:
    return _command(options, compose_argv(options, "ps", "-q", service))


def compose_logs_command(options: ComposeOptions, target: str) -> ShellCommand:
    args = ["logs", f"--tail={options.log_tail}", "-f"]
    if target != ALL_SERVICES:
        args.append(target)
    return _command(options, compose_argv(options, *args))


def container_logs_command(options: ComposeOptions, container_id: str) -> ShellCommand:
    argv = [options.docker_bin, "logs", f"--tail={options.log_tail}", "-f", container_id]
    return _command(options, argv)
