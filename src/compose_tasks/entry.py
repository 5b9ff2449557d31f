import sys
from typing import List

import typer

from .cli import app


SUBCOMMANDS = {
    "up",
    "down",
    "stop",
    "restart",
    "logs",
    "build",
    "pull",
    "exec",
    "config",
    "doctor",
    "version",
}

# Task-runner style names, e.g. `dockerComposeLogs:all`
TASK_ALIASES = {
    "dockerComposeUp": "up",
    "dockerComposeDown": "down",
    "dockerComposeStop": "stop",
    "dockerComposeRestart": "restart",
    "dockerComposeLogs": "logs",
    "dockerComposeBuild": "build",
    "dockerComposePull": "pull",
    "dockerComposeExec": "exec",
    "dockerComposeConfig": "config",
}

DISPATCH_TASK = "dockerCompose"


def expand_task(token: str) -> List[str]:
    """Split `target:arg1:arg2` into typer argv.

    `dockerCompose:<target>:...` dispatches on its first argument. Empty
    segments are dropped.
    """
    parts = token.split(":")
    head, args = parts[0], [p for p in parts[1:] if p]
    if head == DISPATCH_TASK:
        if not args:
            raise ValueError("Target not specified!")
        head, args = args[0], args[1:]
    target = TASK_ALIASES.get(head, head)
    if target not in SUBCOMMANDS:
        raise ValueError(f"Unknown target: {head}")
    return [target] + args


def rewrite_argv(argv: List[str]) -> List[str]:
    """Rewrite the first non-option token when it uses task syntax."""
    for i, token in enumerate(argv):
        if token.startswith("-"):
            # -C/--project-dir consumes the next token
            continue
        if i > 0 and argv[i - 1] in {"-C", "--project-dir"}:
            continue
        if ":" in token or token in TASK_ALIASES or token == DISPATCH_TASK:
            return argv[:i] + expand_task(token) + argv[i + 1 :]
        return argv
    return argv


def main(argv: List[str] | None = None):
    if argv is None:
        argv = sys.argv[1:]

    # Handle version early to avoid Click group error
    if argv and argv[0] in {"--version", "-V"}:
        from . import __version__
        print(__version__)
        return

    try:
        argv = rewrite_argv(list(argv))
    except ValueError as e:
        typer.echo(str(e), err=True)
        raise SystemExit(2)

    return app(args=argv, prog_name="dcomp")
