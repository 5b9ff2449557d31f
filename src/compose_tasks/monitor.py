"""Service liveness polling and log tailing.

The monitor alternates between asking the backend whether anything in the
stack is up and following logs until the follow process exits. It stops as
soon as a poll finds nothing running.
"""
from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Optional

from . import backend
from .commands import (
    ShellCommand,
    compose_logs_command,
    container_id_command,
    container_logs_command,
    status_command,
)
from .config import ComposeOptions

logger = logging.getLogger(__name__)

# Target meaning "the main service's container", resolved through `ps -q`
MAIN_SERVICE = None

# Table header and column separator of `ps`
STATUS_HEADER_LINES = 2

# Wait before re-polling when the main container is missing, e.g. mid-recreate
MISSING_CONTAINER_PAUSE = 1.0

# Recorded on a session that found nothing to follow
EXIT_NO_CONTAINER = 1


@dataclass(frozen=True)
class ServiceStatus:
    name: str
    line: str

    @property
    def state(self) -> str:
        parts = self.line.split(None, 1)
        return parts[1] if len(parts) > 1 else ""

    @property
    def is_up(self) -> bool:
        # Index 0 would be a service literally named "Up"
        return self.line.find("Up") > 0


def parse_status(output: str) -> list[ServiceStatus]:
    """Turn `ps` table output into a snapshot, skipping header and blank lines."""
    entries = []
    for line in output.splitlines()[STATUS_HEADER_LINES:]:
        if not line.strip():
            continue
        entries.append(ServiceStatus(name=line.split(None, 1)[0], line=line))
    return entries


def is_live(snapshot: list[ServiceStatus]) -> bool:
    return any(entry.is_up for entry in snapshot)


def check_liveness(options: ComposeOptions) -> bool:
    """True iff the backend reports at least one running service.

    Never raises: an unavailable backend counts as nothing running.
    """
    output = backend.capture(status_command(options))
    if output is None:
        logger.debug("status query failed; treating stack as stopped")
        return False
    snapshot = parse_status(output)
    live = is_live(snapshot)
    logger.debug("status: %d service(s), live=%s", len(snapshot), live)
    return live


def lookup_container_id(options: ComposeOptions, service: str) -> Optional[str]:
    output = backend.capture(container_id_command(options, service))
    if not output:
        return None
    lines = output.strip().splitlines()
    return lines[0].strip() if lines else None


def resolve_filter(options: ComposeOptions, raw: bool) -> Optional[tuple[str, ...]]:
    if raw or not options.log_filter:
        return None
    if not backend.command_exists(options.log_filter[0]):
        logger.debug("%s not found; streaming raw output", options.log_filter[0])
        return None
    return options.log_filter


@dataclass
class TailSession:
    target: Optional[str]
    raw: bool
    command: Optional[ShellCommand] = None
    filter_argv: Optional[tuple[str, ...]] = None
    returncode: Optional[int] = None

    @property
    def started(self) -> bool:
        return self.command is not None


def resolve_tail_command(options: ComposeOptions, target: Optional[str]) -> Optional[ShellCommand]:
    """Follow command for a target; None when the main service has no container."""
    if target is MAIN_SERVICE:
        container_id = lookup_container_id(options, options.main_service)
        if not container_id:
            return None
        return container_logs_command(options, container_id)
    return compose_logs_command(options, target)


def run_tail_once(options: ComposeOptions, target: Optional[str] = MAIN_SERVICE, raw: bool = False) -> TailSession:
    """Follow logs for target until the follow process exits."""
    session = TailSession(target=target, raw=raw)
    session.command = resolve_tail_command(options, target)
    if session.command is None:
        logger.warning("no container found for service %r", options.main_service)
        session.returncode = EXIT_NO_CONTAINER
        time.sleep(MISSING_CONTAINER_PAUSE)
        return session
    session.filter_argv = resolve_filter(options, raw)
    logger.info("tailing: %s", session.command.render())
    session.returncode = backend.stream(session.command, session.filter_argv)
    logger.debug("tail exited with %s", session.returncode)
    return session


class MonitorState(enum.Enum):
    POLLING = "polling"
    TAILING = "tailing"
    DONE = "done"


class LogTailMonitor:
    """Poll/tail loop: keep following logs while anything in the stack is up."""

    def __init__(self, options: ComposeOptions, target: Optional[str] = MAIN_SERVICE, raw: bool = False):
        self.options = options
        self.target = target
        self.raw = raw
        self.state = MonitorState.POLLING
        self.sessions_run = 0
        self.last_session: Optional[TailSession] = None

    def step(self) -> MonitorState:
        if self.state is MonitorState.POLLING:
            live = check_liveness(self.options)
            self.state = MonitorState.TAILING if live else MonitorState.DONE
        elif self.state is MonitorState.TAILING:
            session = run_tail_once(self.options, self.target, self.raw)
            self.last_session = session
            if session.started:
                self.sessions_run += 1
            self.state = MonitorState.POLLING
        return self.state

    def run(self) -> int:
        """Drive the loop to DONE and return how many tail sessions ran."""
        while self.state is not MonitorState.DONE:
            self.step()
        return self.sessions_run
