import logging
import os
import shutil
import subprocess
from typing import Optional, Sequence

from .commands import ShellCommand

logger = logging.getLogger(__name__)

# Shell convention for "command not found"
EXIT_NOT_FOUND = 127
EXIT_NOT_EXECUTABLE = 126


def command_env(command: ShellCommand) -> dict[str, str]:
    env = dict(os.environ)
    env.update(command.env)
    return env


def command_exists(name: str) -> bool:
    return shutil.which(name) is not None


def run(command: ShellCommand) -> int:
    """Run to completion with inherited stdio. Raises FileNotFoundError if the binary is missing."""
    logger.debug("run: %s", command.render())
    # Interactive commands keep the inherited TTY on stdin; nothing else to wire
    r = subprocess.run(command.argv, env=command_env(command), cwd=command.cwd, check=False)
    return r.returncode


def capture(command: ShellCommand) -> Optional[str]:
    """Return stdout of a finished command, or None on any failure.

    stderr is discarded. Missing binaries, permission errors and nonzero
    exits all collapse to None.
    """
    try:
        r = subprocess.run(
            command.argv,
            env=command_env(command),
            cwd=command.cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
            check=False,
        )
    except OSError as e:
        logger.debug("capture failed to start %s: %s", command.argv[0], e)
        return None
    if r.returncode != 0:
        logger.debug("capture: %s exited %s", command.render(), r.returncode)
        return None
    return r.stdout


def _stop(*procs: subprocess.Popen) -> None:
    for proc in procs:
        if proc.poll() is None:
            proc.terminate()
    for proc in procs:
        proc.wait()


def _wait(proc: subprocess.Popen) -> int:
    try:
        return proc.wait()
    except KeyboardInterrupt:
        _stop(proc)
        raise


def stream(command: ShellCommand, filter_argv: Optional[Sequence[str]] = None) -> int:
    """Stream a long-running command to the terminal, blocking until it exits.

    With filter_argv, stdout is piped through the filter process. The exit
    code of the producer wins when it is nonzero. A missing binary is
    reported as 127 rather than raised.
    """
    env = command_env(command)
    try:
        if not filter_argv:
            with subprocess.Popen(command.argv, env=env, cwd=command.cwd) as proc:
                return _wait(proc)

        with subprocess.Popen(command.argv, env=env, cwd=command.cwd, stdout=subprocess.PIPE) as producer:
            try:
                consumer = subprocess.Popen(list(filter_argv), stdin=producer.stdout)
            except OSError:
                producer.kill()
                raise
            # Only the filter reads the pipe now
            producer.stdout.close()
            with consumer:
                try:
                    filter_rc = _wait(consumer)
                except KeyboardInterrupt:
                    # Ctrl-C may have reached only this process
                    _stop(consumer, producer)
                    raise
            producer_rc = _wait(producer)
        return producer_rc or filter_rc
    except FileNotFoundError as e:
        logger.warning("could not start: %s", e)
        return EXIT_NOT_FOUND
    except OSError as e:
        logger.warning("could not start: %s", e)
        return EXIT_NOT_EXECUTABLE
