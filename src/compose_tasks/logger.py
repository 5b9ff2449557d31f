import logging
import sys

LOG_SEVERITY = {
    "DEBUG": "·",
    "INFO": "ℹ️",
    "WARNING": "⚠️",
    "ERROR": "❌",
    "CRITICAL": "🔥",
}


class CompactFormatter(logging.Formatter):
    """One line per record: icon, level, logger scope, message."""

    def __init__(self, include_scope: bool = False):
        super().__init__("%(message)s")
        self.include_scope = include_scope

    def format(self, record: logging.LogRecord) -> str:
        icon = LOG_SEVERITY.get(record.levelname, "ℹ️")
        scope = f" \033[32m{record.name}\033[0m" if self.include_scope else ""
        message = super().format(record)
        return f"{icon} [{record.levelname}]{scope} {message}"


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Attach a stderr handler to the package logger.

    Safe to call more than once; the handler is replaced, not duplicated.
    """
    root = logging.getLogger("compose_tasks")
    for handler in list(root.handlers):
        if getattr(handler, "_dcomp", False):
            root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(CompactFormatter(include_scope=verbose))
    handler._dcomp = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    return root
