from __future__ import annotations

import json
import os
import shlex
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, Optional

DEFAULT_COMPOSE_FILE = "docker-compose.yml"
DEFAULT_LOG_TAIL = "10"
DEFAULT_COMPOSE_BIN: tuple[str, ...] = ("docker-compose",)
DEFAULT_DOCKER_BIN = "docker"
DEFAULT_LOG_FILTER: tuple[str, ...] = ("bunyan", "--color", "-o", "short")

TOOL_TABLE = "dcomp"

# Propagated to every backend invocation, in this order, when set.
ENV_PREFIX_KEYS: tuple[tuple[str, str], ...] = (
    ("tag", "TAG"),
    ("docker_registry", "DOCKER_REGISTRY"),
    ("docker_registry_namespace", "DOCKER_REGISTRY_NAMESPACE"),
)

_TABLE_KEYS = frozenset(
    {
        "main_service",
        "log_tail",
        "compose_file",
        "mapped_compose_file",
        "debug_compose_file",
        "compose_bin",
        "docker_bin",
        "log_filter",
        "tag",
        "docker_registry",
        "docker_registry_namespace",
    }
)


class ConfigError(ValueError):
    """Raised when project configuration cannot be loaded or validated."""


@dataclass(frozen=True)
class ComposeOptions:
    """Resolved settings for one invocation.

    Attributes:
        main_service: Default target for `logs` and `exec`.
        tag: Image tag exported as TAG.
        docker_registry: Exported as DOCKER_REGISTRY.
        docker_registry_namespace: Exported as DOCKER_REGISTRY_NAMESPACE.
        log_tail: History lines shown before following; digits or "all".
        compose_file: Compose file for most actions and for status queries.
        mapped_compose_file: Compose file used by `up` by default.
        debug_compose_file: Compose file used by `up --debug` and `build --debug`.
        compose_bin: argv prefix of the orchestration backend.
        docker_bin: Container runtime CLI used for direct log follow.
        log_filter: argv of the optional formatting filter; empty disables it.
        project_dir: Working directory for every backend process; None means cwd.
    """

    main_service: str
    tag: Optional[str] = None
    docker_registry: Optional[str] = None
    docker_registry_namespace: Optional[str] = None
    log_tail: str = DEFAULT_LOG_TAIL
    compose_file: str = DEFAULT_COMPOSE_FILE
    mapped_compose_file: str = DEFAULT_COMPOSE_FILE
    debug_compose_file: str = DEFAULT_COMPOSE_FILE
    compose_bin: tuple[str, ...] = DEFAULT_COMPOSE_BIN
    docker_bin: str = DEFAULT_DOCKER_BIN
    log_filter: tuple[str, ...] = DEFAULT_LOG_FILTER
    project_dir: Optional[Path] = None

    def with_tag(self, tag: Optional[str]) -> "ComposeOptions":
        """Return a copy with TAG overridden; a falsy tag keeps the current one."""
        if not tag:
            return self
        return replace(self, tag=tag)

    def with_log_tail(self, log_tail: Optional[Any]) -> "ComposeOptions":
        if log_tail is None:
            return self
        return replace(self, log_tail=_validate_log_tail(log_tail))

    def env_prefix(self) -> dict[str, str]:
        env: dict[str, str] = {}
        for attr, key in ENV_PREFIX_KEYS:
            value = getattr(self, attr)
            if value:
                env[key] = value
        return env


def _validate_log_tail(value: Any) -> str:
    if isinstance(value, bool):
        raise ConfigError(f"log_tail must be a non-negative integer or 'all', got {value!r}")
    text = str(value).strip()
    if text == "all" or text.isdigit():
        return text
    raise ConfigError(f"log_tail must be a non-negative integer or 'all', got {value!r}")


def _as_argv(key: str, value: Any, *, allow_empty: bool) -> tuple[str, ...]:
    if isinstance(value, str):
        try:
            argv = tuple(shlex.split(value))
        except ValueError as e:
            raise ConfigError(f"{key}: {e}") from e
    elif isinstance(value, (list, tuple)) and all(isinstance(x, str) for x in value):
        argv = tuple(value)
    else:
        raise ConfigError(f"{key} must be a string or a list of strings")
    if not argv and not allow_empty:
        raise ConfigError(f"{key} must not be empty")
    return argv


def _as_str(key: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{key} must be a non-empty string")
    return value.strip()


def _read_pyproject(root: Path) -> dict[str, Any]:
    path = root / "pyproject.toml"
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid {path}: {e}") from e


def _package_json_name(root: Path) -> Optional[str]:
    path = root / "package.json"
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    name = data.get("name") if isinstance(data, dict) else None
    return name if isinstance(name, str) and name else None


def _tool_table(pyproject: Mapping[str, Any]) -> dict[str, Any]:
    table = pyproject.get("tool", {}).get(TOOL_TABLE, {})
    if not isinstance(table, dict):
        raise ConfigError(f"[tool.{TOOL_TABLE}] must be a table")
    unknown = sorted(set(table) - _TABLE_KEYS)
    if unknown:
        raise ConfigError(f"Unknown key(s) in [tool.{TOOL_TABLE}]: {', '.join(unknown)}")
    return table


def resolve_main_service(root: Path, pyproject: Mapping[str, Any], table: Mapping[str, Any]) -> str:
    """Main service: explicit setting, then project name, then package.json, then dir name."""
    if "main_service" in table:
        return _as_str("main_service", table["main_service"])
    project_name = pyproject.get("project", {}).get("name")
    if isinstance(project_name, str) and project_name:
        return project_name
    return _package_json_name(root) or root.resolve().name


def load_options(
    project_dir: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ComposeOptions:
    """Build ComposeOptions from defaults, [tool.dcomp] and the environment."""
    root = Path(project_dir) if project_dir is not None else Path.cwd()
    env = os.environ if environ is None else environ
    pyproject = _read_pyproject(root)
    table = _tool_table(pyproject)

    values: dict[str, Any] = {"main_service": resolve_main_service(root, pyproject, table)}
    for key in ("compose_file", "mapped_compose_file", "debug_compose_file", "docker_bin"):
        if key in table:
            values[key] = _as_str(key, table[key])
    for key in ("tag", "docker_registry", "docker_registry_namespace"):
        if key in table:
            values[key] = _as_str(key, table[key])
    if "log_tail" in table:
        values["log_tail"] = _validate_log_tail(table["log_tail"])
    if "compose_bin" in table:
        values["compose_bin"] = _as_argv("compose_bin", table["compose_bin"], allow_empty=False)
    if "log_filter" in table:
        values["log_filter"] = _as_argv("log_filter", table["log_filter"], allow_empty=True)

    # Exported shell variables win over the project file
    for attr, key in ENV_PREFIX_KEYS:
        if env.get(key):
            values[attr] = env[key]
    if env.get("DCOMP_COMPOSE_BIN"):
        values["compose_bin"] = _as_argv("DCOMP_COMPOSE_BIN", env["DCOMP_COMPOSE_BIN"], allow_empty=False)
    if "DCOMP_LOG_FILTER" in env:
        values["log_filter"] = _as_argv("DCOMP_LOG_FILTER", env["DCOMP_LOG_FILTER"], allow_empty=True)

    values["project_dir"] = root.resolve()
    return ComposeOptions(**values)
