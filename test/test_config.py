from __future__ import annotations

import json
from pathlib import Path

import pytest

from compose_tasks.config import ComposeOptions, ConfigError, load_options


def _write_pyproject(root: Path, body: str) -> None:
    (root / "pyproject.toml").write_text(body, encoding="utf-8")


def test_defaults_use_directory_name_as_main_service(tmp_path: Path) -> None:
    opts = load_options(tmp_path, environ={})

    assert opts.main_service == tmp_path.name
    assert opts.log_tail == "10"
    assert opts.compose_file == opts.mapped_compose_file == opts.debug_compose_file == "docker-compose.yml"
    assert opts.compose_bin == ("docker-compose",)
    assert opts.log_filter == ("bunyan", "--color", "-o", "short")
    assert opts.env_prefix() == {}
    assert opts.project_dir == tmp_path.resolve()


def test_main_service_from_project_name(tmp_path: Path) -> None:
    _write_pyproject(tmp_path, '[project]\nname = "billing-api"\n')
    (tmp_path / "package.json").write_text(json.dumps({"name": "ignored"}))

    assert load_options(tmp_path, environ={}).main_service == "billing-api"


def test_main_service_from_package_json(tmp_path: Path) -> None:
    (tmp_path / "package.json").write_text(json.dumps({"name": "storefront"}))

    assert load_options(tmp_path, environ={}).main_service == "storefront"


def test_tool_table_overrides_defaults(tmp_path: Path) -> None:
    _write_pyproject(
        tmp_path,
        "[project]\n"
        'name = "billing-api"\n'
        "[tool.dcomp]\n"
        'main_service = "api"\n'
        "log_tail = 50\n"
        'mapped_compose_file = "docker-compose.dev.yml"\n'
        'debug_compose_file = "docker-compose.debug.yml"\n'
        'compose_bin = "docker compose"\n'
        'log_filter = ["pino-pretty"]\n'
        'docker_registry = "registry.example.com"\n',
    )

    opts = load_options(tmp_path, environ={})

    assert opts.main_service == "api"
    assert opts.log_tail == "50"
    assert opts.mapped_compose_file == "docker-compose.dev.yml"
    assert opts.debug_compose_file == "docker-compose.debug.yml"
    assert opts.compose_file == "docker-compose.yml"
    assert opts.compose_bin == ("docker", "compose")
    assert opts.log_filter == ("pino-pretty",)
    assert opts.env_prefix() == {"DOCKER_REGISTRY": "registry.example.com"}


def test_environment_wins_over_file(tmp_path: Path) -> None:
    _write_pyproject(tmp_path, '[tool.dcomp]\ntag = "from-file"\ndocker_registry = "file.example.com"\n')
    env = {
        "TAG": "1.4.2",
        "DOCKER_REGISTRY_NAMESPACE": "team",
        "DCOMP_COMPOSE_BIN": "podman-compose",
        "DCOMP_LOG_FILTER": "",
    }

    opts = load_options(tmp_path, environ=env)

    assert opts.env_prefix() == {
        "TAG": "1.4.2",
        "DOCKER_REGISTRY": "file.example.com",
        "DOCKER_REGISTRY_NAMESPACE": "team",
    }
    assert list(opts.env_prefix()) == ["TAG", "DOCKER_REGISTRY", "DOCKER_REGISTRY_NAMESPACE"]
    assert opts.compose_bin == ("podman-compose",)
    assert opts.log_filter == ()


def test_empty_env_values_are_not_propagated(tmp_path: Path) -> None:
    opts = load_options(tmp_path, environ={"TAG": "", "DOCKER_REGISTRY": ""})

    assert opts.env_prefix() == {}


@pytest.mark.parametrize(
    "body, message",
    [
        ('[tool.dcomp]\nlogtail = 5\n', "Unknown key"),
        ('[tool.dcomp]\nlog_tail = "lots"\n', "log_tail"),
        ("[tool.dcomp]\nlog_tail = -1\n", "log_tail"),
        ('[tool.dcomp]\ncompose_bin = ""\n', "compose_bin"),
        ("[tool.dcomp]\ncompose_file = 3\n", "compose_file"),
        ("[tool.dcomp\n", "Invalid"),
    ],
)
def test_invalid_configuration_raises(tmp_path: Path, body: str, message: str) -> None:
    _write_pyproject(tmp_path, body)

    with pytest.raises(ConfigError, match=message):
        load_options(tmp_path, environ={})


def test_log_tail_accepts_all(tmp_path: Path) -> None:
    _write_pyproject(tmp_path, '[tool.dcomp]\nlog_tail = "all"\n')

    assert load_options(tmp_path, environ={}).log_tail == "all"


def test_with_tag_and_log_tail_return_copies() -> None:
    base = ComposeOptions(main_service="web", tag="1.0")

    assert base.with_tag(None) is base
    assert base.with_tag("2.0").tag == "2.0"
    assert base.tag == "1.0"
    assert base.with_log_tail(25).log_tail == "25"
    with pytest.raises(ConfigError):
        base.with_log_tail("-3")
