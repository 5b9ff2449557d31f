from __future__ import annotations

import pytest

from compose_tasks import entry
from compose_tasks.entry import expand_task, rewrite_argv


@pytest.mark.parametrize(
    "token, expected",
    [
        ("up:1.4.2", ["up", "1.4.2"]),
        ("logs:all", ["logs", "all"]),
        ("dockerCompose:build:web:1.0", ["build", "web", "1.0"]),
        ("dockerComposeExec:redis:redis-cli", ["exec", "redis", "redis-cli"]),
        ("dockerComposeDown", ["down"]),
        ("pull::2.0", ["pull", "2.0"]),
    ],
)
def test_expand_task(token: str, expected: list[str]) -> None:
    assert expand_task(token) == expected


def test_dispatch_without_target() -> None:
    with pytest.raises(ValueError, match="Target not specified!"):
        expand_task("dockerCompose")


def test_unknown_target() -> None:
    with pytest.raises(ValueError, match="Unknown target: deploy"):
        expand_task("deploy:prod")


def test_rewrite_leaves_plain_commands_and_options_alone() -> None:
    assert rewrite_argv(["logs", "all", "--raw"]) == ["logs", "all", "--raw"]
    assert rewrite_argv(["-C", "svc:dir", "up:2.0", "--debug"]) == ["-C", "svc:dir", "up", "2.0", "--debug"]
    assert rewrite_argv(["-v", "logs:api"]) == ["-v", "logs", "api"]


def test_main_dispatches_rewritten_argv(monkeypatch) -> None:
    seen = {}

    def _fake_app(args, prog_name):
        seen["args"] = args
        seen["prog"] = prog_name

    monkeypatch.setattr(entry, "app", _fake_app)

    entry.main(["dockerCompose:logs:all", "--raw"])

    assert seen == {"args": ["logs", "all", "--raw"], "prog": "dcomp"}


def test_main_rejects_missing_target(monkeypatch, capsys) -> None:
    monkeypatch.setattr(entry, "app", lambda **_: pytest.fail("app must not run"))

    with pytest.raises(SystemExit) as exc:
        entry.main(["dockerCompose"])

    assert exc.value.code == 2
    assert "Target not specified!" in capsys.readouterr().err


def test_main_prints_version(capsys) -> None:
    entry.main(["--version"])

    assert capsys.readouterr().out.strip()
