import importlib

import pytest
from typer.testing import CliRunner

from save_as_root.privileged.errors import HelperExitError, WriteCancelled

cli_module = importlib.import_module("save_as_root.cli")


def _fake_writer(outcome=None, captured=None):
    class _Writer:
        def __init__(self, prompt_provider):
            self.prompt_provider = prompt_provider

        async def write(self, request) -> None:
            if captured is not None:
                captured.append(request)
            if outcome is not None:
                raise outcome

    return _Writer


def test_write_reads_payload_from_stdin(monkeypatch, tmp_path) -> None:
    captured = []
    monkeypatch.setattr(cli_module, "PrivilegedWriter", _fake_writer(captured=captured))

    result = CliRunner().invoke(cli_module.app, ["write", str(tmp_path / "a.conf")], input=b"key=1\n")

    assert result.exit_code == 0
    assert captured[0].path == str(tmp_path / "a.conf")
    assert captured[0].payload == b"key=1\n"


def test_write_failure_shows_helper_text(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(
        cli_module, "PrivilegedWriter", _fake_writer(HelperExitError(1, "permission denied"))
    )

    result = CliRunner().invoke(cli_module.app, ["write", str(tmp_path / "a.conf")], input=b"x")

    assert result.exit_code == 1
    assert "[Save as Root] exit code 1: permission denied" in result.output


def test_write_cancel_is_silent(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(cli_module, "PrivilegedWriter", _fake_writer(WriteCancelled()))

    result = CliRunner().invoke(cli_module.app, ["write", str(tmp_path / "a.conf")], input=b"x")

    assert result.exit_code == 1
    assert "Save as Root" not in result.output


@pytest.mark.parametrize("target", ["untitled:Untitled-1", "relative.txt"])
def test_write_rejects_unsupported_target(monkeypatch, target) -> None:
    captured = []
    monkeypatch.setattr(cli_module, "PrivilegedWriter", _fake_writer(captured=captured))

    result = CliRunner().invoke(cli_module.app, ["write", target], input=b"x")

    assert result.exit_code == 1
    assert "[Save as Root]" in result.output
    assert captured == []


def test_serve_runs_uvicorn(monkeypatch) -> None:
    calls = {}

    def _run(app, **kwargs):
        calls["app"] = app
        calls.update(kwargs)

    monkeypatch.setattr(cli_module.uvicorn, "run", _run)

    result = CliRunner().invoke(cli_module.app, ["serve"])

    assert result.exit_code == 0
    assert calls["app"] == "save_as_root.app:create_app"
    assert calls["factory"] is True
