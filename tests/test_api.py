import base64

import pytest
from fastapi.testclient import TestClient

from save_as_root.app import create_app
from save_as_root.models.save import SaveStatus
from save_as_root.models.write import PromptContext
from save_as_root.privileged.errors import HelperExitError, WriteCancelled
from save_as_root.privileged.orchestrator import PrivilegedWriter
from save_as_root.services import system_inspector
from save_as_root.services.save_manager import save_manager


class FakeWriter:
    """Prompts once unless ``needs_password`` is False; 'hunter2' is correct."""

    needs_password = True
    written: list = []

    def __init__(self, prompt_provider):
        self.prompt_provider = prompt_provider

    async def write(self, request) -> None:
        if self.needs_password:
            secret = await self.prompt_provider.request_secret(
                PromptContext(account_hint="alice")
            )
            if secret is None:
                raise WriteCancelled()
            if secret != "hunter2":
                raise HelperExitError(1, "sudo: 1 incorrect password attempt")
        self.written.append(request)


@pytest.fixture
def fake_writer(monkeypatch):
    FakeWriter.written = []
    FakeWriter.needs_password = True
    monkeypatch.setattr(save_manager, "writer_factory", FakeWriter)
    return FakeWriter


@pytest.fixture
def client():
    return TestClient(create_app())


def _receive(ws, kind: str) -> dict:
    """Next message of the given type, skipping status updates."""
    while True:
        msg = ws.receive_json()
        if msg["type"] == kind:
            return msg
        assert msg["type"] == "save_status"


def test_system_info(client, monkeypatch) -> None:
    async def _hostname():
        return "box"

    async def _cached():
        return False

    monkeypatch.setattr(system_inspector, "get_hostname", _hostname)
    monkeypatch.setattr(system_inspector, "check_sudo_cached", _cached)

    resp = client.get("/api/system/info")
    assert resp.status_code == 200
    body = resp.json()
    assert body["hostname"] == "box"
    assert body["sudo_cached"] is False
    assert body["timeout_seconds"] > 0


def test_rest_save_with_cached_credentials(client, fake_writer, tmp_path) -> None:
    fake_writer.needs_password = False
    target = tmp_path / "hosts"

    resp = client.post("/api/save", json={"target": str(target), "content": "127.0.0.1 box\n"})

    assert resp.status_code == 200
    job = resp.json()
    assert job["status"] == SaveStatus.COMPLETED.value
    assert job["size"] == len("127.0.0.1 box\n")
    assert fake_writer.written[0].payload == b"127.0.0.1 box\n"

    resp = client.get(f"/api/save/jobs/{job['id']}")
    assert resp.status_code == 200
    assert resp.json()["target"] == str(target)


def test_rest_save_base64(client, fake_writer, tmp_path) -> None:
    fake_writer.needs_password = False
    payload = bytes([0, 255, 10])
    resp = client.post(
        "/api/save",
        json={
            "target": str(tmp_path / "blob"),
            "content": base64.b64encode(payload).decode(),
            "encoding": "base64",
        },
    )
    assert resp.status_code == 200
    assert fake_writer.written[0].payload == payload


def test_rest_save_without_cached_credentials(client, fake_writer, tmp_path) -> None:
    resp = client.post("/api/save", json={"target": str(tmp_path / "x"), "content": "x"})
    assert resp.status_code == 401
    assert fake_writer.written == []


def test_rest_save_unsupported_scheme(client, fake_writer) -> None:
    resp = client.post("/api/save", json={"target": "untitled:Untitled-1", "content": "x"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "scheme untitled is not supported."


def test_rest_save_while_busy(client, fake_writer, monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(save_manager, "_active", "abc123")
    resp = client.post("/api/save", json={"target": str(tmp_path / "x"), "content": "x"})
    assert resp.status_code == 409


def test_unknown_job(client) -> None:
    assert client.get("/api/save/jobs/missing").status_code == 404


def test_ws_interactive_save(client, fake_writer, tmp_path) -> None:
    target = tmp_path / "motd"
    with client.websocket_connect("/api/ws") as ws:
        ws.send_json({"action": "save", "target": str(target), "content": "hi\n"})

        running = ws.receive_json()
        assert running["type"] == "save_status"
        assert running["status"] == "running"
        prompt = ws.receive_json()
        assert prompt == {"type": "password_prompt", "account": "alice", "error": ""}

        ws.send_json({"action": "password", "password": "hunter2"})
        finished = ws.receive_json()
        result = ws.receive_json()

    assert finished == {"type": "save_status", "job_id": running["job_id"], "status": "completed"}
    assert result["type"] == "save_result"
    assert result["job_id"] == running["job_id"]
    assert result["status"] == "completed"
    assert result["error"] is None
    assert fake_writer.written[0].path == str(target)


def test_ws_cancel(client, fake_writer, tmp_path) -> None:
    with client.websocket_connect("/api/ws") as ws:
        ws.send_json({"action": "save", "target": str(tmp_path / "x"), "content": "x"})
        _receive(ws, "password_prompt")
        ws.send_json({"action": "cancel"})
        result = _receive(ws, "save_result")

    assert result["status"] == "cancelled"
    assert result["error"] is None


def test_ws_failure_reports_helper_text(client, fake_writer, tmp_path) -> None:
    with client.websocket_connect("/api/ws") as ws:
        ws.send_json({"action": "save", "target": str(tmp_path / "x"), "content": "x"})
        _receive(ws, "password_prompt")
        ws.send_json({"action": "password", "password": "wrong"})
        result = _receive(ws, "save_result")

    assert result["status"] == "failed"
    assert result["error"] == "exit code 1: sudo: 1 incorrect password attempt"


def test_ws_rejects_bad_target(client, fake_writer) -> None:
    with client.websocket_connect("/api/ws") as ws:
        ws.send_text("not json")
        ws.send_json({"action": "save", "target": "relative.txt", "content": "x"})
        reply = ws.receive_json()

    assert reply["type"] == "error"
    assert "absolute" in reply["detail"]


def test_ws_end_to_end_with_helper(client, monkeypatch, fake_helper, fast_settings, tmp_path) -> None:
    def _factory(prompt_provider):
        return PrivilegedWriter(prompt_provider, settings=fast_settings, command_builder=fake_helper())

    monkeypatch.setattr(save_manager, "writer_factory", _factory)
    target = tmp_path / "out.txt"

    with client.websocket_connect("/api/ws") as ws:
        ws.send_json({"action": "save", "target": str(target), "content": "hello\n"})
        _receive(ws, "password_prompt")
        ws.send_json({"action": "password", "password": "wrong"})
        retry = _receive(ws, "password_prompt")
        assert retry["error"] == "Sorry, try again."
        ws.send_json({"action": "password", "password": "hunter2"})
        result = _receive(ws, "save_result")

    assert result["status"] == "completed"
    assert target.read_bytes() == b"hello\n"


def test_ws_dismisses_prompt_when_helper_stops_asking(
    client, monkeypatch, fake_helper, fast_settings, tmp_path
) -> None:
    def _factory(prompt_provider):
        return PrivilegedWriter(
            prompt_provider, settings=fast_settings, command_builder=fake_helper("late_cache")
        )

    monkeypatch.setattr(save_manager, "writer_factory", _factory)
    target = tmp_path / "out.txt"

    with client.websocket_connect("/api/ws") as ws:
        ws.send_json({"action": "save", "target": str(target), "content": "hello\n"})
        _receive(ws, "password_prompt")
        assert _receive(ws, "password_dismissed") == {"type": "password_dismissed"}
        result = _receive(ws, "save_result")

    assert result["status"] == "completed"
    assert target.read_bytes() == b"hello\n"
