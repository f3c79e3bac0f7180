import logging
import time

from fastapi.testclient import TestClient

import server
from poselive.config import AppConfig
from poselive.errors import FatalModelError, PermissionDeniedError
from tests.fakes import FakeModel, FakeSource


def _patch_startup(monkeypatch, outcomes):
	"""Each startup run pops the next outcome: an exception is raised, a (source, model) pair returned."""
	calls = []

	async def fake_run_startup(cfg, geometry):
		calls.append(1)
		item = outcomes.pop(0)
		if isinstance(item, BaseException):
			raise item
		return item

	monkeypatch.setattr(server, "get_config", AppConfig)
	monkeypatch.setattr(server, "run_startup", fake_run_startup)
	return calls


def _wait_for(predicate, timeout=3.0):
	deadline = time.monotonic() + timeout
	while time.monotonic() < deadline:
		if predicate():
			return True
		time.sleep(0.02)
	return False


def test_retry_after_startup_failure_starts_session(monkeypatch):
	source, model = FakeSource(), FakeModel()
	calls = _patch_startup(monkeypatch, [PermissionDeniedError("cannot open camera index 0"), (source, model)])

	with TestClient(server.app) as client:
		state = client.app.state.state
		assert client.get("/status").json()["stage"] == "camera_permission"
		assert "We need your permission to show the camera." in client.get("/").text
		assert client.get("/pump/status").status_code == 503

		r = client.post("/startup/retry")
		assert r.json() == {"ready": True, "stage": None, "error": None}
		assert client.get("/pump/status").json()["state"] == "running"
		assert "__DISPLAY_GEOMETRY__" in client.get("/").text

	assert len(calls) == 2
	assert state.session is None
	assert source.stopped
	assert model.disposed


def test_pump_fault_is_surfaced_and_retry_replaces_session(monkeypatch):
	first = (FakeSource(), FakeModel(script=[FatalModelError("model gone")]))
	second = (FakeSource(), FakeModel())
	_patch_startup(monkeypatch, [first, second])

	with TestClient(server.app) as client:
		assert _wait_for(lambda: client.get("/status").json()["stage"] == "pump")
		status = client.get("/status").json()
		assert status["ready"] is False
		assert status["error"] == "FatalModelError: model gone"
		assert "The live view stopped." in client.get("/").text

		r = client.post("/startup/retry")
		assert r.json()["ready"] is True
		assert first[0].stopped
		assert first[1].disposed
		assert client.get("/pump/status").json()["state"] == "running"

	assert second[0].stopped
	assert second[1].disposed


def test_ws_receives_overlay_and_log_messages(monkeypatch):
	_patch_startup(monkeypatch, [PermissionDeniedError("denied"), (FakeSource(), FakeModel())])
	pkg = logging.getLogger("poselive")
	handler = server._ClientLogHandler(level=logging.INFO)
	handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
	old_level = pkg.level
	pkg.setLevel(logging.INFO)
	pkg.addHandler(handler)
	try:
		with TestClient(server.app) as client:
			with client.websocket_connect("/ws") as ws:
				client.post("/startup/retry")
				seen = {}
				while len(seen) < 2:
					msg = ws.receive_json()
					seen.setdefault(msg["type"], msg)
	finally:
		pkg.removeHandler(handler)
		pkg.setLevel(old_level)

	assert set(seen) == {"overlay", "log"}
	assert seen["overlay"]["points"] == []
	assert seen["overlay"]["facing"] == "front"
	assert seen["log"]["level"] == "INFO"
	assert seen["log"]["msg"].startswith("poselive.")


def test_live_page_watches_for_pump_faults():
	page = server.load_html_template("index.html")
	assert 'fetch("/status")' in page
	assert "<!-- DISPLAY_GEOMETRY -->" in page
