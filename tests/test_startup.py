import asyncio

import pytest

from poselive.config import AppConfig, CameraConfig, ModelConfig
from poselive.errors import BackendInitError, ModelLoadError, PermissionDeniedError
from poselive.startup import create_pose_model, run_startup
from tests.fakes import FakeModel, FakeSource


class _DeniedSource(FakeSource):
	def get_status(self):
		st = super().get_status()
		st.update(has_frame=False, running=False, error="cannot open camera index 0")
		return st


def _cfg():
	return AppConfig(camera=CameraConfig(open_timeout_seconds=0.5))


def test_startup_success(geometry):
	source = FakeSource()
	model = FakeModel()
	got_source, got_model = asyncio.run(run_startup(_cfg(), geometry, lambda g, c: source, lambda m: model))
	assert got_source is source and got_model is model
	assert source.started and not source.stopped


def test_permission_denied_stops_source(geometry):
	source = _DeniedSource()
	with pytest.raises(PermissionDeniedError) as ei:
		asyncio.run(run_startup(_cfg(), geometry, lambda g, c: source, lambda m: FakeModel()))
	assert ei.value.stage == "camera_permission"
	assert source.stopped


def test_backend_failure_propagates(geometry):
	source = FakeSource()

	def _no_backend(m):
		raise BackendInitError("mediapipe missing")

	with pytest.raises(BackendInitError):
		asyncio.run(run_startup(_cfg(), geometry, lambda g, c: source, _no_backend))
	assert source.stopped


def test_unexpected_model_failure_becomes_model_load_error(geometry):
	source = FakeSource()

	def _broken(m):
		raise OSError("weights missing")

	with pytest.raises(ModelLoadError) as ei:
		asyncio.run(run_startup(_cfg(), geometry, lambda g, c: source, _broken))
	assert "weights missing" in str(ei.value)
	assert source.stopped


def test_unknown_model_backend():
	with pytest.raises(ModelLoadError):
		create_pose_model(ModelConfig(backend="movenet-js"))
