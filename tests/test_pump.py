import asyncio

import pytest

from poselive.errors import FatalModelError, FrameReleaseError, FrameSourceError, PumpStoppedError
from poselive.pump import FrameClock, FramePump, PumpState
from tests.fakes import FakeModel, FakeSource, make_pose


def _run(coro):
	return asyncio.run(coro)


def _pump(source, model, results=None, refreshes=None, **kw):
	return FramePump(
		source,
		model,
		on_result=(results.append if results is not None else None),
		on_refresh=((lambda: refreshes.append(1)) if refreshes is not None else None),
		clock=FrameClock(0),
		**kw,
	)


def _assert_released_once(source):
	assert source.frames, "no frames were acquired"
	for f in source.frames:
		assert f.released
		assert source.release_calls[f.frame_idx] == 1


def test_runs_until_source_exhausted_and_releases_every_frame():
	async def main():
		pose = make_pose(("nose", 90, 120, 0.9))
		source = FakeSource(n_frames=5)
		model = FakeModel(script=[[pose]] * 5)
		results, refreshes = [], []
		pump = _pump(source, model, results, refreshes)
		pump.start()
		await pump.wait()
		return source, model, pump, results, refreshes

	source, model, pump, results, refreshes = _run(main())
	assert model.calls == 5
	assert len(results) == 5
	assert len(refreshes) == 5
	assert [r.frame_idx for r in results] == [1, 2, 3, 4, 5]
	assert all(len(r.poses) == 1 for r in results)
	_assert_released_once(source)
	assert pump.state is PumpState.STOPPED
	assert isinstance(pump.fault, FrameSourceError)
	assert not model.saw_released_frame


def test_iterations_never_overlap():
	async def main():
		source = FakeSource(n_frames=20)
		model = FakeModel()
		pump = _pump(source, model)
		pump.start()
		pump.start()  # idempotent
		await pump.wait()
		return model

	model = _run(main())
	assert model.calls == 20
	assert model.max_active == 1


def test_transient_failure_publishes_empty_result_and_continues():
	async def main():
		pose = make_pose(("nose", 1, 2, 0.9))
		source = FakeSource(n_frames=3)
		model = FakeModel(script=[RuntimeError("boom"), [pose], [pose]])
		results = []
		pump = _pump(source, model, results)
		pump.start()
		await pump.wait()
		return source, pump, results

	source, pump, results = _run(main())
	assert len(results) == 3
	assert results[0].poses == ()
	assert "boom" in results[0].error
	assert results[1].error is None and len(results[1].poses) == 1
	assert pump.get_status()["failures"] == 1
	_assert_released_once(source)


def test_fatal_model_error_stops_pump():
	async def main():
		source = FakeSource()
		model = FakeModel(script=[[], FatalModelError("model gone")])
		results = []
		pump = _pump(source, model, results)
		pump.start()
		await pump.wait()
		return source, model, pump, results

	source, model, pump, results = _run(main())
	assert model.calls == 2
	assert len(results) == 1
	assert pump.state is PumpState.STOPPED
	assert isinstance(pump.fault, FatalModelError)
	assert "model gone" in pump.get_status()["fault"]
	_assert_released_once(source)


def test_release_failure_is_surfaced():
	async def main():
		source = FakeSource(release_error=RuntimeError("buffer stuck"))
		model = FakeModel()
		results = []
		pump = _pump(source, model, results)
		pump.start()
		await pump.wait()
		return source, model, pump, results

	source, model, pump, results = _run(main())
	assert model.calls == 1
	assert results == []
	assert isinstance(pump.fault, FrameReleaseError)
	assert len(source.frames) == 1


def test_stop_while_waiting_for_frame_releases_it_without_inference():
	async def main():
		gate = asyncio.Event()
		source = FakeSource(gate=gate)
		model = FakeModel()
		results = []
		pump = _pump(source, model, results)
		pump.start()
		await asyncio.sleep(0.01)
		pump.stop()
		gate.set()
		await pump.wait()
		return source, model, pump, results

	source, model, pump, results = _run(main())
	assert model.calls == 0
	assert results == []
	assert pump.fault is None
	_assert_released_once(source)


def test_stop_during_inference_finishes_current_iteration_only():
	async def main():
		gate = asyncio.Event()
		source = FakeSource()
		model = FakeModel(script=[[make_pose(("nose", 1, 1, 0.9))]], gate=gate)
		results, refreshes = [], []
		pump = _pump(source, model, results, refreshes)
		pump.start()
		await model.started.wait()
		pump.stop()
		assert pump.state is PumpState.STOPPED
		gate.set()
		await pump.wait()
		return source, model, pump, results, refreshes

	source, model, pump, results, refreshes = _run(main())
	assert model.calls == 1
	assert len(results) == 1
	assert refreshes == []
	assert pump.fault is None
	_assert_released_once(source)


def test_no_inference_starts_after_stop():
	async def main():
		source = FakeSource()
		model = FakeModel()
		results = []
		pump = None

		def on_result(r):
			results.append(r)
			if len(results) == 3:
				pump.stop()

		pump = FramePump(source, model, on_result=on_result, clock=FrameClock(0))
		pump.start()
		await pump.wait()
		return source, model

	source, model = _run(main())
	assert model.calls == 3
	_assert_released_once(source)


def test_restart_after_stop_is_rejected():
	async def main():
		pump = _pump(FakeSource(n_frames=1), FakeModel())
		pump.start()
		pump.stop()
		pump.stop()
		await pump.wait()
		with pytest.raises(PumpStoppedError):
			pump.start()
		return pump

	pump = _run(main())
	assert pump.state is PumpState.STOPPED


def test_status_counters():
	async def main():
		pose = make_pose(("nose", 1, 1, 0.9))
		pump = _pump(FakeSource(n_frames=3), FakeModel(script=[[pose], [], [pose]]))
		assert pump.get_status()["state"] == "idle"
		pump.start()
		await pump.wait()
		return pump.get_status()

	st = _run(main())
	assert st["frames"] == 3
	assert st["frames_with_pose"] == 2
	assert st["failures"] == 0
	assert st["last_latency_ms"] is not None
	assert st["in_flight"] is False


class _FakeTime:
	def __init__(self, *values):
		self.values = list(values)

	def __call__(self):
		return self.values.pop(0)


def test_frame_clock_aligns_to_refresh_boundaries():
	clock = FrameClock(10.0, clock=_FakeTime(0.0, 0.15, 0.55))
	assert clock.interval == pytest.approx(0.1)
	assert clock.delay() == pytest.approx(0.1)
	assert clock.delay() == pytest.approx(0.05)
	# Late by several ticks: skip to the next boundary instead of bursting.
	assert clock.delay() == pytest.approx(0.05)


def test_frame_clock_unpaced():
	clock = FrameClock(0)
	assert clock.delay() == 0.0
	asyncio.run(clock.tick())


def test_publish_failure_is_recorded_and_stops_pump():
	def broken_refresh():
		raise ValueError("encode failed")

	async def main():
		source = FakeSource()
		results = []
		pump = FramePump(source, FakeModel(), on_result=results.append, on_refresh=broken_refresh, clock=FrameClock(0))
		pump.start()
		await pump.wait()
		return source, pump, results

	source, pump, results = _run(main())
	assert pump.state is PumpState.STOPPED
	assert isinstance(pump.fault, ValueError)
	assert pump.get_status()["fault"] == "ValueError: encode failed"
	assert len(results) == 1
	_assert_released_once(source)


def test_start_without_running_loop_leaves_pump_idle():
	pump = _pump(FakeSource(n_frames=1), FakeModel())
	with pytest.raises(RuntimeError):
		pump.start()
	assert pump.state is PumpState.IDLE

	async def main():
		pump.start()
		await pump.wait()

	_run(main())
	assert pump.state is PumpState.STOPPED
	assert pump.get_status()["frames"] == 1
