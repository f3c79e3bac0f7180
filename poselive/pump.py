"""
Frame pump: the single driver of the acquire -> infer -> render cycle.

One iteration pulls a frame, awaits the model, releases the frame, publishes
the result and then waits for the next display tick. Iterations never overlap,
so at most one frame is ever in flight.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from poselive.camera.base import Frame, FrameSource
from poselive.errors import FatalModelError, FrameReleaseError, FrameSourceError, PumpStoppedError
from poselive.pose.base import PoseModel
from poselive.pose.types import Pose, PoseResult

logger = logging.getLogger(__name__)


class PumpState(str, enum.Enum):
	IDLE = "idle"
	RUNNING = "running"
	STOPPED = "stopped"


class FrameClock:
	"""
	Display-refresh-aligned tick source.

	tick() sleeps until the next 1/refresh_hz boundary on the monotonic clock.
	A late caller skips the missed boundaries instead of bursting to catch up.
	"""

	def __init__(self, refresh_hz: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
		self._interval = 1.0 / float(refresh_hz) if refresh_hz and refresh_hz > 0 else 0.0
		self._clock = clock
		self._next: Optional[float] = None

	@property
	def interval(self) -> float:
		return self._interval

	def delay(self) -> float:
		"""Seconds until the next tick boundary, advancing the schedule."""
		if self._interval <= 0.0:
			return 0.0
		now = self._clock()
		if self._next is None:
			self._next = now + self._interval
		elif self._next <= now:
			missed = int((now - self._next) / self._interval) + 1
			self._next += missed * self._interval
		wait = self._next - now
		self._next += self._interval
		return max(0.0, wait)

	async def tick(self) -> None:
		await asyncio.sleep(self.delay())


ResultCallback = Callable[[PoseResult], None]
RefreshCallback = Callable[[], None]


class FramePump:
	def __init__(
		self,
		source: FrameSource,
		model: PoseModel,
		on_result: Optional[ResultCallback] = None,
		on_refresh: Optional[RefreshCallback] = None,
		clock: Optional[FrameClock] = None,
		slow_inference_ms: float = 250.0,
	) -> None:
		self._source = source
		self._model = model
		self._on_result = on_result
		self._on_refresh = on_refresh
		self._clock = clock or FrameClock()
		self._slow_ms = float(slow_inference_ms)

		self._lock = threading.Lock()
		self._state = PumpState.IDLE
		self._task: Optional[asyncio.Task] = None
		self._fault: Optional[BaseException] = None
		self._in_flight = False

		self._frames = 0
		self._frames_with_pose = 0
		self._failures = 0
		self._last_latency_ms: Optional[float] = None
		self._fps: Optional[float] = None
		self._last_tick_t: Optional[float] = None

	@property
	def state(self) -> PumpState:
		with self._lock:
			return self._state

	@property
	def fault(self) -> Optional[BaseException]:
		with self._lock:
			return self._fault

	def is_running(self) -> bool:
		return self.state is PumpState.RUNNING

	def start(self) -> None:
		"""Start the loop on the running event loop. Idempotent while running."""
		loop = asyncio.get_running_loop()
		with self._lock:
			if self._state is PumpState.RUNNING:
				return
			if self._state is PumpState.STOPPED:
				raise PumpStoppedError("pump already stopped; create a new pump")
			self._state = PumpState.RUNNING
		self._task = loop.create_task(self._run(), name="frame-pump")
		logger.info("frame pump started (source=%s, model=%s)", self._source.name(), self._model.name())

	def stop(self) -> None:
		"""
		Request cancellation. Does not block and does not interrupt an
		in-flight estimate; no iteration is scheduled after the current one.
		"""
		with self._lock:
			if self._state is PumpState.STOPPED:
				return
			self._state = PumpState.STOPPED
		logger.info("frame pump stop requested")

	async def wait(self) -> None:
		"""Wait until the loop task has finished."""
		task = self._task
		if task is not None:
			await asyncio.shield(task)

	def get_status(self) -> Dict[str, Any]:
		with self._lock:
			fault = self._fault
			return {
				"state": self._state.value,
				"in_flight": bool(self._in_flight),
				"frames": int(self._frames),
				"frames_with_pose": int(self._frames_with_pose),
				"failures": int(self._failures),
				"last_latency_ms": self._last_latency_ms,
				"fps": self._fps,
				"fault": f"{type(fault).__name__}: {fault}" if fault is not None else None,
			}

	def _stopped(self) -> bool:
		with self._lock:
			return self._state is PumpState.STOPPED

	def _halt(self, exc: BaseException) -> None:
		with self._lock:
			if self._fault is None:
				self._fault = exc
			self._state = PumpState.STOPPED

	async def _run(self) -> None:
		try:
			while not self._stopped():
				if not await self.step():
					break
				if self._stopped():
					break
				await self._clock.tick()
		except Exception as e:
			logger.exception("frame pump crashed")
			self._halt(e)
		finally:
			with self._lock:
				self._state = PumpState.STOPPED
				self._in_flight = False
			logger.info("frame pump exited")

	async def step(self) -> bool:
		"""
		Run one acquire -> infer -> release -> publish -> refresh iteration.
		Returns False when the loop must end.
		"""
		try:
			frame = await self._source.next_frame()
		except FrameSourceError as e:
			if self._stopped():
				# Source shut down as part of teardown.
				return False
			logger.error("frame source failed: %s", e)
			self._halt(e)
			return False

		with self._lock:
			self._in_flight = True

		if self._stopped():
			# Stopped while waiting for the frame: release it and do no more work.
			self._release(frame)
			return False

		poses: List[Pose] = []
		error: Optional[str] = None
		fatal: Optional[BaseException] = None
		t0 = time.monotonic()
		try:
			try:
				poses = list(await self._model.estimate(frame, int(time.time() * 1000)))
			except FatalModelError as e:
				logger.error("pose model unusable: %s", e)
				fatal = e
			except Exception as e:
				logger.warning("inference failed on frame %d: %r", frame.frame_idx, e)
				error = repr(e)
		finally:
			released = self._release(frame)

		latency_ms = (time.monotonic() - t0) * 1000.0
		if latency_ms > self._slow_ms:
			logger.warning("slow inference: %.1f ms on frame %d", latency_ms, frame.frame_idx)

		if fatal is not None:
			self._halt(fatal)
			return False
		if not released:
			return False

		self._record(poses, error, latency_ms)
		result = PoseResult(
			poses=tuple(poses),
			frame_idx=frame.frame_idx,
			t_host=frame.t_host,
			latency_ms=latency_ms,
			error=error,
			facing=frame.facing,
		)
		try:
			if self._on_result is not None:
				self._on_result(result)
			if self._stopped():
				return False
			if self._on_refresh is not None:
				self._on_refresh()
		except Exception as e:
			logger.error("publishing frame %d failed: %r", frame.frame_idx, e)
			self._halt(e)
			return False
		return True

	def _release(self, frame: Frame) -> bool:
		try:
			frame.release()
		except Exception as e:
			logger.error("frame %d release failed: %r", frame.frame_idx, e)
			self._halt(e if isinstance(e, FrameReleaseError) else FrameReleaseError(repr(e)))
			return False
		finally:
			with self._lock:
				self._in_flight = False
		return True

	def _record(self, poses: List[Pose], error: Optional[str], latency_ms: float) -> None:
		now = time.monotonic()
		with self._lock:
			self._frames += 1
			if poses:
				self._frames_with_pose += 1
			if error is not None:
				self._failures += 1
			self._last_latency_ms = latency_ms
			if self._last_tick_t is not None:
				dt = now - self._last_tick_t
				if dt > 0.0:
					inst = 1.0 / dt
					self._fps = inst if self._fps is None else (0.9 * self._fps + 0.1 * inst)
			self._last_tick_t = now
