from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, List, Optional

import numpy as np

from poselive.camera.base import Frame, FrameSource
from poselive.errors import FrameSourceError
from poselive.pose.base import PoseModel
from poselive.pose.types import Keypoint, Pose


class FakeSource(FrameSource):
	"""Hands out blank tensor-sized frames; counts release() calls per frame."""

	def __init__(self, n_frames: Optional[int] = None, facing: str = "front", size=(180, 240), gate: Optional[asyncio.Event] = None, release_error: Optional[Exception] = None) -> None:
		self._n = n_frames
		self._facing = facing
		self._size = size
		self._gate = gate
		self._release_error = release_error
		self.frames: List[Frame] = []
		self.release_calls: Dict[int, int] = {}
		self.stopped = False
		self.started = False

	def name(self) -> str:
		return "fake"

	def start(self) -> None:
		self.started = True

	def stop(self) -> None:
		self.stopped = True

	@property
	def facing(self) -> str:
		return self._facing

	def toggle_facing(self) -> str:
		self._facing = "back" if self._facing == "front" else "front"
		return self._facing

	def _on_release(self, frame: Frame) -> None:
		self.release_calls[frame.frame_idx] = self.release_calls.get(frame.frame_idx, 0) + 1
		if self._release_error is not None:
			raise self._release_error

	async def next_frame(self) -> Frame:
		if self._gate is not None:
			await self._gate.wait()
		else:
			await asyncio.sleep(0)
		if self.stopped:
			raise FrameSourceError("fake source stopped")
		if self._n is not None and len(self.frames) >= self._n:
			raise FrameSourceError("fake source exhausted")
		w, h = self._size
		frame = Frame(
			np.zeros((h, w, 3), dtype=np.uint8),
			frame_idx=len(self.frames) + 1,
			t_host=time.time(),
			facing=self._facing,
			on_release=self._on_release,
		)
		self.frames.append(frame)
		return frame

	def get_latest_preview(self):
		w, h = self._size
		return np.zeros((h, w, 3), dtype=np.uint8), time.time()

	def get_status(self) -> Dict[str, Any]:
		return {
			"label": "fake",
			"running": not self.stopped,
			"facing": self._facing,
			"has_frame": True,
			"frames_captured": len(self.frames),
			"frames_out": len(self.frames),
			"frames_released": sum(self.release_calls.values()),
			"error": None,
		}


class FakeModel(PoseModel):
	"""
	Scripted model: each estimate() pops the next item; a list is returned as
	poses, an exception instance is raised. Tracks overlapping calls.
	"""

	def __init__(self, script: Optional[list] = None, gate: Optional[asyncio.Event] = None) -> None:
		self.script = list(script or [])
		self.gate = gate
		self.calls = 0
		self.active = 0
		self.max_active = 0
		self.started = asyncio.Event() if gate is not None else None
		self.disposed = False
		self.saw_released_frame = False

	def name(self) -> str:
		return "fake_model"

	async def estimate(self, frame: Frame, timestamp_ms: Optional[int] = None) -> List[Pose]:
		self.calls += 1
		self.active += 1
		self.max_active = max(self.max_active, self.active)
		try:
			if self.started is not None:
				self.started.set()
			if self.gate is not None:
				await self.gate.wait()
			else:
				await asyncio.sleep(0)
			if frame.released:
				self.saw_released_frame = True
			item = self.script.pop(0) if self.script else []
			if isinstance(item, BaseException):
				raise item
			return item
		finally:
			self.active -= 1

	def dispose(self) -> None:
		self.disposed = True


def make_pose(*points: tuple) -> Pose:
	"""make_pose(("nose", x, y, score), ...)"""
	return Pose(keypoints=tuple(Keypoint(name=n, x=x, y=y, score=s) for n, x, y, s in points))


