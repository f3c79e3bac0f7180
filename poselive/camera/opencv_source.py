from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import cv2

from poselive.camera.base import ThreadedFrameSource
from poselive.geometry import DisplayGeometry

logger = logging.getLogger(__name__)


class OpenCVFrameSource(ThreadedFrameSource):
	"""
	USB/laptop camera source backed by cv2.VideoCapture.

	Front and back cameras are separate device indices; toggling the facing
	re-opens the capture on the capture thread before its next read, so an
	in-flight iteration keeps the frame it already has.
	"""

	def __init__(
		self,
		geometry: DisplayGeometry,
		front_index: int = 0,
		back_index: int = 1,
		initial_facing: str = "front",
		capture_size: Optional[list[int]] = None,
	) -> None:
		super().__init__(geometry, label="opencv", initial_facing=initial_facing)
		self._indices = {"front": int(front_index), "back": int(back_index)}
		self._capture_size = tuple(capture_size) if capture_size else None

	def get_status(self) -> Dict[str, Any]:
		st = super().get_status()
		st["device_index"] = self._indices.get(st["facing"])
		st["capture_size"] = list(self._capture_size) if self._capture_size else None
		return st

	def _open(self, facing: str) -> "cv2.VideoCapture":
		idx = self._indices[facing]
		cap = cv2.VideoCapture(idx)
		if not cap.isOpened():
			cap.release()
			raise RuntimeError(f"cannot open camera index {idx} ({facing}); check camera permission")
		if self._capture_size:
			w, h = self._capture_size
			cap.set(cv2.CAP_PROP_FRAME_WIDTH, int(w))
			cap.set(cv2.CAP_PROP_FRAME_HEIGHT, int(h))
		logger.info("[opencv] opened camera index %d (%s)", idx, facing)
		return cap

	def _run_loop(self) -> None:
		facing = self.facing
		self._take_facing_change()
		try:
			cap = self._open(facing)
		except RuntimeError as e:
			self._fail(str(e))
			return

		misses = 0
		try:
			while self._is_running():
				changed = self._take_facing_change()
				if changed is not None and changed != facing:
					cap.release()
					facing = changed
					try:
						cap = self._open(facing)
					except RuntimeError as e:
						self._fail(str(e))
						return

				ok, bgr = cap.read()
				if not ok or bgr is None:
					misses += 1
					# A device that keeps failing reads has gone away.
					if misses >= 100:
						self._fail(f"camera index {self._indices[facing]} stopped delivering frames")
						return
					time.sleep(0.01)
					continue
				misses = 0
				self._publish(bgr, facing)
		finally:
			cap.release()
