from __future__ import annotations

import sys
import time
from typing import Any, Optional

from poselive.camera.base import ThreadedFrameSource
from poselive.geometry import DisplayGeometry


class Picamera2FrameSource(ThreadedFrameSource):
	"""
	Raspberry Pi CSI camera source (Picamera2/libcamera).

	Notes:
	- `python3-picamera2` is a system package on Raspberry Pi OS (apt).
	- There is a single sensor, so toggling only flips the facing label that
	  drives mirroring.
	"""

	def __init__(
		self,
		geometry: DisplayGeometry,
		camera_index: Optional[int] = None,
		initial_facing: str = "back",
		capture_size: Optional[list[int]] = None,
	) -> None:
		super().__init__(geometry, label="picamera2", initial_facing=initial_facing)
		self._camera_index: Optional[int] = int(camera_index) if camera_index is not None else None
		self._capture_size = tuple(capture_size) if capture_size else (640, 480)

	def _run_loop(self) -> None:
		try:
			from picamera2 import Picamera2  # type: ignore
		except Exception as e:
			self._fail(
				f"Picamera2 import failed: {e!r}. "
				f"Python={sys.executable!r}. "
				"Recreate the venv with `python3 -m venv --system-site-packages <venv>` "
				"so the apt-installed `python3-picamera2` is visible."
			)
			return

		try:
			picam2 = Picamera2() if self._camera_index is None else Picamera2(camera_num=int(self._camera_index))
		except Exception as e:
			self._fail(f"Picamera2 init failed: {e!r}")
			return

		try:
			w, h = self._capture_size
			# RGB888 is laid out as BGR in memory, which matches OpenCV captures.
			cfg = picam2.create_video_configuration(main={"size": (int(w), int(h)), "format": "RGB888"})
			picam2.configure(cfg)
			picam2.start()
		except Exception as e:
			self._fail(f"Picamera2 configure/start failed: {e!r}")
			try:
				picam2.close()
			except Exception:
				pass
			return

		try:
			while self._is_running():
				self._take_facing_change()
				arr: Any = picam2.capture_array("main")
				if arr is None:
					time.sleep(0.01)
					continue
				self._publish(arr, self.facing)
		finally:
			try:
				picam2.stop()
			except Exception:
				pass
			try:
				picam2.close()
			except Exception:
				pass
