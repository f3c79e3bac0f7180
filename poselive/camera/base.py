from __future__ import annotations

import asyncio
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

import cv2
import numpy as np

from poselive.errors import FrameReleaseError, FrameSourceError, PermissionDeniedError
from poselive.geometry import DisplayGeometry

logger = logging.getLogger(__name__)

FACINGS = ("front", "back")

_ROTATIONS = {
	90: cv2.ROTATE_90_CLOCKWISE,
	180: cv2.ROTATE_180,
	270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


class Frame:
	"""
	One tensor-sized RGB image handed to the pose model.

	The pump owns a Frame for exactly one iteration and must call release()
	exactly once; a second release raises FrameReleaseError.
	"""

	__slots__ = ("_data", "width", "height", "frame_idx", "t_host", "facing", "_released", "_on_release")

	def __init__(
		self,
		data: np.ndarray,
		frame_idx: int = 0,
		t_host: Optional[float] = None,
		facing: str = "front",
		on_release: Optional[Callable[["Frame"], None]] = None,
	) -> None:
		self._data: Optional[np.ndarray] = data
		self.height = int(data.shape[0])
		self.width = int(data.shape[1])
		self.frame_idx = int(frame_idx)
		self.t_host = t_host
		self.facing = facing
		self._released = False
		self._on_release = on_release

	@property
	def data(self) -> np.ndarray:
		if self._data is None:
			raise FrameReleaseError(f"frame {self.frame_idx} already released")
		return self._data

	@property
	def released(self) -> bool:
		return self._released

	def release(self) -> None:
		if self._released:
			raise FrameReleaseError(f"frame {self.frame_idx} released twice")
		self._released = True
		self._data = None
		if self._on_release is not None:
			self._on_release(self)

	def __repr__(self) -> str:
		return f"Frame(idx={self.frame_idx}, {self.width}x{self.height}, facing={self.facing!r}, released={self._released})"


def prepare_tensor(bgr: np.ndarray, width: int, height: int, rotation_degrees: int = 0) -> np.ndarray:
	"""
	Rotate (upstream reorientation), resize and convert a BGR capture to the
	RGB tensor the model consumes.
	"""
	img = bgr
	rot = _ROTATIONS.get(int(rotation_degrees) % 360)
	if rot is not None:
		img = cv2.rotate(img, rot)
	if img.shape[1] != width or img.shape[0] != height:
		img = cv2.resize(img, (int(width), int(height)), interpolation=cv2.INTER_LINEAR)
	return cv2.cvtColor(img, cv2.COLOR_BGR2RGB)


class FrameSource(ABC):
	@abstractmethod
	def name(self) -> str: ...

	@abstractmethod
	def start(self) -> None: ...

	@abstractmethod
	def stop(self) -> None: ...

	@property
	@abstractmethod
	def facing(self) -> str: ...

	@abstractmethod
	def toggle_facing(self) -> str:
		"""Swap front/back camera. Takes effect on the next acquisition."""
		...

	@abstractmethod
	async def next_frame(self) -> Frame:
		"""Suspend until a new frame is available. Raises FrameSourceError when the source is down."""
		...

	@abstractmethod
	def get_latest_preview(self) -> tuple[Optional[np.ndarray], Optional[float]]:
		"""Latest full-size BGR capture and its host time."""
		...

	@abstractmethod
	def get_status(self) -> Dict[str, Any]: ...

	async def wait_ready(self, timeout: float) -> None:
		"""
		Wait for the first captured image. Used as the camera-permission step
		of startup: a device that cannot be opened raises PermissionDeniedError.
		"""
		deadline = time.monotonic() + max(0.0, float(timeout))
		while True:
			st = self.get_status()
			if st.get("has_frame"):
				return
			if st.get("error"):
				raise PermissionDeniedError(f"camera {self.name()} unavailable: {st['error']}")
			if not st.get("running"):
				raise PermissionDeniedError(f"camera {self.name()} is not running")
			if time.monotonic() >= deadline:
				raise PermissionDeniedError(f"camera {self.name()} produced no frame within {timeout:.1f}s")
			await asyncio.sleep(0.05)


class ThreadedFrameSource(FrameSource):
	"""
	Shared plumbing for sources whose device is driven from a capture thread.

	Subclasses implement _run_loop(), which must call _publish(bgr) for each
	captured image and exit once _is_running() turns False.
	"""

	def __init__(self, geometry: DisplayGeometry, label: str, initial_facing: str = "front") -> None:
		self._lock = threading.Lock()
		self._geometry = geometry
		self._label = str(label)
		self._facing = initial_facing if initial_facing in FACINGS else "front"
		self._facing_changed = False

		self._running = False
		self._last_error: Optional[str] = None
		self._thread: Optional[threading.Thread] = None

		# latest capture
		self._latest: Optional[np.ndarray] = None
		self._latest_t_host: Optional[float] = None
		self._latest_facing: str = self._facing
		self._seq = 0
		self._delivered_seq = 0

		self._frames_out = 0
		self._frames_released = 0

	def name(self) -> str:
		return self._label

	@property
	def facing(self) -> str:
		with self._lock:
			return self._facing

	def toggle_facing(self) -> str:
		with self._lock:
			self._facing = "back" if self._facing == "front" else "front"
			self._facing_changed = True
			facing = self._facing
		logger.info("[%s] camera facing -> %s", self._label, facing)
		return facing

	def start(self) -> None:
		with self._lock:
			if self._running:
				return
			self._running = True
			self._last_error = None

		t = threading.Thread(target=self._run_loop_guarded, name=f"{self._label}-capture", daemon=True)
		self._thread = t
		t.start()

	def stop(self) -> None:
		with self._lock:
			self._running = False
		t = self._thread
		if t and t.is_alive():
			t.join(timeout=2.0)
		self._thread = None

	def get_status(self) -> Dict[str, Any]:
		with self._lock:
			return {
				"label": self._label,
				"running": bool(self._running),
				"facing": self._facing,
				"has_frame": self._latest is not None,
				"t_last_frame": self._latest_t_host,
				"frames_captured": int(self._seq),
				"frames_out": int(self._frames_out),
				"frames_released": int(self._frames_released),
				"tensor_size": [int(self._geometry.tensor_width), int(self._geometry.tensor_height)],
				"error": self._last_error,
			}

	def get_latest_preview(self) -> tuple[Optional[np.ndarray], Optional[float]]:
		with self._lock:
			return self._latest, self._latest_t_host

	async def next_frame(self) -> Frame:
		while True:
			with self._lock:
				running = self._running
				err = self._last_error
				fresh = self._latest is not None and self._seq != self._delivered_seq
				if fresh:
					bgr = self._latest
					t_host = self._latest_t_host
					facing = self._latest_facing
					seq = self._seq
					self._delivered_seq = seq
			if not running:
				raise FrameSourceError(f"{self._label}: source stopped" + (f" ({err})" if err else ""))
			if fresh:
				break
			await asyncio.sleep(0.005)

		g = self._geometry
		data = prepare_tensor(bgr, g.tensor_width, g.tensor_height, g.rotation_degrees)
		with self._lock:
			self._frames_out += 1
		return Frame(data, frame_idx=seq, t_host=t_host, facing=facing, on_release=self._on_frame_released)

	def _on_frame_released(self, frame: Frame) -> None:
		with self._lock:
			self._frames_released += 1

	def _is_running(self) -> bool:
		with self._lock:
			return bool(self._running)

	def _take_facing_change(self) -> Optional[str]:
		with self._lock:
			if not self._facing_changed:
				return None
			self._facing_changed = False
			return self._facing

	def _publish(self, bgr: np.ndarray, facing: str) -> None:
		now = time.time()
		with self._lock:
			self._latest = bgr
			self._latest_t_host = now
			self._latest_facing = facing
			self._seq += 1

	def _fail(self, message: str) -> None:
		logger.error("[%s] %s", self._label, message)
		with self._lock:
			self._last_error = message
			self._running = False

	def _run_loop_guarded(self) -> None:
		try:
			self._run_loop()
		except Exception as e:
			self._fail(f"capture loop error: {e!r}")

	@abstractmethod
	def _run_loop(self) -> None: ...
