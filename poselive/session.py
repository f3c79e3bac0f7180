from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from poselive.camera.base import FrameSource
from poselive.config import AppConfig
from poselive.geometry import DisplayGeometry
from poselive.overlay import PreviewRenderer, render_svg
from poselive.pose.base import PoseModel
from poselive.pose.mapper import OverlayPoint, OverlayStyle, map_poses, resolve_mirror
from poselive.pose.types import PoseResult
from poselive.pump import FrameClock, FramePump

logger = logging.getLogger(__name__)


class OverlaySession:
	"""
	Wires one frame source and one pose model into a running pump.

	Each published PoseResult is mapped to display space (first pose only)
	and kept as the latest overlay; each refresh composites it onto the
	latest camera preview.
	"""

	def __init__(
		self,
		cfg: AppConfig,
		geometry: DisplayGeometry,
		source: FrameSource,
		model: PoseModel,
		broadcast: Optional[Callable[[Dict[str, Any]], None]] = None,
		clock: Optional[FrameClock] = None,
	) -> None:
		self.cfg = cfg
		self.geometry = geometry
		self.source = source
		self.model = model
		self.style = OverlayStyle.from_config(cfg.overlay)
		self.renderer = PreviewRenderer(geometry, self.style, jpeg_quality=cfg.overlay.jpeg_quality)
		self._broadcast = broadcast

		self._lock = threading.Lock()
		self._points: List[OverlayPoint] = []
		self._mirror = False
		self._result: Optional[PoseResult] = None

		self.pump = FramePump(
			source,
			model,
			on_result=self._on_result,
			on_refresh=self._on_refresh,
			clock=clock or FrameClock(cfg.pump.refresh_hz),
			slow_inference_ms=cfg.pump.slow_inference_ms,
		)

	def start(self) -> None:
		self.pump.start()

	async def close(self, timeout: float = 5.0) -> None:
		"""
		Stop the pump, then release the camera and dispose the model.

		If the pump is still inside an estimate after `timeout` seconds, the
		model is disposed on a worker thread once that estimate returns, so
		the event loop is never blocked on it.
		"""
		self.pump.stop()
		loop = asyncio.get_running_loop()
		# Stopping the source unblocks a pump waiting on next_frame().
		await loop.run_in_executor(None, self.source.stop)
		stalled = False
		try:
			await asyncio.wait_for(self.pump.wait(), timeout=timeout)
		except asyncio.TimeoutError:
			stalled = True
			logger.error("frame pump did not exit within %.1fs (inference stalled?)", timeout)
		finally:
			if stalled:
				loop.run_in_executor(None, self.model.dispose)
			else:
				self.model.dispose()

	def mirror_for(self, facing: Optional[str]) -> bool:
		return resolve_mirror(self.cfg.overlay.mirror, facing or self.source.facing, self.geometry.platform)

	def _on_result(self, result: PoseResult) -> None:
		mirror = self.mirror_for(result.facing)
		points = map_poses(result.poses, self.geometry, mirror, self.cfg.overlay.min_keypoint_score)
		with self._lock:
			self._points = points
			self._mirror = mirror
			self._result = result
		if self._broadcast is not None:
			self._broadcast(self._overlay_message(points, mirror, result))

	def _on_refresh(self) -> None:
		bgr, _t = self.source.get_latest_preview()
		with self._lock:
			points = list(self._points)
			mirror = self._mirror
		self.renderer.refresh(bgr, points, mirror)

	def _overlay_message(self, points: List[OverlayPoint], mirror: bool, result: Optional[PoseResult]) -> Dict[str, Any]:
		return {
			"type": "overlay",
			"t": time.time(),
			"frame_idx": result.frame_idx if result else None,
			"latency_ms": result.latency_ms if result else None,
			"mirror": bool(mirror),
			"facing": result.facing if result else self.source.facing,
			"points": [p.as_dict() for p in points],
		}

	def latest_overlay(self) -> Dict[str, Any]:
		with self._lock:
			points = list(self._points)
			mirror = self._mirror
			result = self._result
		msg = self._overlay_message(points, mirror, result)
		msg["poses"] = len(result.poses) if result else 0
		msg["error"] = result.error if result else None
		msg["display_size"] = [self.geometry.display_width, self.geometry.display_height]
		return msg

	def latest_svg(self) -> str:
		with self._lock:
			points = list(self._points)
		return render_svg(points, self.geometry, self.style)
