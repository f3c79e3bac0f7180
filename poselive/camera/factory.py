from __future__ import annotations

import logging
from typing import Optional

from poselive.camera.base import FrameSource
from poselive.config import AppConfig, get_config
from poselive.geometry import DisplayGeometry

logger = logging.getLogger(__name__)


def get_frame_source(geometry: DisplayGeometry, cfg: Optional[AppConfig] = None, *, backend_override: Optional[str] = None) -> FrameSource:
	cfg = cfg or get_config()
	backend = (backend_override or cfg.camera.backend or "opencv").strip().lower()

	if backend in ("picamera2", "pc2"):
		from poselive.camera.picamera2_source import Picamera2FrameSource

		return Picamera2FrameSource(
			geometry,
			camera_index=cfg.camera.back_index,
			initial_facing=cfg.camera.initial_facing,
			capture_size=cfg.camera.capture_size,
		)

	if backend not in ("opencv", "cv2", "webcam"):
		logger.warning("unknown camera backend %r; falling back to opencv", backend)

	from poselive.camera.opencv_source import OpenCVFrameSource

	return OpenCVFrameSource(
		geometry,
		front_index=cfg.camera.front_index,
		back_index=cfg.camera.back_index,
		initial_facing=cfg.camera.initial_facing,
		capture_size=cfg.camera.capture_size,
	)
