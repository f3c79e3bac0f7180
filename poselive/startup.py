"""
Startup sequence: camera permission -> inference backend -> pose model.

Every failure here is fatal for rendering; the caller keeps the StartupError
and shows it with a retry action instead of starting the pump.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from poselive.camera.base import FrameSource
from poselive.camera.factory import get_frame_source
from poselive.config import AppConfig, ModelConfig
from poselive.errors import ModelLoadError, StartupError
from poselive.geometry import DisplayGeometry
from poselive.pose.base import PoseModel

logger = logging.getLogger(__name__)


def create_pose_model(cfg: ModelConfig) -> PoseModel:
	backend = (cfg.backend or "mediapipe").strip().lower()
	if backend != "mediapipe":
		raise ModelLoadError(f"unsupported pose model backend {backend!r}")

	from poselive.pose.mediapipe_provider import MediaPipePoseModel, import_backend

	mp = import_backend()
	return MediaPipePoseModel(
		variant=cfg.variant,
		enable_smoothing=cfg.enable_smoothing,
		min_detection_confidence=cfg.min_detection_confidence,
		min_tracking_confidence=cfg.min_tracking_confidence,
		mp_module=mp,
	)


async def run_startup(
	cfg: AppConfig,
	geometry: DisplayGeometry,
	source_factory: Optional[Callable[[DisplayGeometry, AppConfig], FrameSource]] = None,
	model_factory: Optional[Callable[[ModelConfig], PoseModel]] = None,
) -> tuple[FrameSource, PoseModel]:
	"""
	Bring up the camera and the model. Raises a StartupError subclass
	(PermissionDeniedError, BackendInitError, ModelLoadError) on failure and
	leaves nothing running behind.
	"""
	source_factory = source_factory or get_frame_source
	model_factory = model_factory or create_pose_model
	loop = asyncio.get_running_loop()

	source = source_factory(geometry, cfg)
	logger.info("startup: opening camera (%s)", source.name())
	source.start()
	try:
		await source.wait_ready(cfg.camera.open_timeout_seconds)
	except StartupError:
		await loop.run_in_executor(None, source.stop)
		raise

	logger.info("startup: loading pose model (%s/%s)", cfg.model.backend, cfg.model.variant)
	try:
		model = await loop.run_in_executor(None, model_factory, cfg.model)
	except StartupError:
		await loop.run_in_executor(None, source.stop)
		raise
	except Exception as e:
		await loop.run_in_executor(None, source.stop)
		raise ModelLoadError(f"pose model construction failed: {e!r}") from e

	logger.info("startup: ready (model=%s)", model.name())
	return source, model
