from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, List, Optional

from poselive.errors import BackendInitError, ModelLoadError, ModelUnavailableError
from poselive.pose.base import PoseModel
from poselive.pose.types import Keypoint, Pose

logger = logging.getLogger(__name__)


COCO17_NAMES = [
	"nose",
	"left_eye",
	"right_eye",
	"left_ear",
	"right_ear",
	"left_shoulder",
	"right_shoulder",
	"left_elbow",
	"right_elbow",
	"left_wrist",
	"right_wrist",
	"left_hip",
	"right_hip",
	"left_knee",
	"right_knee",
	"left_ankle",
	"right_ankle",
]

# MediaPipe PoseLandmark indices for the COCO-17 names above.
MEDIAPIPE_INDEX = {
	"nose": 0,
	"left_eye": 2,
	"right_eye": 5,
	"left_ear": 7,
	"right_ear": 8,
	"left_shoulder": 11,
	"right_shoulder": 12,
	"left_elbow": 13,
	"right_elbow": 14,
	"left_wrist": 15,
	"right_wrist": 16,
	"left_hip": 23,
	"right_hip": 24,
	"left_knee": 25,
	"right_knee": 26,
	"left_ankle": 27,
	"right_ankle": 28,
}

MODEL_COMPLEXITY = {"lite": 0, "full": 1, "heavy": 2}


def import_backend() -> Any:
	"""Initialize the inference backend (the mediapipe runtime)."""
	try:
		import mediapipe as mp  # type: ignore
	except Exception as e:
		raise BackendInitError(f"MediaPipe is not available: {e!r}. Install it with: pip install mediapipe") from e
	if not hasattr(getattr(mp, "solutions", None), "pose"):
		raise BackendInitError(f"mediapipe {getattr(mp, '__version__', '?')} has no solutions.pose API")
	return mp


def landmarks_to_pose(landmarks: Any, width: int, height: int) -> Pose:
	"""
	Convert normalized MediaPipe landmarks to a COCO-17 Pose in pixel space.
	`visibility` is used as the keypoint score.
	"""
	keypoints: List[Keypoint] = []
	for name in COCO17_NAMES:
		idx = MEDIAPIPE_INDEX[name]
		if idx >= len(landmarks):
			continue
		p = landmarks[idx]
		keypoints.append(
			Keypoint(
				name=name,
				x=float(p.x) * float(width),
				y=float(p.y) * float(height),
				score=float(getattr(p, "visibility", 0.0) or 0.0),
			)
		)
	scores = [kp.score for kp in keypoints if kp.score is not None]
	return Pose(keypoints=tuple(keypoints), score=(sum(scores) / len(scores)) if scores else None)


class MediaPipePoseModel(PoseModel):
	"""
	Single-person MediaPipe Pose model.

	Notes:
	- variant picks model_complexity (lite=0, full=1, heavy=2).
	- enable_smoothing maps to smooth_landmarks; that temporal state lives in
	  the graph and is not managed here.
	- process() is blocking, so it runs in the default executor.
	"""

	def __init__(
		self,
		variant: str = "lite",
		enable_smoothing: bool = True,
		min_detection_confidence: float = 0.5,
		min_tracking_confidence: float = 0.5,
		mp_module: Any = None,
	) -> None:
		mp = mp_module if mp_module is not None else import_backend()
		self._variant = variant if variant in MODEL_COMPLEXITY else "lite"
		self._lock = threading.Lock()
		try:
			self._pose = mp.solutions.pose.Pose(
				static_image_mode=False,
				model_complexity=MODEL_COMPLEXITY[self._variant],
				smooth_landmarks=bool(enable_smoothing),
				enable_segmentation=False,
				min_detection_confidence=float(min_detection_confidence),
				min_tracking_confidence=float(min_tracking_confidence),
			)
		except Exception as e:
			raise ModelLoadError(f"MediaPipe Pose ({self._variant}) construction failed: {e!r}") from e
		logger.info("MediaPipe Pose ready (variant=%s, smoothing=%s)", self._variant, bool(enable_smoothing))

	def name(self) -> str:
		return f"mediapipe_pose_{self._variant}"

	def _process(self, rgb: Any, width: int, height: int) -> List[Pose]:
		with self._lock:
			if self._pose is None:
				raise ModelUnavailableError("model disposed")
			res = self._pose.process(rgb)
		lms = getattr(res, "pose_landmarks", None) if res is not None else None
		if not lms:
			return []
		return [landmarks_to_pose(lms.landmark, width, height)]

	async def estimate(self, frame: Any, timestamp_ms: Optional[int] = None) -> List[Pose]:
		with self._lock:
			if self._pose is None:
				raise ModelUnavailableError("model disposed")
		loop = asyncio.get_running_loop()
		return await loop.run_in_executor(None, self._process, frame.data, frame.width, frame.height)

	def dispose(self) -> None:
		with self._lock:
			pose = self._pose
			self._pose = None
		if pose is None:
			return
		try:
			pose.close()
		except Exception as e:
			logger.warning("MediaPipe Pose close failed: %r", e)
