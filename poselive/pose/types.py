from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Keypoint:
	"""
	A single 2D keypoint in the inference tensor's pixel space.
	"""

	name: str
	x: float
	y: float
	score: Optional[float] = None  # confidence [0..1]; None when the model has none


@dataclass(frozen=True)
class Pose:
	"""
	Ordered keypoints for one detected subject.
	"""

	keypoints: tuple[Keypoint, ...] = ()
	score: Optional[float] = None

	def get(self, name: str) -> Optional[Keypoint]:
		for kp in self.keypoints:
			if kp.name == name:
				return kp
		return None


@dataclass(frozen=True)
class PoseResult:
	"""
	What the frame pump publishes once per tick.

	- poses is empty when nothing was detected or the estimate failed.
	- error carries the text of a transient inference fault.
	"""

	poses: tuple[Pose, ...] = ()
	frame_idx: int = 0
	t_host: Optional[float] = None
	latency_ms: Optional[float] = None
	error: Optional[str] = None
	facing: Optional[str] = None
