"""
Tensor-space to display-space keypoint mapping.

Everything here is pure: the same keypoint, geometry and mirror flag always
map to the same point. Rotation is never applied to points; the frame source
reorients the tensor upstream instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from poselive.config import OverlayConfig
from poselive.geometry import DisplayGeometry
from poselive.pose.types import Keypoint, Pose

MIN_KEYPOINT_SCORE = 0.5


@dataclass(frozen=True)
class OverlayPoint:
	"""A keypoint mapped into display pixels."""

	name: str
	x: float
	y: float
	score: float

	def as_dict(self) -> dict:
		return {"name": self.name, "x": self.x, "y": self.y, "score": self.score}


@dataclass(frozen=True)
class OverlayStyle:
	radius: float = 4.0
	stroke_width: float = 2.0
	fill: str = "#00AA00"
	stroke: str = "white"

	@classmethod
	def from_config(cls, cfg: OverlayConfig) -> "OverlayStyle":
		return cls(radius=cfg.radius, stroke_width=cfg.stroke_width, fill=cfg.fill, stroke=cfg.stroke)


def resolve_mirror(policy: str, facing: str, platform: str) -> bool:
	"""
	Decide whether x must be reflected for the active camera.

	auto mirrors front-facing cameras and every Android preview.
	"""
	if policy == "always":
		return True
	if policy == "never":
		return False
	return facing == "front" or platform == "android"


def map_point(
	x: float,
	y: float,
	tensor_width: float,
	tensor_height: float,
	display_width: float,
	display_height: float,
	mirror: bool,
) -> tuple[float, float]:
	if mirror:
		x = tensor_width - x
	cx = x / tensor_width * display_width
	cy = y / tensor_height * display_height
	return cx, cy


def map_keypoint(
	kp: Keypoint,
	geometry: DisplayGeometry,
	mirror: bool,
	min_score: float = MIN_KEYPOINT_SCORE,
) -> Optional[OverlayPoint]:
	"""Map one keypoint, or return None when its score is at or below min_score."""
	score = float(kp.score) if kp.score is not None else 0.0
	if not score > min_score:
		return None
	cx, cy = map_point(
		float(kp.x),
		float(kp.y),
		geometry.tensor_width,
		geometry.tensor_height,
		geometry.display_width,
		geometry.display_height,
		mirror,
	)
	return OverlayPoint(name=kp.name, x=cx, y=cy, score=score)


def map_pose(
	pose: Pose,
	geometry: DisplayGeometry,
	mirror: bool,
	min_score: float = MIN_KEYPOINT_SCORE,
) -> List[OverlayPoint]:
	out: List[OverlayPoint] = []
	for kp in pose.keypoints:
		pt = map_keypoint(kp, geometry, mirror, min_score)
		if pt is not None:
			out.append(pt)
	return out


def map_poses(
	poses: Iterable[Pose],
	geometry: DisplayGeometry,
	mirror: bool,
	min_score: float = MIN_KEYPOINT_SCORE,
) -> List[OverlayPoint]:
	"""Map the first pose only; additional subjects are ignored."""
	for pose in poses:
		return map_pose(pose, geometry, mirror, min_score)
	return []
