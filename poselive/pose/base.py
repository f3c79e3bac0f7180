from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List, Optional

from poselive.pose.types import Pose

if TYPE_CHECKING:
	from poselive.camera.base import Frame


class PoseModel(ABC):
	"""
	Model adapter interface.

	estimate() takes one Frame (RGB, tensor sized) and returns zero or more
	Poses in tensor pixel coordinates. It may suspend and may be slow (tens of
	milliseconds). Raise FatalModelError when the model can no longer be used;
	any other exception is treated as a one-tick failure.
	"""

	@abstractmethod
	def name(self) -> str: ...

	@abstractmethod
	async def estimate(self, frame: "Frame", timestamp_ms: Optional[int] = None) -> List[Pose]: ...

	@abstractmethod
	def dispose(self) -> None: ...
