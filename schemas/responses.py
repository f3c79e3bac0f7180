"""Pydantic response models for API docs."""
from typing import List, Optional

from pydantic import BaseModel, Field


class OverlayPointModel(BaseModel):
	"""One keypoint mapped into display pixels."""

	name: str
	x: float
	y: float
	score: float


class OverlayResponse(BaseModel):
	"""Response from GET /pose/latest."""

	frame_idx: Optional[int] = None
	latency_ms: Optional[float] = None
	mirror: bool = False
	facing: Optional[str] = None
	poses: int = Field(0, description="Number of poses the model returned; only the first is drawn")
	error: Optional[str] = Field(None, description="Transient inference fault for this tick, if any")
	display_size: List[float] = Field(default_factory=list)
	points: List[OverlayPointModel] = Field(default_factory=list)


class PumpStatusResponse(BaseModel):
	"""Response from GET /pump/status."""

	state: str
	in_flight: bool = False
	frames: int = 0
	frames_with_pose: int = 0
	failures: int = 0
	last_latency_ms: Optional[float] = None
	fps: Optional[float] = None
	fault: Optional[str] = None


class CameraToggleResponse(BaseModel):
	"""Response from POST /camera/toggle."""

	detail: str
	facing: str


class CameraStatusResponse(BaseModel):
	"""Response from GET /camera/status."""

	label: str
	running: bool
	facing: str
	has_frame: bool
	frames_captured: int = 0
	frames_out: int = 0
	frames_released: int = 0
	error: Optional[str] = None


class StartupStatusResponse(BaseModel):
	"""Response from GET /status and POST /startup/retry."""

	ready: bool
	stage: Optional[str] = None
	error: Optional[str] = None
