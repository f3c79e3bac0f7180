from __future__ import annotations

from dataclasses import dataclass

from poselive.config import DisplayConfig

# Resized tensor width handed to the model. MoveNet-style models crop and
# resize internally, so only the aspect ratio matters here.
TENSOR_BASE_WIDTH = 180


@dataclass(frozen=True)
class DisplayGeometry:
	"""
	Preview surface and inference tensor sizes.

	Computed once at startup and passed by value to the pump, mapper and
	renderer. display_* is the surface overlay points are drawn on (already
	swapped for landscape); tensor_* is the frame size the model sees.
	"""

	platform: str
	orientation: str
	display_width: float
	display_height: float
	tensor_width: int
	tensor_height: int
	rotation_degrees: int = 0

	@property
	def is_portrait(self) -> bool:
		return self.orientation != "landscape"

	def as_dict(self) -> dict:
		return {
			"platform": self.platform,
			"orientation": self.orientation,
			"display_width": self.display_width,
			"display_height": self.display_height,
			"tensor_width": self.tensor_width,
			"tensor_height": self.tensor_height,
			"rotation_degrees": self.rotation_degrees,
		}


def preview_aspect(platform: str) -> float:
	# Undistorted camera feeds: 16:9 on iOS devices, 4:3 everywhere else.
	return 9 / 16 if platform == "ios" else 3 / 4


def texture_rotation_degrees(platform: str, orientation: str) -> int:
	# Android rotates the camera texture itself. On iOS the per-orientation
	# rotation table stays disabled, so the tensor is never rotated here.
	return 0


def compute_display_geometry(cfg: DisplayConfig) -> DisplayGeometry:
	platform = (cfg.platform or "").strip().lower()
	orientation = "landscape" if cfg.orientation == "landscape" else "portrait"
	aspect = preview_aspect(platform)

	preview_w = float(cfg.screen_width)
	preview_h = preview_w / aspect

	tensor_w = TENSOR_BASE_WIDTH
	tensor_h = int(round(TENSOR_BASE_WIDTH / aspect))
	# On iOS landscape the tensor is swapped so the image is not stretched.
	if orientation == "landscape" and platform == "ios":
		tensor_w, tensor_h = tensor_h, tensor_w

	if orientation == "portrait":
		display_w, display_h = preview_w, preview_h
	else:
		display_w, display_h = preview_h, preview_w

	return DisplayGeometry(
		platform=platform,
		orientation=orientation,
		display_width=display_w,
		display_height=display_h,
		tensor_width=int(tensor_w),
		tensor_height=int(tensor_h),
		rotation_degrees=texture_rotation_degrees(platform, orientation),
	)
