from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServerConfig:
	host: str = "127.0.0.1"
	port: int = 8000
	log_level: str = "info"


@dataclass(frozen=True)
class DisplayConfig:
	# "ios" uses a 9:16 preview; every other platform uses 3:4.
	platform: str = "android"
	# Preview surface width in pixels; height is derived from the aspect ratio.
	screen_width: int = 1080
	orientation: str = "portrait"  # portrait / landscape


@dataclass(frozen=True)
class CameraConfig:
	backend: str = "opencv"  # opencv / picamera2
	front_index: int = 0
	back_index: int = 1
	initial_facing: str = "front"  # front / back
	# Requested capture size [w,h]; None keeps the device default.
	capture_size: Optional[list[int]] = None
	# Seconds to wait for the first frame during startup.
	open_timeout_seconds: float = 5.0


@dataclass(frozen=True)
class ModelConfig:
	backend: str = "mediapipe"
	variant: str = "lite"  # lite / full / heavy
	enable_smoothing: bool = True
	min_detection_confidence: float = 0.5
	min_tracking_confidence: float = 0.5


@dataclass(frozen=True)
class PumpConfig:
	# Display refresh rate the pump aligns its ticks to; <= 0 means "as fast as possible".
	refresh_hz: float = 60.0
	# Inference slower than this is logged as a warning (no timeout is enforced).
	slow_inference_ms: float = 250.0


@dataclass(frozen=True)
class OverlayConfig:
	min_keypoint_score: float = 0.5
	mirror: str = "auto"  # auto / always / never
	radius: float = 4.0
	stroke_width: float = 2.0
	fill: str = "#00AA00"
	stroke: str = "white"
	jpeg_quality: int = 80


@dataclass(frozen=True)
class AppConfig:
	server: ServerConfig = field(default_factory=ServerConfig)
	display: DisplayConfig = field(default_factory=DisplayConfig)
	camera: CameraConfig = field(default_factory=CameraConfig)
	model: ModelConfig = field(default_factory=ModelConfig)
	pump: PumpConfig = field(default_factory=PumpConfig)
	overlay: OverlayConfig = field(default_factory=OverlayConfig)


_CONFIG_PATH: Optional[Path] = None
_CONFIG_CACHE: Optional[AppConfig] = None

_MIRROR_POLICIES = ("auto", "always", "never")
_MODEL_VARIANTS = ("lite", "full", "heavy")


def _repo_root() -> Path:
	# poselive/config.py -> repo root is one level up.
	return Path(__file__).resolve().parents[1]


def get_default_config_path() -> Path:
	return _repo_root() / "config.json"


def set_config_path(path: str | Path) -> None:
	"""
	Override the config path (must be called before first get_config()).
	Used by the CLI --config flag and by tests.
	"""
	global _CONFIG_PATH
	global _CONFIG_CACHE
	_CONFIG_PATH = Path(path).expanduser().resolve()
	_CONFIG_CACHE = None


def _deep_get(d: Dict[str, Any], keys: list[str], default: Any = None) -> Any:
	cur: Any = d
	for k in keys:
		if not isinstance(cur, dict):
			return default
		cur = cur.get(k)
	return cur if cur is not None else default


def _as_int(v: Any, default: int) -> int:
	try:
		return int(v)
	except (TypeError, ValueError):
		return int(default)


def _as_bool(v: Any, default: bool) -> bool:
	if isinstance(v, bool):
		return v
	if isinstance(v, (int, float)):
		return bool(v)
	if isinstance(v, str):
		return v.strip().lower() in ("1", "true", "yes", "on")
	return bool(default)


def _as_str(v: Any, default: str = "") -> str:
	return str(v) if v is not None else str(default)


def _as_float(v: Any, default: float) -> float:
	try:
		return float(v)
	except (TypeError, ValueError):
		return float(default)


def _as_choice(v: Any, choices: tuple[str, ...], default: str) -> str:
	s = _as_str(v, default).strip().lower()
	return s if s in choices else default


def _parse_size(v: Any) -> Optional[list[int]]:
	if isinstance(v, (list, tuple)) and len(v) == 2:
		w = _as_int(v[0], 0)
		h = _as_int(v[1], 0)
		return [w, h] if w > 0 and h > 0 else None
	if isinstance(v, str) and "x" in v.lower():
		a, b = v.lower().replace(" ", "").split("x", 1)
		w = _as_int(a, 0)
		h = _as_int(b, 0)
		return [w, h] if w > 0 and h > 0 else None
	return None


def load_config(path: Optional[str | Path] = None) -> AppConfig:
	p = Path(path).expanduser().resolve() if path else (_CONFIG_PATH or get_default_config_path())
	if not p.exists():
		# Defaults-only config; app can still run.
		return AppConfig()
	try:
		raw = json.loads(p.read_text(encoding="utf-8"))
	except (OSError, ValueError) as e:
		logger.warning("config %s unreadable (%s); using defaults", p, e)
		return AppConfig()

	if not isinstance(raw, dict):
		logger.warning("config %s is not a JSON object; using defaults", p)
		return AppConfig()

	d = AppConfig()

	host = _as_str(_deep_get(raw, ["server", "host"], d.server.host), d.server.host)
	port = _as_int(_deep_get(raw, ["server", "port"], d.server.port), d.server.port)
	log_level = _as_str(_deep_get(raw, ["server", "log_level"], d.server.log_level), d.server.log_level).strip().lower()

	platform = _as_str(_deep_get(raw, ["display", "platform"], d.display.platform), d.display.platform).strip().lower()
	screen_width = _as_int(_deep_get(raw, ["display", "screen_width"], d.display.screen_width), d.display.screen_width)
	orientation = _as_choice(_deep_get(raw, ["display", "orientation"]), ("portrait", "landscape"), d.display.orientation)

	cam_backend = _as_str(_deep_get(raw, ["camera", "backend"], d.camera.backend), d.camera.backend).strip().lower()
	front_index = _as_int(_deep_get(raw, ["camera", "front_index"], d.camera.front_index), d.camera.front_index)
	back_index = _as_int(_deep_get(raw, ["camera", "back_index"], d.camera.back_index), d.camera.back_index)
	initial_facing = _as_choice(_deep_get(raw, ["camera", "initial_facing"]), ("front", "back"), d.camera.initial_facing)
	capture_size = _parse_size(_deep_get(raw, ["camera", "capture_size"]))
	open_timeout = _as_float(_deep_get(raw, ["camera", "open_timeout_seconds"], d.camera.open_timeout_seconds), d.camera.open_timeout_seconds)

	model_backend = _as_str(_deep_get(raw, ["model", "backend"], d.model.backend), d.model.backend).strip().lower()
	variant = _as_choice(_deep_get(raw, ["model", "variant"]), _MODEL_VARIANTS, d.model.variant)
	smoothing = _as_bool(_deep_get(raw, ["model", "enable_smoothing"], d.model.enable_smoothing), d.model.enable_smoothing)
	min_det = _as_float(_deep_get(raw, ["model", "min_detection_confidence"], d.model.min_detection_confidence), d.model.min_detection_confidence)
	min_trk = _as_float(_deep_get(raw, ["model", "min_tracking_confidence"], d.model.min_tracking_confidence), d.model.min_tracking_confidence)

	refresh_hz = _as_float(_deep_get(raw, ["pump", "refresh_hz"], d.pump.refresh_hz), d.pump.refresh_hz)
	slow_ms = _as_float(_deep_get(raw, ["pump", "slow_inference_ms"], d.pump.slow_inference_ms), d.pump.slow_inference_ms)

	min_score = _as_float(_deep_get(raw, ["overlay", "min_keypoint_score"], d.overlay.min_keypoint_score), d.overlay.min_keypoint_score)
	mirror = _as_choice(_deep_get(raw, ["overlay", "mirror"]), _MIRROR_POLICIES, d.overlay.mirror)
	radius = _as_float(_deep_get(raw, ["overlay", "radius"], d.overlay.radius), d.overlay.radius)
	stroke_width = _as_float(_deep_get(raw, ["overlay", "stroke_width"], d.overlay.stroke_width), d.overlay.stroke_width)
	fill = _as_str(_deep_get(raw, ["overlay", "fill"], d.overlay.fill), d.overlay.fill)
	stroke = _as_str(_deep_get(raw, ["overlay", "stroke"], d.overlay.stroke), d.overlay.stroke)
	jpeg_quality = _as_int(_deep_get(raw, ["overlay", "jpeg_quality"], d.overlay.jpeg_quality), d.overlay.jpeg_quality)

	return AppConfig(
		server=ServerConfig(
			host=host or d.server.host,
			port=port if 0 < port < 65536 else d.server.port,
			log_level=log_level or d.server.log_level,
		),
		display=DisplayConfig(
			platform=platform or d.display.platform,
			screen_width=screen_width if screen_width > 0 else d.display.screen_width,
			orientation=orientation,
		),
		camera=CameraConfig(
			backend=cam_backend or d.camera.backend,
			# NOTE: do not use `or` here; camera index 0 is valid.
			front_index=front_index if front_index >= 0 else d.camera.front_index,
			back_index=back_index if back_index >= 0 else d.camera.back_index,
			initial_facing=initial_facing,
			capture_size=capture_size,
			open_timeout_seconds=open_timeout if open_timeout > 0.0 else d.camera.open_timeout_seconds,
		),
		model=ModelConfig(
			backend=model_backend or d.model.backend,
			variant=variant,
			enable_smoothing=smoothing,
			min_detection_confidence=min(1.0, max(0.0, min_det)),
			min_tracking_confidence=min(1.0, max(0.0, min_trk)),
		),
		pump=PumpConfig(
			refresh_hz=refresh_hz,
			slow_inference_ms=slow_ms if slow_ms > 0.0 else d.pump.slow_inference_ms,
		),
		overlay=OverlayConfig(
			min_keypoint_score=min(1.0, max(0.0, min_score)),
			mirror=mirror,
			radius=radius if radius > 0.0 else d.overlay.radius,
			stroke_width=stroke_width if stroke_width >= 0.0 else d.overlay.stroke_width,
			fill=fill or d.overlay.fill,
			stroke=stroke or d.overlay.stroke,
			jpeg_quality=jpeg_quality if 1 <= jpeg_quality <= 95 else d.overlay.jpeg_quality,
		),
	)


def get_config() -> AppConfig:
	global _CONFIG_CACHE
	if _CONFIG_CACHE is None:
		_CONFIG_CACHE = load_config()
	return _CONFIG_CACHE
