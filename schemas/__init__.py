"""Pydantic response models for API validation and docs."""
from schemas.responses import (
	CameraStatusResponse,
	CameraToggleResponse,
	OverlayPointModel,
	OverlayResponse,
	PumpStatusResponse,
	StartupStatusResponse,
)

__all__ = [
	"CameraStatusResponse",
	"CameraToggleResponse",
	"OverlayPointModel",
	"OverlayResponse",
	"PumpStatusResponse",
	"StartupStatusResponse",
]
