"""Exception hierarchy shared by the camera, model, pump and startup layers."""


class PoseLiveError(Exception):
	"""Base class for all poselive errors."""


class StartupError(PoseLiveError):
	"""A fatal fault during startup; no frame pump may start."""

	stage = "startup"


class PermissionDeniedError(StartupError):
	"""The camera could not be opened (missing permission or no device)."""

	stage = "camera_permission"


class BackendInitError(StartupError):
	"""The inference backend failed to initialize."""

	stage = "backend_init"


class ModelLoadError(StartupError):
	"""The pose model could not be constructed."""

	stage = "model_load"


class FatalModelError(PoseLiveError):
	"""The pose model is unusable; the pump must stop."""


class ModelUnavailableError(FatalModelError):
	"""estimate() was called on a disposed model."""


class FrameSourceError(PoseLiveError):
	"""The frame source failed after startup (device lost, source stopped)."""


class FrameReleaseError(PoseLiveError):
	"""A frame buffer could not be released, or was released twice."""


class PumpStoppedError(PoseLiveError):
	"""start() was called on a pump that has already been stopped."""
