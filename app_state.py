"""
Explicit app state: single source of truth for runtime lifecycle.
Created in lifespan, attached to app.state.state; injected into routes via Depends(get_state).
"""
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from poselive.config import AppConfig
from poselive.errors import StartupError
from poselive.geometry import DisplayGeometry
from poselive.session import OverlaySession


class AppState:
	"""
	Holds all runtime state for the app. Populated in server lifespan.
	"""
	# WebSocket and UI (set at app load)
	manager: Any = None
	get_page_html: Optional[Callable[[str], str]] = None
	UI_DIR: Optional[Path] = None

	# Config and display geometry (computed once at startup)
	cfg: Optional[AppConfig] = None
	geometry: Optional[DisplayGeometry] = None

	# Camera + model + pump; None until startup succeeds
	session: Optional[OverlaySession] = None
	startup_error: Optional[StartupError] = None
	startup_lock: Any = None

	# Helpers (callables set in server after creation)
	retry_startup: Optional[Callable[[], Awaitable[None]]] = None

	def pump_fault(self) -> Optional[BaseException]:
		"""Fault that stopped a running session's pump (camera lost, model unusable)."""
		return self.session.pump.fault if self.session is not None else None

	def startup_status(self) -> dict:
		fault = self.pump_fault()
		if fault is not None:
			return {"ready": False, "stage": "pump", "error": f"{type(fault).__name__}: {fault}"}
		err = self.startup_error
		return {
			"ready": self.session is not None and err is None,
			"stage": getattr(err, "stage", None) if err is not None else None,
			"error": str(err) if err is not None else None,
		}
