"""HTML page and startup routes. Routes: /, /status, /startup/retry."""
import html
import json

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse

from app_state import AppState
from deps import get_state
from schemas.responses import StartupStatusResponse

router = APIRouter(tags=["pages"])

_GEOMETRY_PLACEHOLDER = "<!-- DISPLAY_GEOMETRY -->"
_MESSAGE_PLACEHOLDER = "<!-- STARTUP_MESSAGE -->"

_STAGE_MESSAGES = {
	"camera_permission": "We need your permission to show the camera.",
	"backend_init": "The pose estimation backend could not be initialized.",
	"model_load": "The pose model could not be loaded.",
	"pump": "The live view stopped.",
}


def _get_html(state: AppState, filename: str) -> str:
	"""Load page HTML lazily. 404 if UI template missing."""
	if state.get_page_html is None:
		raise HTTPException(status_code=503, detail="Server not ready")
	try:
		return state.get_page_html(filename)
	except FileNotFoundError as e:
		raise HTTPException(status_code=404, detail=str(e)) from e


@router.get("/", response_class=HTMLResponse)
async def index(state: AppState = Depends(get_state)):
	"""Live view, or the startup failure message with a retry button."""
	status = state.startup_status()
	if not status["ready"]:
		page = _get_html(state, "startup_error.html")
		msg = _STAGE_MESSAGES.get(status["stage"], "Starting up...")
		if status["error"]:
			msg += f"<br><small>{html.escape(status['error'])}</small>"
		return page.replace(_MESSAGE_PLACEHOLDER, msg, 1)

	page = _get_html(state, "index.html")
	geometry = state.geometry.as_dict() if state.geometry else {}
	script = f"<script>window.__DISPLAY_GEOMETRY__ = {json.dumps(geometry)};</script>"
	return page.replace(_GEOMETRY_PLACEHOLDER, script, 1)


@router.get("/status", response_model=StartupStatusResponse)
async def status(state: AppState = Depends(get_state)):
	return state.startup_status()


@router.post("/startup/retry", response_model=StartupStatusResponse)
async def startup_retry(state: AppState = Depends(get_state)):
	"""Rerun the startup sequence after a fatal startup or pump fault."""
	if state.startup_status()["ready"]:
		return state.startup_status()
	if state.retry_startup is None:
		raise HTTPException(status_code=503, detail="Server not ready")
	await state.retry_startup()
	return state.startup_status()
