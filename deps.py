"""
FastAPI dependencies. Use Depends(get_state) / Depends(get_session) in route handlers.
"""
from fastapi import Depends, HTTPException, Request

from app_state import AppState
from poselive.session import OverlaySession


def get_state(request: Request) -> AppState:
	"""Return the app state instance attached in lifespan."""
	return request.app.state.state


def get_session(state: AppState = Depends(get_state)) -> OverlaySession:
	"""Return the running overlay session, or 503 with the startup fault."""
	if state.session is None:
		err = state.startup_error
		detail = f"Startup failed ({err.stage}): {err}" if err is not None else "Server not ready"
		raise HTTPException(status_code=503, detail=detail)
	return state.session
