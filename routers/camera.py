"""Camera routes. Routes: /camera/toggle, /camera/status."""
from fastapi import APIRouter, Depends

from deps import get_session
from poselive.session import OverlaySession
from schemas.responses import CameraStatusResponse, CameraToggleResponse

router = APIRouter(tags=["camera"])


@router.post("/camera/toggle", response_model=CameraToggleResponse)
async def camera_toggle(session: OverlaySession = Depends(get_session)):
	"""Swap front/back camera. Applies to the next acquired frame."""
	facing = session.source.toggle_facing()
	return {"detail": f"Switched to {facing} camera.", "facing": facing}


@router.get("/camera/status", response_model=CameraStatusResponse)
async def camera_status(session: OverlaySession = Depends(get_session)):
	return session.source.get_status()
