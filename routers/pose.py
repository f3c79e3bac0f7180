"""Overlay and pump routes. Routes: /pose/latest, /pose/overlay.svg, /pump/status."""
from fastapi import APIRouter, Depends
from fastapi.responses import Response

from deps import get_session
from poselive.session import OverlaySession
from schemas.responses import OverlayResponse, PumpStatusResponse

router = APIRouter(tags=["pose"])


@router.get("/pose/latest", response_model=OverlayResponse)
async def pose_latest(session: OverlaySession = Depends(get_session)):
	"""Latest keypoints of the first detected pose, in display pixels."""
	return session.latest_overlay()


@router.get("/pose/overlay.svg")
async def pose_overlay_svg(session: OverlaySession = Depends(get_session)):
	return Response(
		content=session.latest_svg(),
		media_type="image/svg+xml",
		headers={"Cache-Control": "no-store"},
	)


@router.get("/pump/status", response_model=PumpStatusResponse)
async def pump_status(session: OverlaySession = Depends(get_session)):
	return session.pump.get_status()
