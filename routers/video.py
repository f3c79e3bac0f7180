"""Annotated preview routes. Routes: /video/mjpeg, /video/snapshot.jpg."""
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response, StreamingResponse

from deps import get_session
from poselive.session import OverlaySession
from poselive.streaming import BOUNDARY, mjpeg_stream

router = APIRouter(tags=["video"])

_NO_CACHE = {
	"Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
	"Pragma": "no-cache",
}


@router.get("/video/mjpeg")
async def video_mjpeg(fps: float = 15.0, session: OverlaySession = Depends(get_session)):
	"""Live MJPEG stream of the camera preview with keypoints drawn on it."""
	return StreamingResponse(
		mjpeg_stream(session.renderer.get_latest_jpeg, fps=fps, is_live=session.pump.is_running),
		media_type=f"multipart/x-mixed-replace; boundary={BOUNDARY}",
		headers={**_NO_CACHE, "Connection": "keep-alive"},
	)


@router.get("/video/snapshot.jpg")
async def video_snapshot(session: OverlaySession = Depends(get_session)):
	"""Return the latest annotated preview frame."""
	jpeg, _t = session.renderer.get_latest_jpeg()
	if jpeg is None:
		raise HTTPException(status_code=404, detail="No preview frame available yet")
	return Response(content=jpeg, media_type="image/jpeg", headers=_NO_CACHE)
