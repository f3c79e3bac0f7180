"""MJPEG multipart streaming of the annotated preview."""

from __future__ import annotations

import asyncio
import time
from typing import AsyncIterator, Callable, Optional

BOUNDARY = "frame"
DEFAULT_STREAM_FPS = 15.0
MAX_STREAM_FPS = 60.0

LatestJpeg = Callable[[], "tuple[Optional[bytes], Optional[float]]"]


def clamp_fps(fps: object) -> float:
	try:
		value = float(fps)  # type: ignore[arg-type]
	except (TypeError, ValueError):
		return DEFAULT_STREAM_FPS
	if not (value > 0.0):
		return DEFAULT_STREAM_FPS
	return min(value, MAX_STREAM_FPS)


def multipart_chunk(jpeg: bytes) -> bytes:
	"""One multipart part: boundary, headers and the JPEG body."""
	head = (
		f"--{BOUNDARY}\r\n"
		"Content-Type: image/jpeg\r\n"
		f"Content-Length: {len(jpeg)}\r\n\r\n"
	).encode("ascii")
	return head + jpeg + b"\r\n"


async def mjpeg_stream(
	latest: LatestJpeg,
	fps: object = DEFAULT_STREAM_FPS,
	is_live: Optional[Callable[[], bool]] = None,
) -> AsyncIterator[bytes]:
	"""
	Yield each new preview JPEG as a multipart part, at most `fps` per second.

	A frame is only sent once (keyed by its timestamp). The stream ends when
	is_live() turns false, e.g. after the session was closed.
	"""
	min_interval = 1.0 / clamp_fps(fps)
	last_t: Optional[float] = None
	last_sent = 0.0

	while is_live is None or is_live():
		jpeg, t = latest()
		if jpeg is None or t is None or t == last_t:
			await asyncio.sleep(0.01 if last_t is not None else 0.05)
			continue
		wait = min_interval - (time.monotonic() - last_sent)
		if wait > 0.0:
			await asyncio.sleep(wait)
			continue
		last_t = t
		last_sent = time.monotonic()
		yield multipart_chunk(jpeg)
