from __future__ import annotations

import threading
import time
from io import BytesIO
from typing import Optional, Sequence

import cv2
import numpy as np
from PIL import Image, ImageColor

from poselive.geometry import DisplayGeometry
from poselive.pose.mapper import OverlayPoint, OverlayStyle


def _bgr(color: str) -> tuple[int, int, int]:
	r, g, b = ImageColor.getrgb(color)[:3]
	return int(b), int(g), int(r)


def draw_points(img: np.ndarray, points: Sequence[OverlayPoint], style: OverlayStyle) -> np.ndarray:
	"""Draw each point as a filled circle with an outline, in place."""
	fill = _bgr(style.fill)
	stroke = _bgr(style.stroke)
	r = max(1, int(round(style.radius)))
	sw = int(round(style.stroke_width))
	for pt in points:
		center = (int(round(pt.x)), int(round(pt.y)))
		cv2.circle(img, center, r, fill, -1, lineType=cv2.LINE_AA)
		if sw > 0:
			cv2.circle(img, center, r, stroke, sw, lineType=cv2.LINE_AA)
	return img


def render_svg(points: Sequence[OverlayPoint], geometry: DisplayGeometry, style: OverlayStyle) -> str:
	w = geometry.display_width
	h = geometry.display_height
	parts = [
		f'<svg xmlns="http://www.w3.org/2000/svg" width="{w:g}" height="{h:g}" viewBox="0 0 {w:g} {h:g}">'
	]
	for pt in points:
		parts.append(
			f'<circle id="skeletonkp_{pt.name}" cx="{pt.x:.2f}" cy="{pt.y:.2f}" r="{style.radius:g}" '
			f'stroke-width="{style.stroke_width:g}" fill="{style.fill}" stroke="{style.stroke}"/>'
		)
	parts.append("</svg>")
	return "".join(parts)


def encode_jpeg(bgr: np.ndarray, quality: int = 80) -> bytes:
	im = Image.fromarray(cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB))
	buf = BytesIO()
	im.save(buf, format="JPEG", quality=int(quality), optimize=True)
	return buf.getvalue()


class PreviewRenderer:
	"""
	Composites the latest overlay onto the latest camera preview.

	refresh() is called by the pump once per tick; readers pick up the most
	recent JPEG with get_latest_jpeg().
	"""

	def __init__(self, geometry: DisplayGeometry, style: OverlayStyle, jpeg_quality: int = 80) -> None:
		self._geometry = geometry
		self._style = style
		self._quality = int(jpeg_quality)
		self._lock = threading.Lock()
		self._latest_jpeg: Optional[bytes] = None
		self._latest_t: Optional[float] = None

	@property
	def display_size(self) -> tuple[int, int]:
		return int(round(self._geometry.display_width)), int(round(self._geometry.display_height))

	def compose(self, bgr: np.ndarray, points: Sequence[OverlayPoint], mirror: bool) -> np.ndarray:
		w, h = self.display_size
		img = cv2.resize(bgr, (w, h), interpolation=cv2.INTER_LINEAR)
		if mirror:
			img = cv2.flip(img, 1)
		return draw_points(img, points, self._style)

	def refresh(self, bgr: Optional[np.ndarray], points: Sequence[OverlayPoint], mirror: bool) -> Optional[bytes]:
		if bgr is None:
			return None
		jpeg = encode_jpeg(self.compose(bgr, points, mirror), self._quality)
		with self._lock:
			self._latest_jpeg = jpeg
			self._latest_t = time.time()
		return jpeg

	def get_latest_jpeg(self) -> tuple[Optional[bytes], Optional[float]]:
		with self._lock:
			return self._latest_jpeg, self._latest_t
