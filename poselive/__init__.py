"""
poselive: live camera pose overlay service.

Camera frames are pumped through a pose model one at a time; detected keypoints
are mapped into preview space and drawn on top of the live feed.
"""

from pathlib import Path


def _read_version() -> str:
	try:
		vf = Path(__file__).resolve().parents[1] / "VERSION"
		if vf.exists():
			val = vf.read_text(encoding="utf-8").strip()
			if val:
				return val
	except OSError:
		pass
	return "0.1.0"


__version__ = _read_version()
