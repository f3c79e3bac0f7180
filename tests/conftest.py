import pytest

from poselive.config import DisplayConfig
from poselive.geometry import DisplayGeometry, compute_display_geometry


@pytest.fixture
def geometry() -> DisplayGeometry:
	# android portrait at 1080 wide: tensor 180x240, display 1080x1440
	return compute_display_geometry(DisplayConfig(platform="android", screen_width=1080, orientation="portrait"))
