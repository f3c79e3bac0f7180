import argparse
import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app_state import AppState
from poselive import __version__
from poselive.config import get_config, set_config_path
from poselive.errors import StartupError
from poselive.geometry import compute_display_geometry
from poselive.session import OverlaySession
from poselive.startup import run_startup
from routers import camera, pages, pose, video
from routers.ws import manager, router as ws_router

logger = logging.getLogger("poselive.server")

# UI directory path
UI_DIR = Path(__file__).parent / "UI"

LOG_FORMAT = "%(levelname)s:%(name)s:%(message)s"


def load_html_template(filename: str) -> str:
	"""
	Load an HTML template file from the UI directory.

	Raises:
		FileNotFoundError: If the file doesn't exist
	"""
	file_path = UI_DIR / filename
	if not file_path.exists():
		raise FileNotFoundError(f"UI template not found: {file_path}")
	with open(file_path, "r", encoding="utf-8") as f:
		return f.read()


class _ClientLogHandler(logging.Handler):
	"""Forward poselive log lines to WebSocket clients as {"type": "log"} messages."""

	def emit(self, record: logging.LogRecord) -> None:
		try:
			manager.broadcast_nowait({"type": "log", "level": record.levelname, "msg": self.format(record)})
		except Exception:
			self.handleError(record)


def configure_logging(level: str = "info") -> None:
	logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
	pkg_logger = logging.getLogger("poselive")
	if not any(isinstance(h, _ClientLogHandler) for h in pkg_logger.handlers):
		h = _ClientLogHandler(level=logging.INFO)
		h.setFormatter(logging.Formatter("%(name)s: %(message)s"))
		pkg_logger.addHandler(h)


async def _bring_up(state: AppState) -> None:
	"""
	Run the startup sequence; on success start the frame pump.
	A session whose pump stopped on a fault is torn down and replaced.
	"""
	async with state.startup_lock:
		if state.session is not None:
			if state.pump_fault() is None:
				return
			old = state.session
			state.session = None
			logger.info("replacing session after pump fault: %r", old.pump.fault)
			await old.close()
		try:
			source, model = await run_startup(state.cfg, state.geometry)
		except StartupError as e:
			logger.error("startup failed at %s: %s", e.stage, e)
			state.startup_error = e
			return
		state.startup_error = None
		state.session = OverlaySession(state.cfg, state.geometry, source, model, broadcast=manager.broadcast_nowait)
		state.session.start()


@asynccontextmanager
async def lifespan(app: FastAPI):
	state = AppState()
	state.manager = manager
	state.UI_DIR = UI_DIR
	state.get_page_html = load_html_template
	state.cfg = get_config()
	state.geometry = compute_display_geometry(state.cfg.display)
	state.startup_lock = asyncio.Lock()
	state.retry_startup = lambda: _bring_up(state)
	app.state.state = state

	logger.info("poselive %s; display geometry %s", __version__, state.geometry.as_dict())
	await _bring_up(state)
	try:
		yield
	finally:
		session = state.session
		state.session = None
		if session is not None:
			await session.close()


app = FastAPI(title="poselive", version=__version__, lifespan=lifespan)
app.add_middleware(
	CORSMiddleware,
	allow_origins=["*"],
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)
app.include_router(pages.router)
app.include_router(camera.router)
app.include_router(pose.router)
app.include_router(video.router)
app.include_router(ws_router)


def main() -> None:
	parser = argparse.ArgumentParser(description="Live camera pose overlay server.")
	parser.add_argument("--config", help="Path to config.json (default: repo root config.json).")
	parser.add_argument("--host", help="Bind address (overrides server.host).")
	parser.add_argument("--port", type=int, help="Bind port (overrides server.port).")
	parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
	args = parser.parse_args()

	if args.config:
		set_config_path(args.config)
	cfg = get_config()
	configure_logging("debug" if args.debug else cfg.server.log_level)

	import uvicorn

	uvicorn.run(app, host=args.host or cfg.server.host, port=int(args.port or cfg.server.port), log_level="debug" if args.debug else cfg.server.log_level)


if __name__ == "__main__":
	main()
