from __future__ import annotations

"""
Local tile server.

Serves `{root}/{z}/{x}/{y}.{ext}` at GET /tiles/{z}/{x}/{y}.{ext}.
Errors are JSON `{"error": "<message>"}` with 400/403/404/415/500.

Run:
    TILE_SERVER_ROOT=./tiles python -m tilekit.server
    uvicorn tilekit.server:create_app --factory --port 8080
"""

import html
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from common.config import ConfigurationError, load_config_file, section
from common.logging_setup import get_logger, setup_logging
from tilekit import __version__
from tilekit.errors import InternalError, TileRequestError
from tilekit.settings import ServerSettings
from tilekit.store import ALLOWED_EXTENSIONS, MEDIA_TYPES, TileStore


log = get_logger("tilekit.server")

TILE_CACHE_CONTROL = "public, max-age=86400, immutable"


def _landing_page(root: str) -> str:
    root = html.escape(root)
    return f"""<html>
  <head>
    <title>Local Tile Server</title>
    <style>
      body {{ font-family: system-ui, sans-serif; padding: 2rem; line-height: 1.6; }}
      code {{ background: #f1f5f9; padding: 0.1rem 0.4rem; border-radius: 0.3rem; }}
      h1 {{ margin-top: 0; }}
    </style>
  </head>
  <body>
    <h1>Local Tile Server</h1>
    <p>This server returns tiles from <code>{root}</code>.</p>
    <ul>
      <li>Health check: <code>/health</code></li>
      <li>Tile endpoint: <code>/tiles/{{z}}/{{x}}/{{y}}.png</code></li>
    </ul>
  </body>
</html>"""


def create_app(settings: Optional[ServerSettings] = None) -> FastAPI:
    """
    Build the app. Everything derived from settings (store, landing page, client
    config payload) is computed here once and kept for the process lifetime.
    """
    if settings is None:
        settings = ServerSettings.resolve(file_cfg=section(load_config_file(), "server"))

    store = TileStore(settings.root)
    if store.ensure_root():
        log.warning("Created missing tile directory at %s. Place your tiles here.", store.root)

    landing_html = _landing_page(str(store.root))
    config_js = settings.client_config_js()

    app = FastAPI(title="tilekit tile server", version=__version__)
    app.state.store = store
    app.state.settings = settings

    # Map viewers are usually served from another origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.exception_handler(TileRequestError)
    async def _tile_error(_request: Request, exc: TileRequestError):
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(_request: Request, exc: StarletteHTTPException):
        return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(Exception)
    async def _unexpected(_request: Request, exc: Exception):  # pragma: no cover
        log.error("Unexpected error", exc_info=exc)
        return JSONResponse({"error": InternalError.message}, status_code=500)

    @app.get("/", response_class=HTMLResponse)
    def index():
        return HTMLResponse(landing_html)

    @app.get("/config.js")
    def client_config():
        return Response(content=config_js, media_type="application/javascript")

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "tileRoot": str(store.root),
            "allowedExtensions": list(ALLOWED_EXTENSIONS),
        }

    @app.get("/stats")
    def stats():
        return {"tiles": store.stats()}

    @app.get("/tiles/{z}/{x}/{y}.{ext}")
    def tile(z: str, x: str, y: str, ext: str):
        """
        Return tile bytes for z/x/y.ext.

        Order:
          1) digits-only z/x/y              -> 400
          2) allowed extension              -> 415
          3) resolved path stays under root -> 403
          4) file readable                  -> 404 / 500
        """
        path = store.resolve(z, x, y, ext)
        try:
            data = store.read(path)
        except InternalError:
            log.exception("Failed reading tile %s", path)
            raise
        return Response(
            content=data,
            media_type=MEDIA_TYPES[ext.lower()],
            headers={"Cache-Control": TILE_CACHE_CONTROL},
        )

    return app


def main() -> int:
    setup_logging()
    try:
        settings = ServerSettings.resolve(file_cfg=section(load_config_file(), "server"))
    except ConfigurationError as e:
        log.error("%s", e)
        return 2
    app = create_app(settings)
    log.info("Serving tiles from %s", settings.root)
    log.info("Listening on http://%s:%d (example URL: /tiles/0/0/0.png)", settings.host, settings.port)
    # log_config=None keeps uvicorn's records on our JSON root handler
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
    return 0


# -------- local dev entrypoint --------
if __name__ == "__main__":
    raise SystemExit(main())
