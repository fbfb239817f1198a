"""
Admin Shell Engine — serves the admin UI at /<ADMIN_PATH>.

The UI itself is a prebuilt single-page app: GSS_ASSETS_DIR holds its
bundle (served under /assets/) and, one level up, its index.html. Without
a bundle a bare placeholder page is returned so the mount point can still
be probed. Which paths reach this engine at all is decided by the admin
shell gate.
"""

import logging
import os
from pathlib import Path

from fastapi import FastAPI
from fastapi.responses import FileResponse, HTMLResponse
from fastapi.staticfiles import StaticFiles

from ..gates import admin_mount

logger = logging.getLogger("gss.admin_shell")

_PLACEHOLDER = """<!doctype html>
<html lang="en">
<head><meta charset="utf-8"><title>GSS Admin</title></head>
<body><div id="root"></div></body>
</html>
"""

def register(app: FastAPI):
  ctx = app.state.gss_context
  mount = admin_mount(ctx["admin_path"])
  assets_dir = os.getenv("GSS_ASSETS_DIR", "")
  index_file = Path(assets_dir).parent / "index.html" if assets_dir else None

  if assets_dir and os.path.isdir(assets_dir):
    app.mount("/assets", StaticFiles(directory=assets_dir), name="assets")
    logger.info("Serving admin UI assets from %s", assets_dir)

  async def admin_ui():
    if index_file is not None and index_file.is_file():
      return FileResponse(str(index_file), media_type="text/html")
    return HTMLResponse(_PLACEHOLDER)

  app.add_api_route(mount, admin_ui, methods=["GET"], include_in_schema=False)
  app.add_api_route(mount + "/", admin_ui, methods=["GET"], include_in_schema=False)
