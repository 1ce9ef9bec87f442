"""Local HTTP host serving the client application during generation."""

import logging
from pathlib import Path

from aiohttp import web

from prerender.config import HostConfig
from prerender.errors import HostStartError

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ".html": "text/html",
    ".js": "application/javascript",
    ".css": "text/css",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".ico": "image/x-icon",
    ".svg": "image/svg+xml",
    ".json": "application/json",
    ".tsv": "text/tab-separated-values",
}


def content_type_for(path: str | Path) -> str:
    """Infer a content type from a file extension."""
    return CONTENT_TYPES.get(Path(path).suffix.lower(), "text/plain")


class RenderHost:
    """Serve the master template, its assets, and the catalog/result data.

    Used as an async context manager; the listening socket is released on
    exit whether or not the body raised.
    """

    def __init__(
        self,
        config: HostConfig,
        catalog_name: str | None = None,
        catalog_bytes: bytes | None = None,
    ):
        self.config = config
        self.catalog_name = catalog_name
        self.catalog_bytes = catalog_bytes
        self._runner: web.AppRunner | None = None

    async def __aenter__(self):
        """Bind the port and start serving."""
        app = web.Application()
        app.router.add_get("/{path:.*}", self._handle)
        self._runner = web.AppRunner(app, access_log=None)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.config.host, self.config.port)
        try:
            await site.start()
        except OSError as e:
            await self._runner.cleanup()
            self._runner = None
            raise HostStartError(
                f"Cannot bind render host on {self.config.host}:{self.config.port}: {e}"
            ) from e
        logger.info("Render host listening on %s", self.base_url)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Stop serving and release the socket."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Render host stopped")

    @property
    def base_url(self) -> str:
        port = self.config.port
        if port == 0 and self._runner is not None and self._runner.addresses:
            port = self._runner.addresses[0][1]
        return f"http://{self.config.host}:{port}"

    def resolve(self, request_path: str) -> Path | None:
        """Map a request path to a regular file, or None when nothing matches."""
        if request_path in ("/", "/index.html"):
            candidate = self.config.template
        elif request_path.endswith(".json"):
            candidate = self.config.data_root / Path(request_path).name
        else:
            root = self.config.asset_root.resolve()
            candidate = (root / request_path.lstrip("/")).resolve()
            # Keep lookups inside the asset root
            if root != candidate and root not in candidate.parents:
                return None

        if candidate.is_file():
            return candidate
        return None

    async def _handle(self, request: web.Request) -> web.StreamResponse:
        path = request.path

        if self.catalog_name and path == f"/{self.catalog_name}":
            if self.catalog_bytes is not None:
                return web.Response(
                    body=self.catalog_bytes,
                    content_type="text/tab-separated-values",
                )
            file_path = self.config.data_root / self.catalog_name
            if not file_path.is_file():
                return web.Response(status=404, text="Not Found")
        else:
            file_path = self.resolve(path)
            if file_path is None:
                logger.debug("Render host 404: %s", path)
                return web.Response(status=404, text="Not Found")

        return web.FileResponse(file_path, headers={"Content-Type": content_type_for(file_path)})
