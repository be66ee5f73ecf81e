"""ASGI integration: readiness middleware and development asset handler.

ReadinessMiddleware holds every HTTP request until the client's current
publish/bundle cycle has settled, so handlers always see published hashes.
In development mode it also answers ``/js`` and ``/css`` with the
unbundled entrypoint sources.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from starlette.concurrency import run_in_threadpool
from starlette.responses import PlainTextResponse, Response
from starlette.types import ASGIApp, Receive, Scope, Send

from asset_pipe_client.types import AssetType

if TYPE_CHECKING:
    from asset_pipe_client.client import Client
    from asset_pipe_client.writer import Plugin, Transform

logger = logging.getLogger(__name__)

MEDIA_TYPES = {
    AssetType.JS: "application/javascript",
    AssetType.CSS: "text/css",
}

# Request paths served by the development handler
DEV_ROUTES = {"/js": AssetType.JS, "/css": AssetType.CSS}


class DevAssetHandler:
    """Serves entrypoint sources directly, without the build server.

    Transforms are applied to each file in registration order; plugins are
    called once with the handler when registered.
    """

    def __init__(self, entrypoints: Mapping[str, list[str]] | None = None) -> None:
        self.entrypoints: dict[str, list[str]] = {t.value: [] for t in AssetType}
        for asset_type, files in (entrypoints or {}).items():
            self.set_entrypoints(asset_type, files)
        self.transforms: list[tuple[Transform, dict[str, Any]]] = []

    def set_entrypoints(self, asset_type: str, files: list[str]) -> None:
        self.entrypoints[AssetType(asset_type).value] = list(files)

    def transform(self, transform: Transform, options: dict[str, Any] | None = None) -> None:
        self.transforms.append((transform, options or {}))

    def plugin(self, plugin: Plugin, options: dict[str, Any] | None = None) -> None:
        plugin(self, options or {})

    def render(self, asset_type: str) -> str:
        """Concatenate the transformed sources of all entrypoints of a type.

        Raises:
            OSError: If an entrypoint cannot be read.
        """
        sources = []
        for file in self.entrypoints[AssetType(asset_type).value]:
            source = Path(file).read_text(encoding="utf-8")
            for transform, options in self.transforms:
                source = transform(source, options)
            sources.append(source)
        return "\n".join(sources)

    async def response(self, asset_type: AssetType) -> Response:
        if not self.entrypoints[asset_type.value]:
            return PlainTextResponse(f"No {asset_type.value} entrypoints", status_code=404)
        content = await run_in_threadpool(self.render, asset_type)
        return Response(content, media_type=MEDIA_TYPES[asset_type])


class ReadinessMiddleware:
    """Pure ASGI middleware waiting for ``client.ready()`` before each request."""

    def __init__(self, app: ASGIApp, client: Client) -> None:
        self.app = app
        self.client = client

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        await self.client.ready()

        handler = self.client.dev_handler
        asset_type = DEV_ROUTES.get(scope["path"])
        if (
            self.client.development
            and handler is not None
            and asset_type is not None
            and scope["method"] in ("GET", "HEAD")
        ):
            logger.debug("Serving development %s assets", asset_type.value)
            response = await handler.response(asset_type)
            await response(scope, receive, send)
            return

        await self.app(scope, receive, send)


__all__ = ["DEV_ROUTES", "DevAssetHandler", "MEDIA_TYPES", "ReadinessMiddleware"]
