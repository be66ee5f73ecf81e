"""Asset pipe client: publish feeds, submit bundle instructions, resolve bundles.

This module provides the high-level client API:
- publish(): build and publish asset feeds per asset type
- bundle_instructions(): tell the build server which tagged feeds to combine
- resolve_bundle_url(): URL of the combined bundle for a set of feed hashes,
  with background verification and per-feed fallback
- ready(): wait for the current publish/bundle cycle to settle

All state is held on the Client instance. The client is meant to be used
from inside a running asyncio event loop: operations are scheduled as tasks
and resolve_bundle_url never waits on the network.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from types import TracebackType
from typing import Any

import pydantic
from starlette.middleware import Middleware

from asset_pipe_client.barrier import OperationHandle, ReadinessBarrier
from asset_pipe_client.config import RequestOptions, Settings, get_settings
from asset_pipe_client.errors import (
    ServerError,
    SyncParseError,
    TransportError,
    ValidationError,
    error_from_response,
)
from asset_pipe_client.hashing import hash_array
from asset_pipe_client.middleware import DevAssetHandler, ReadinessMiddleware
from asset_pipe_client.schemas import (
    validate_asset_type,
    validate_entrypoints,
    validate_files,
    validate_hashes,
    validate_instructions,
    validate_sources,
    validate_tag,
)
from asset_pipe_client.transport import Transport
from asset_pipe_client.types import AssetType, VerificationState
from asset_pipe_client.urls import build_url, join_url
from asset_pipe_client.writer import (
    FeedWriter,
    Plugin,
    Transform,
    WriterFactory,
    create_writer,
    serialize_feed,
    serialize_publish_body,
)

logger = logging.getLogger(__name__)

ASSET_TYPES = tuple(t.value for t in AssetType)


class Client:
    """Coordinator between an application and the asset build server.

    Attributes:
        build_server_uri: Base URI of the build server.
        tag: Tag under which feeds and instructions are published.
        development: When True, nothing is published; assets are served
            locally by the readiness middleware.
        hashes: Feed hash per asset type, None until published.
        instructions: Accepted bundle instruction per asset type.
        public_feed_url: Prefix under which the server serves feeds.
        public_bundle_url: Prefix under which the server serves bundles.
    """

    def __init__(
        self,
        server: str | None = None,
        *,
        tag: str | None = None,
        server_id: str | None = None,
        minify: bool | None = None,
        source_maps: bool | None = None,
        rebundle: bool | None = None,
        development: bool | None = None,
        settings: Settings | None = None,
        transport: Transport | None = None,
        writer_factory: WriterFactory | None = None,
    ) -> None:
        """Initialize the client.

        Explicit arguments override values from settings.

        Args:
            server: Build server base URI.
            tag: Tag for publishing; required before publish/bundle calls.
            server_id: Identity sent as the origin-server-id header.
            minify: Default minify flag for publish/bundle calls.
            source_maps: Default source maps flag for publish/bundle calls.
            rebundle: Default rebundle flag for publish calls.
            development: Serve unbundled assets instead of publishing.
            settings: Settings to read defaults from; loaded from env if omitted.
            transport: HTTP transport; created from settings if omitted.
            writer_factory: Creates the feed writer for each publish.

        Raises:
            ValidationError: If tag is not alphanumeric.
        """
        if settings is None:
            settings = get_settings()

        self.build_server_uri = (server or settings.server).rstrip("/")
        tag = tag if tag is not None else settings.tag
        self.tag = validate_tag(tag) if tag is not None else None
        self.server_id = server_id if server_id is not None else settings.server_id
        self.development = (
            development if development is not None else settings.development
        )
        self.defaults = RequestOptions(
            minify=minify if minify is not None else settings.minify,
            source_maps=source_maps if source_maps is not None else settings.source_maps,
            rebundle=rebundle if rebundle is not None else settings.rebundle,
        )

        self._transport = transport or Transport(
            timeout=settings.request_timeout, server_id=self.server_id
        )
        self._writer_factory = writer_factory or create_writer

        self.transforms: list[tuple[Transform, dict[str, Any]]] = []
        self.plugins: list[tuple[Plugin, dict[str, Any]]] = []

        self.hashes: dict[str, str | None] = {t: None for t in ASSET_TYPES}
        self.instructions: dict[str, list[str]] = {t: [] for t in ASSET_TYPES}
        self._resolved_urls: dict[str, str | None] = {t: None for t in ASSET_TYPES}
        self._verification: dict[str, VerificationState] = {
            t: VerificationState.IDLE for t in ASSET_TYPES
        }
        self._verification_tasks: dict[str, asyncio.Task[None]] = {}
        self._barrier = ReadinessBarrier()
        # Bumped per type by each publish; older tasks must not record hashes
        self._publish_cycles: dict[str, int] = {t: 0 for t in ASSET_TYPES}

        self.public_feed_url = f"{self.build_server_uri}/feed/"
        self.public_bundle_url = f"{self.build_server_uri}/bundle/"
        self._sync_data: dict[str, str] | None = None

        self._dev_entrypoints: dict[str, list[str]] = {t: [] for t in ASSET_TYPES}
        self.dev_handler: DevAssetHandler | None = None

    # Writer extensions

    def transform(self, transform: Transform, options: dict[str, Any] | None = None) -> None:
        """Register a source transform, replayed onto every writer in order."""
        self.transforms.append((transform, options or {}))

    def plugin(self, plugin: Plugin, options: dict[str, Any] | None = None) -> None:
        """Register a plugin, replayed onto every writer in order."""
        self.plugins.append((plugin, options or {}))

    def _build_writer(self, files: list[str], asset_type: AssetType) -> FeedWriter:
        writer = self._writer_factory(files, asset_type)
        for transform, options in self.transforms:
            writer.transform(transform, options)
        for plugin, options in self.plugins:
            writer.plugin(plugin, options)
        return writer

    # Helpers

    def _require_tag(self) -> str:
        if self.tag is None:
            raise ValidationError("A tag must be configured before publishing")
        return self.tag

    def _options(self, options: RequestOptions | Mapping[str, Any] | None) -> RequestOptions:
        if options is None:
            return self.defaults
        try:
            parsed = (
                options
                if isinstance(options, RequestOptions)
                else RequestOptions.model_validate(options)
            )
        except pydantic.ValidationError as e:
            raise ValidationError(
                f"Invalid options: {e.errors()[0]['msg']}",
                details=[dict(err) for err in e.errors(include_url=False)],
            ) from e
        return parsed.merged_over(self.defaults)

    def _bundle_file_url(self, name: str, asset_type: str) -> str:
        return f"{self.public_bundle_url}{name}.{asset_type}"

    # Low-level build server operations

    async def upload_feed(self, files: list[str], asset_type: str = "js") -> Any:
        """Upload a feed built from files to ``POST /feed/{type}``.

        Args:
            files: Entrypoint file paths.
            asset_type: 'js' or 'css'.

        Returns:
            Response body (parsed JSON or raw text).

        Raises:
            ValidationError: If arguments are malformed.
            ClientError: If the server responds 400.
            ServerError: If the server responds with another non-200 status.
            TransportError: If the request fails.
        """
        files = validate_files(files)
        kind = validate_asset_type(asset_type)

        writer = self._build_writer(files, kind)
        url = join_url(self.build_server_uri, "feed", kind.value)
        response = await self._transport.post(url, serialize_feed(writer.bundle()))
        if response.status_code != 200:
            raise error_from_response(response.status_code, response.body)

        logger.info("Uploaded %s feed (%d files)", kind.value, len(files))
        return response.body

    async def create_remote_bundle(self, sources: list[str], asset_type: str = "js") -> Any:
        """Ask the server to bundle feeds via ``POST /bundle/{type}``.

        Args:
            sources: Feed identifiers to combine, in order.
            asset_type: 'js' or 'css'.

        Returns:
            Response body. 202 means bundling continues asynchronously.

        Raises:
            ValidationError: If arguments are malformed.
            ClientError: If the server responds 400.
            ServerError: If the server responds with another status.
            TransportError: If the request fails.
        """
        sources = validate_sources(sources)
        kind = validate_asset_type(asset_type)

        url = join_url(self.build_server_uri, "bundle", kind.value)
        response = await self._transport.post(url, json_body=sources)
        if response.status_code not in (200, 202):
            raise error_from_response(response.status_code, response.body)

        logger.info(
            "Requested %s bundle of %d feeds (HTTP %d)",
            kind.value,
            len(sources),
            response.status_code,
        )
        return response.body

    async def sync(self) -> dict[str, str]:
        """Fetch the public feed and bundle URL prefixes from ``GET /sync/``.

        The result is cached after the first successful call.

        Returns:
            Dict with ``publicFeedUrl`` and ``publicBundleUrl``.

        Raises:
            SyncParseError: If the body is not the expected JSON object.
            ClientError, ServerError: On a non-200 response.
            TransportError: If the request fails.
        """
        if self._sync_data is not None:
            return self._sync_data

        url = join_url(self.build_server_uri, "sync") + "/"
        response = await self._transport.get(url)
        if response.status_code != 200:
            raise error_from_response(response.status_code, response.body)

        body = response.body
        if not isinstance(body, dict):
            raise SyncParseError(
                f"Unable to parse response from {url} as JSON: {str(body)[:200]!r}"
            )
        try:
            data = {
                "publicFeedUrl": str(body["publicFeedUrl"]),
                "publicBundleUrl": str(body["publicBundleUrl"]),
            }
        except KeyError as e:
            raise SyncParseError(f"Response from {url} is missing {e}") from e

        self.public_feed_url = data["publicFeedUrl"]
        self.public_bundle_url = data["publicBundleUrl"]
        self._sync_data = data
        logger.info("Synced with build server; bundles at %s", self.public_bundle_url)
        return data

    # Publish / bundle cycle

    def publish(
        self,
        entrypoints: Mapping[str, Any] | None = None,
        options: RequestOptions | Mapping[str, Any] | None = None,
    ) -> OperationHandle[str]:
        """Publish feeds for the given entrypoints and start a new cycle.

        One task per present asset type is started; js and css run in
        parallel and a failure of one never cancels the other. The returned
        handle may be awaited for ``{type: hash}``; it raises the first
        failure once every task has settled.

        A publish supersedes any still running publish of the same type:
        the earlier task completes but its hash is no longer recorded.

        Args:
            entrypoints: ``{"js": path(s), "css": path(s)}``.
            options: Per-call bundling flags overriding the client defaults.

        Returns:
            OperationHandle for the started tasks (empty if none).

        Raises:
            ValidationError: If arguments are malformed or no tag is set.
        """
        parsed = validate_entrypoints(entrypoints)
        opts = self._options(options)
        present = parsed.present()
        tag = self._require_tag() if present and not self.development else None

        self._barrier.reset()

        if self.development:
            for kind, files in present.items():
                self._dev_entrypoints[kind.value] = files
                if self.dev_handler is not None:
                    self.dev_handler.set_entrypoints(kind, files)
            return OperationHandle()

        if not present:
            return OperationHandle()

        loop = asyncio.get_running_loop()
        tasks: dict[str, asyncio.Task[str]] = {}
        for kind, files in present.items():
            self.hashes[kind.value] = None
            self._publish_cycles[kind.value] += 1
            task = loop.create_task(
                self._publish_feed(
                    kind, files, tag or "", opts, self._publish_cycles[kind.value]
                ),
                name=f"publish-{kind.value}",
            )
            self._barrier.add_publish(task)
            tasks[kind.value] = task
        return OperationHandle(tasks)

    async def _publish_feed(
        self,
        kind: AssetType,
        files: list[str],
        tag: str,
        opts: RequestOptions,
        cycle: int,
    ) -> str:
        writer = self._build_writer(files, kind)
        url = build_url(
            join_url(self.build_server_uri, "publish-assets"),
            {
                "minify": opts.minify,
                "sourceMaps": opts.source_maps,
                "rebundle": opts.rebundle,
            },
        )
        body = serialize_publish_body(tag, kind, writer.bundle())

        response = await self._transport.post(url, body)
        if response.status_code != 200:
            raise error_from_response(response.status_code, response.body)
        if not isinstance(response.body, dict) or not response.body.get("id"):
            raise ServerError(response.status_code, "response did not include a feed id")

        feed_hash = str(response.body["id"])
        if cycle != self._publish_cycles[kind.value]:
            logger.info(
                "Discarding %s feed %s from a superseded publish", kind.value, feed_hash
            )
            return feed_hash
        self.hashes[kind.value] = feed_hash
        logger.info("Published %s feed for tag %s: %s", kind.value, tag, feed_hash)
        return feed_hash

    def bundle_instructions(
        self,
        instructions: Mapping[str, Any] | None = None,
        options: RequestOptions | Mapping[str, Any] | None = None,
    ) -> OperationHandle[str]:
        """Submit bundle instructions (ordered tag lists) per asset type.

        Types with an empty instruction are skipped and keep their current
        instruction. Accepted instructions are stored for resolve_bundle_url.

        Args:
            instructions: ``{"js": [tags...], "css": [tags...]}``.
            options: Per-call bundling flags overriding the client defaults.

        Returns:
            OperationHandle for the started tasks (empty if none).

        Raises:
            ValidationError: If arguments are malformed or no tag is set.
        """
        parsed = validate_instructions(instructions)
        opts = self._options(options)
        present = parsed.present()
        if self.development or not present:
            return OperationHandle()
        tag = self._require_tag()

        loop = asyncio.get_running_loop()
        tasks: dict[str, asyncio.Task[Any]] = {}
        for kind, tags in present.items():
            task = loop.create_task(
                self._submit_instruction(kind, tags, tag, opts),
                name=f"bundle-{kind.value}",
            )
            self._barrier.add_bundle(task)
            tasks[kind.value] = task
        return OperationHandle(tasks)

    bundle = bundle_instructions

    async def _submit_instruction(
        self, kind: AssetType, tags: list[str], tag: str, opts: RequestOptions
    ) -> Any:
        url = build_url(
            join_url(self.build_server_uri, "publish-instructions"),
            {"minify": opts.minify, "sourceMaps": opts.source_maps},
        )
        response = await self._transport.post(
            url, json_body={"tag": tag, "type": kind.value, "data": tags}
        )
        if response.status_code not in (200, 204):
            raise error_from_response(response.status_code, response.body)

        self.instructions[kind.value] = list(tags)
        logger.info("Submitted %s bundle instruction for tag %s: %s", kind.value, tag, tags)
        return response.body

    async def ready(self) -> bool:
        """Wait until every operation of the current cycle has settled.

        Failures do not prevent readiness; inspect ``hashes`` to see what
        was published.
        """
        return await self._barrier.wait()

    # Bundle resolution

    def resolve_bundle_url(self, hashes: list[str], asset_type: str) -> list[str]:
        """Return the URL(s) to serve the given feeds of one asset type.

        Returns the combined bundle URL once it has been verified to exist,
        otherwise one fallback URL per feed hash. When the combined bundle
        is not yet verified a background check is started, at most one per
        asset type at a time. Never waits on the network.

        The bundle identity concatenates the hashes without a separator, so
        only pass feed hashes issued by the build server; arbitrary strings
        can map two different hash lists to the same bundle.

        Args:
            hashes: Feed hashes in bundle order.
            asset_type: 'js' or 'css'.

        Returns:
            List of URLs; empty when there is nothing to serve.

        Raises:
            ValidationError: If arguments are malformed.
        """
        hashes = validate_hashes(hashes)
        key = validate_asset_type(asset_type).value

        instruction = self.instructions[key]
        if not instruction or not hashes:
            return []

        fallback = [self._bundle_file_url(h, key) for h in hashes]
        if len(hashes) != len(instruction):
            logger.debug(
                "%d %s hashes do not match instruction of %d tags; using fallback",
                len(hashes),
                key,
                len(instruction),
            )
            return fallback

        candidate = self._bundle_file_url(hash_array(hashes), key)
        if self._resolved_urls[key] == candidate:
            return [candidate]

        if self._verification[key] is VerificationState.IDLE:
            self._start_verification(key, candidate)
        return fallback

    def _start_verification(self, key: str, candidate: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; not verifying %s", candidate)
            return

        self._verification[key] = VerificationState.VERIFYING
        self._resolved_urls[key] = None
        self._verification_tasks[key] = loop.create_task(
            self._verify_bundle(key, candidate), name=f"verify-{key}"
        )

    async def _verify_bundle(self, key: str, candidate: str) -> None:
        logger.debug("Verifying bundle %s", candidate)
        try:
            response = await self._transport.get(candidate)
        except TransportError as e:
            logger.warning("Could not verify bundle %s: %s", candidate, e)
        else:
            if response.ok:
                self._resolved_urls[key] = candidate
                logger.info("Bundle %s is available", candidate)
            else:
                logger.debug(
                    "Bundle %s not available (HTTP %d)", candidate, response.status_code
                )
        finally:
            self._verification[key] = VerificationState.IDLE
            self._verification_tasks.pop(key, None)

    def verifying(self, asset_type: str) -> bool:
        """Whether a bundle verification is in flight for the asset type."""
        key = validate_asset_type(asset_type).value
        return self._verification[key] is VerificationState.VERIFYING

    async def verification_settled(self, asset_type: str | None = None) -> None:
        """Wait for in-flight bundle verification(s) to finish."""
        if asset_type is None:
            tasks = list(self._verification_tasks.values())
        else:
            key = validate_asset_type(asset_type).value
            task = self._verification_tasks.get(key)
            tasks = [task] if task is not None else []
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # Accessors

    def js(self) -> str | None:
        """Published JavaScript feed hash."""
        return self.hashes["js"]

    def css(self) -> str | None:
        """Published CSS feed hash."""
        return self.hashes["css"]

    def scripts(self, hashes: list[str]) -> list[str]:
        """Script URLs for the given JavaScript feed hashes."""
        if self.development:
            return ["/js"]
        return self.resolve_bundle_url(hashes, "js")

    def styles(self, hashes: list[str]) -> list[str]:
        """Stylesheet URLs for the given CSS feed hashes."""
        if self.development:
            return ["/css"]
        return self.resolve_bundle_url(hashes, "css")

    # ASGI integration

    def _build_dev_handler(self) -> DevAssetHandler:
        handler = DevAssetHandler(self._dev_entrypoints)
        for transform, options in self.transforms:
            handler.transform(transform, options)
        for plugin, options in self.plugins:
            handler.plugin(plugin, options)
        return handler

    def middleware(self) -> Middleware:
        """Readiness middleware entry for ``FastAPI(middleware=[...])``.

        Requests wait for the current publish/bundle cycle to settle. In
        development mode ``/js`` and ``/css`` are served from the published
        entrypoints.
        """
        if self.development:
            self.dev_handler = self._build_dev_handler()
        return Middleware(ReadinessMiddleware, client=self)

    # Lifecycle

    async def aclose(self) -> None:
        """Close the HTTP transport."""
        await self._transport.aclose()

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


__all__ = ["ASSET_TYPES", "Client"]
