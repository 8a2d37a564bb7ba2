"""WebSocket-based live reload for development mode.

Monitors the content source for changes, rebuilds the site and notifies
connected clients via WebSocket to trigger page reloads.
"""

from __future__ import annotations

import asyncio
import fnmatch
import json
import logging
import weakref
from pathlib import Path

from aiohttp import WSMsgType, web
from watchfiles import Change, awatch

from sitestage.core.builder import BuildError, SiteBuilder
from sitestage.core.content import DocumentKind, load_document, route_for

logger = logging.getLogger(__name__)

DEFAULT_WATCH_PATTERNS = ["*.md", "*.markdown", "*.html", "*.yml", "*.css", "*.scss"]
LIVE_RELOAD_PATH = "/ws/live-reload"

LIVE_RELOAD_SCRIPT = (
    b"<script>(function(){"
    b"var ws=new WebSocket((location.protocol==='https:'?'wss://':'ws://')"
    b"+location.host+'" + LIVE_RELOAD_PATH.encode() + b"');"
    b"ws.onmessage=function(){location.reload();};"
    b"})();</script>"
)


class LiveReloadManager:
    """Manages WebSocket connections and file watching for live reload.

    Coordinates between the file system watcher, the site builder and
    connected WebSocket clients.
    """

    def __init__(
        self,
        source_dir: Path,
        builder: SiteBuilder,
        *,
        watch_patterns: list[str] | None = None,
        posts_dir: str = "_posts",
        permalink: str = "/",
        drafts: bool = True,
    ) -> None:
        """Initialize the live reload manager.

        Args:
            source_dir: Directory to watch for changes
            builder: Builder used to rebuild the site on change
            watch_patterns: Glob patterns to watch, relative to source_dir
            posts_dir: Posts directory, used to compute the changed route
            permalink: Site permalink pattern
            drafts: Render drafts on rebuild
        """
        self._source_dir = source_dir.absolute()
        self._builder = builder
        self._watch_patterns = watch_patterns or DEFAULT_WATCH_PATTERNS
        self._posts_dir = self._source_dir / posts_dir
        self._permalink = permalink
        self._drafts = drafts
        self._connections: weakref.WeakSet[web.WebSocketResponse] = weakref.WeakSet()
        self._watch_task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        """Start the file watcher."""
        if self._watch_task is not None:
            return
        self._watch_task = asyncio.create_task(self._watch_files())

    async def stop(self) -> None:
        """Stop the file watcher and close all connections."""
        if self._watch_task is not None:
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass
            self._watch_task = None

        for ws in list(self._connections):
            await ws.close()

    async def handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        """Handle WebSocket connection for live reload.

        Args:
            request: aiohttp request

        Returns:
            WebSocket response
        """
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        self._connections.add(ws)

        try:
            async for msg in ws:
                if msg.type == WSMsgType.ERROR:
                    break
        finally:
            self._connections.discard(ws)

        return ws

    async def _watch_files(self) -> None:
        """Watch for content changes, rebuild and broadcast reload events."""
        async for changes in awatch(self._source_dir):
            changed = [
                Path(path_str)
                for change_type, path_str in changes
                if change_type != Change.deleted and self._matches_patterns(Path(path_str))
            ]
            if not changed:
                continue

            if not await self.rebuild():
                continue
            await self._broadcast_reload(self._to_route(changed[0]))

    async def rebuild(self) -> bool:
        """Rebuild the site off the event loop.

        Returns:
            True if the new build is current, False if it failed
        """
        try:
            result = await asyncio.to_thread(self._builder.build, drafts=self._drafts)
        except (BuildError, OSError) as e:
            logger.error(f"Rebuild failed, keeping previous build: {e}")
            return False
        logger.info(f"Rebuilt site as {result.build_id}")
        return True

    def _matches_patterns(self, path: Path) -> bool:
        """Check if a path is watched content.

        Hidden entries and the build output are never watched.

        Args:
            path: Path to check

        Returns:
            True if path matches any pattern
        """
        try:
            relative = path.relative_to(self._source_dir)
        except ValueError:
            return False

        if any(part.startswith(".") for part in relative.parts):
            return False
        if self._is_output(path):
            return False

        name = relative.as_posix()
        return any(fnmatch.fnmatch(name, pattern) for pattern in self._watch_patterns)

    def _is_output(self, path: Path) -> bool:
        for directory in (self._builder.output_dir, self._builder.builds_dir):
            try:
                path.relative_to(directory.absolute())
            except ValueError:
                continue
            return True
        return False

    def _to_route(self, file_path: Path) -> str:
        """Convert a changed file to the route it is published under.

        Args:
            file_path: Absolute file path

        Returns:
            Post route for posts, "/" for anything else
        """
        try:
            file_path.relative_to(self._posts_dir)
        except ValueError:
            return "/"

        try:
            document = load_document(file_path, DocumentKind.POST)
        except (OSError, ValueError):
            return "/"
        return route_for(document, self._permalink)

    async def _broadcast_reload(self, path: str) -> None:
        """Broadcast reload event to all connected clients.

        Args:
            path: Route that changed
        """
        if not self._connections:
            return

        message = json.dumps({"type": "reload", "path": path})

        for ws in list(self._connections):
            if ws.closed:
                continue
            try:
                await ws.send_str(message)
            except ConnectionResetError:
                # Client disconnected mid-send, will be cleaned up by WeakSet
                pass


def inject_live_reload(body: bytes) -> bytes:
    """Insert the live reload client script into an HTML page."""
    index = body.rfind(b"</body>")
    if index == -1:
        return body + LIVE_RELOAD_SCRIPT
    return body[:index] + LIVE_RELOAD_SCRIPT + body[index:]


def create_live_reload_routes(manager: LiveReloadManager) -> list[web.RouteDef]:
    """Create routes for live reload WebSocket.

    Args:
        manager: LiveReloadManager instance

    Returns:
        List of route definitions
    """
    return [web.get(LIVE_RELOAD_PATH, manager.handle_websocket)]
