"""aiohttp server for Sitestage.

Application factory and route registration. Every request goes through the
static file resolver; unmatched paths get the site index with a 200 status.
"""

import logging

from aiohttp import web

from sitestage.app_keys import live_reload_key, site_root_key
from sitestage.config import Config
from sitestage.core.builder import create_builder
from sitestage.core.resolver import HTML_CONTENT_TYPE, Matched, resolve
from sitestage.live.reload import inject_live_reload

logger = logging.getLogger(__name__)


async def serve_site(request: web.Request) -> web.StreamResponse:
    """Serve a file from the current build, or the fallback page.

    Matched files go through FileResponse for conditional and range requests,
    unless the live reload script has to be injected.
    """
    result = resolve(request.path, request.app[site_root_key])

    if isinstance(result, Matched):
        logger.debug(f"{request.path} -> {result.path} ({result.rule.value})")
    else:
        logger.warning(f"Unmatched path {request.path}, served fallback page")

    inject = live_reload_key in request.app and result.content_type == HTML_CONTENT_TYPE
    if isinstance(result, Matched) and not inject:
        return web.FileResponse(result.path, headers={"Content-Type": result.content_type})

    body = inject_live_reload(result.body) if inject else result.body
    return web.Response(body=body, content_type=result.content_type)


def create_app(config: Config) -> web.Application:
    """Create aiohttp application.

    Args:
        config: Application configuration

    Returns:
        Configured aiohttp application
    """
    app = web.Application()
    app[site_root_key] = config.site.output_dir

    # Live reload WebSocket endpoint (registered before the catch-all route)
    if config.live_reload.enabled:
        from sitestage.live import LiveReloadManager
        from sitestage.live.reload import create_live_reload_routes

        manager = LiveReloadManager(
            config.site.source_dir,
            create_builder(config),
            watch_patterns=config.live_reload.watch_patterns,
            posts_dir=config.site.posts_dir,
            permalink=config.site.permalink,
        )
        app[live_reload_key] = manager
        app.router.add_routes(create_live_reload_routes(manager))
        app.on_startup.append(_start_live_reload)
        app.on_cleanup.append(_stop_live_reload)

    # Catch-all - must be last
    app.router.add_get("/{path:.*}", serve_site)

    return app


async def _start_live_reload(app: web.Application) -> None:
    """Start live reload on application startup."""
    await app[live_reload_key].start()


async def _stop_live_reload(app: web.Application) -> None:
    """Stop live reload on application cleanup."""
    await app[live_reload_key].stop()


def run_server(config: Config) -> None:
    """Run the server.

    Args:
        config: Application configuration
    """
    app = create_app(config)
    web.run_app(app, host=config.server.host, port=config.server.port)
