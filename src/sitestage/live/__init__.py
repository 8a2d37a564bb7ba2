"""Live reload for development mode."""

from sitestage.live.reload import LiveReloadManager

__all__ = ["LiveReloadManager"]
