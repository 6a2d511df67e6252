"""playlist_publisher: publish an ordered media playlist to a Git-hosted store."""

from playlist_publisher.version import __version__

__all__ = ["__version__"]
