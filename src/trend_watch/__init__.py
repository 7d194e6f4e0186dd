"""Google Trends keyword watcher.

Tracks saved keywords per owner, polls interest-over-time on each keyword's
alert interval and files change notifications.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
