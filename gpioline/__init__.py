"""Linux GPIO character device uAPI v2 structures and ioctls, and an edge event watcher."""

__version__ = "0.1.0"
__all__ = ["uapi_v2", "watcher"]