from .transcode import transcode_router

__all__ = ["transcode_router"]
